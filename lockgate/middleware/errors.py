"""Error handling middleware.

Every error leaves the service in one shape::

    {"statusCode": 400, "reasonCode": "DuplicateContent", "message": "...",
     "context": {...}, "correlationId": "..."}
"""

from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from lockgate.core.errors import AdmissionError, InternalCommitFailure
from lockgate.core.logging import get_logger

logger = get_logger(__name__)


def _error_body(exc: Exception) -> dict[str, Any]:
    if isinstance(exc, AdmissionError):
        return exc.to_dict()

    if isinstance(exc, StarletteHTTPException):
        status_code = exc.status_code
        message = str(exc.detail)
        context: dict[str, Any] = {}
    elif isinstance(exc, RequestValidationError):
        status_code = 422
        message = "Request validation failed"
        context = {"errors": jsonable_encoder(exc.errors())}
    else:
        status_code = getattr(exc, "status_code", HTTP_500_INTERNAL_SERVER_ERROR)
        message = str(exc.args[0] if exc.args else exc)
        context = {}

    return {
        "statusCode": status_code,
        "reasonCode": exc.__class__.__name__,
        "message": message,
        "context": context,
    }


def create_error_response(request: Request, exc: Exception) -> JSONResponse:
    """
    Render ``exc`` through the structured error contract and log it.

    Args:
    ----
        request: The request that caused the exception
        exc: The exception to handle

    Returns:
    -------
        A JSON response with error details
    """
    body = _error_body(exc)
    correlation_id = getattr(request.state, "correlation_id", None)
    body["correlationId"] = correlation_id if correlation_id else "unknown"

    status_code = body["statusCode"]
    if isinstance(exc, InternalCommitFailure):
        log = logger.critical
    elif status_code >= 500:
        log = logger.error
    else:
        log = logger.warning
    log(
        "request_error",
        reason_code=body["reasonCode"],
        error_message=body["message"],
        status_code=status_code,
        path=request.url.path,
        method=request.method,
    )

    response = JSONResponse(status_code=status_code, content=body)
    if correlation_id:
        response.headers["X-Request-ID"] = correlation_id
    return response


async def _handle_exception(request: Request, exc: Exception) -> JSONResponse:
    return create_error_response(request, exc)


def register_error_handlers(app: FastAPI) -> None:
    """Route domain, HTTP and validation errors through the error contract."""
    app.add_exception_handler(AdmissionError, _handle_exception)
    app.add_exception_handler(StarletteHTTPException, _handle_exception)
    app.add_exception_handler(RequestValidationError, _handle_exception)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns any exception that escaped the route handlers into a JSON 500."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle and handle errors.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers or error response
        """
        try:
            return await call_next(request)
        except Exception as exc:
            return create_error_response(request, exc)
