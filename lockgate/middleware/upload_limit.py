"""Upload size middleware.

Rejects upload requests whose declared body exceeds the cap before the
multipart parser reads any of it. The per-file cap in ``spool_upload`` still
applies to bodies sent without a ``Content-Length``.
"""

from collections.abc import Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from lockgate.core.errors import FileTooLarge
from lockgate.middleware.errors import create_error_response


class UploadLimitMiddleware(BaseHTTPMiddleware):
    """Answer 413 for upload requests with an oversized ``Content-Length``."""

    def __init__(
        self,
        app: ASGIApp,
        max_file_bytes: int,
        overhead_bytes: int,
        paths: Iterable[str],
    ):
        """Initialize the middleware.

        Args:
            app: Downstream application
            max_file_bytes: Largest accepted file
            overhead_bytes: Allowance for multipart boundaries and form fields
            paths: Request paths that accept uploads
        """
        super().__init__(app)
        self.max_file_bytes = max_file_bytes
        self.max_body_bytes = max_file_bytes + overhead_bytes
        self.paths = frozenset(paths)

    def _declared_length(self, request: Request) -> int | None:
        value = request.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Reject oversized uploads, otherwise pass the request on.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            A 413 error response or the response from downstream handlers
        """
        if request.method == "POST" and request.url.path in self.paths:
            length = self._declared_length(request)
            if length is not None and length > self.max_body_bytes:
                return create_error_response(
                    request,
                    FileTooLarge(
                        f"The maximum allowable file size is {self.max_file_bytes} "
                        "bytes. Please upload another file.",
                        context={"maxBytes": self.max_file_bytes},
                    ),
                )
        return await call_next(request)
