"""Main FastAPI application module."""

from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from lockgate.admission.context import AdmissionContext
from lockgate.api.v1.router import router as v1_router
from lockgate.core.config import Settings
from lockgate.core.events import create_lifespan
from lockgate.middleware.correlation import CorrelationMiddleware
from lockgate.middleware.errors import ErrorHandlingMiddleware, register_error_handlers
from lockgate.middleware.metrics import MetricsMiddleware
from lockgate.middleware.upload_limit import UploadLimitMiddleware


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[AdmissionContext] = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use, read from the environment when omitted
        context: Prebuilt collaborators; built on startup when omitted

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings()

    app = FastAPI(
        title=settings.app_name,
        description="Admits uploads into content-addressed storage against time-locked payments",
        version=settings.version,
        default_response_class=JSONResponse,
        lifespan=create_lifespan(settings),
    )
    app.state.settings = settings
    app.state.context = context

    # The last middleware added is the outermost:
    # 1. Error handling (innermost - handles all errors)
    # 2. Upload limit (rejects oversized bodies before they are parsed)
    # 3. Metrics (tracks all requests)
    # 4. Correlation (adds request ID)
    # 5. CORS (outermost)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(
        UploadLimitMiddleware,
        max_file_bytes=settings.MAX_UPLOAD_BYTES,
        overhead_bytes=settings.MULTIPART_OVERHEAD_BYTES,
        paths=[f"{settings.api_prefix}/admit", f"{settings.api_prefix}/check"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )
    register_error_handlers(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router, prefix=settings.api_prefix)
    return app
