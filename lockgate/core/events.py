"""Application startup and shutdown events."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from prometheus_client import Counter

from lockgate.core.config import Settings
from lockgate.core.logging import get_logger

logger = get_logger(__name__)

# Prometheus metrics
REQUESTS_TOTAL = Counter(
    "lockgate_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "lockgate_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)

ADMISSIONS_TOTAL = Counter(
    "lockgate_admissions_total",
    "Admission attempts by outcome (admitted or reason code)",
    labelnames=["outcome"],
)

EXISTENCE_CHECKS_TOTAL = Counter(
    "lockgate_existence_checks_total",
    "Existence checks by result",
    labelnames=["exists"],
)

COMMIT_FAILURES_TOTAL = Counter(
    "lockgate_commit_failures_total",
    "Commits that left store and record store inconsistent",
    labelnames=["stage"],
)


def create_lifespan(
    settings: Settings,
) -> Callable[[FastAPI], Any]:
    """Create the lifespan handler that owns the admission context.

    If ``app.state.context`` is already set (tests inject doubles this way)
    it is used as is and left open on shutdown.

    Args:
        settings: Application settings

    Returns:
        Lifespan context manager factory for FastAPI
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Imported here to keep collaborator construction out of import time
        from lockgate.admission.context import AdmissionContext

        owned = getattr(app.state, "context", None) is None
        if owned:
            app.state.context = await AdmissionContext.create(settings)
        logger.info(
            "application_started",
            ledger_endpoint=settings.LEDGER_ENDPOINT,
            content_store_url=settings.CONTENT_STORE_URL,
        )
        try:
            yield
        finally:
            if owned:
                await app.state.context.aclose()
                app.state.context = None
            logger.info("application_stopped")

    return lifespan
