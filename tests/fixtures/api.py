"""API test fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient, Timeout

from lockgate.admission.workflow import AdmissionWorkflow
from lockgate.core.config import Settings
from lockgate.main import create_app

from .admission import LOCK_AMOUNT, LOCK_DURATION

# Default timeout configuration
DEFAULT_TIMEOUT: Timeout = Timeout(timeout=5.0, connect=2.0)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        REQUIRED_LOCK_AMOUNT=LOCK_AMOUNT,
        REQUIRED_LOCK_DURATION_BLOCKS=LOCK_DURATION,
        MAX_UPLOAD_BYTES=1024,
        UPLOAD_CHUNK_BYTES=256,
        MULTIPART_OVERHEAD_BYTES=1024,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
    )


@pytest.fixture
def test_app(test_settings: Settings, workflow: AdmissionWorkflow) -> FastAPI:
    """Application wired to the in-memory collaborators.

    The injected context only needs the workflow; lifespan leaves it alone.
    """
    return create_app(test_settings, context=SimpleNamespace(workflow=workflow))


@pytest_asyncio.fixture
async def api_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async client talking to the app in-process, on the test's event loop."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
        timeout=DEFAULT_TIMEOUT,
    ) as client:
        yield client
