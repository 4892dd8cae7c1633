"""Tests for record store engine construction."""

import pytest

from lockgate.core.db import create_engine, normalize_database_url


@pytest.mark.parametrize(
    ("configured", "expected"),
    [
        ("postgresql://u:p@db/locks", "postgresql+asyncpg://u:p@db/locks"),
        ("postgres://u:p@db/locks", "postgresql+asyncpg://u:p@db/locks"),
        ("postgresql+psycopg2://u:p@db/locks", "postgresql+asyncpg://u:p@db/locks"),
        ("postgresql+asyncpg://u:p@db/locks", "postgresql+asyncpg://u:p@db/locks"),
        ("sqlite:///./locks.db", "sqlite+aiosqlite:///./locks.db"),
        ("sqlite+aiosqlite:///./locks.db", "sqlite+aiosqlite:///./locks.db"),
    ],
)
def test_normalize_database_url(configured: str, expected: str) -> None:
    """Test URLs are converted to async drivers."""
    assert normalize_database_url(configured) == expected


@pytest.mark.asyncio
async def test_create_engine_for_sqlite(tmp_path) -> None:
    """Test sqlite engines are created without server pool options."""
    engine = create_engine(f"sqlite:///{tmp_path / 'locks.db'}", max_connections=3)
    try:
        assert engine.url.drivername == "sqlite+aiosqlite"
    finally:
        await engine.dispose()
