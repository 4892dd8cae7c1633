"""Tests for logging configuration."""

from collections.abc import Iterator
from logging import DEBUG, INFO, getLogger

import pytest
import structlog
from structlog.stdlib import BoundLogger
from structlog.types import BindableLogger

from lockgate.core.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging() -> Iterator[None]:
    """Put the test logging configuration back afterwards."""
    yield
    configure_logging(testing=True)


def renderer_names() -> list[str]:
    return [p.__class__.__name__ for p in structlog.get_config()["processors"]]


def test_configure_logging_renders_json() -> None:
    """Test JSON rendering is the production default."""
    configure_logging()

    assert "JSONRenderer" in renderer_names()


def test_configure_logging_for_tests() -> None:
    """Test key/value rendering in test mode."""
    configure_logging(testing=True)

    assert "JSONRenderer" not in renderer_names()
    assert "KeyValueRenderer" in renderer_names()


def test_configure_logging_merges_context() -> None:
    """Test bound context variables reach every log line."""
    configure_logging()

    processors = structlog.get_config()["processors"]
    assert structlog.contextvars.merge_contextvars in processors


@pytest.mark.parametrize(
    ("level", "expected"), [("debug", DEBUG), ("INFO", INFO), ("bogus", INFO)]
)
def test_configure_logging_level(level: str, expected: int) -> None:
    """Test level names are case insensitive with an info fallback."""
    configure_logging(level=level)

    assert getLogger("lockgate").level == expected
    assert not getLogger("lockgate").propagate


def test_get_logger() -> None:
    """Test get_logger returns a configured logger."""
    logger = get_logger(__name__)
    assert isinstance(logger, BoundLogger | BindableLogger)
