"""Tests for application configuration settings."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from lockgate.admission.context import policy_from_settings
from lockgate.core.config import Settings


class TestLockPolicySettings:
    """Test lock policy configuration settings."""

    def test_should_have_production_defaults(self):
        """Test the lock policy defaults."""
        # Arrange & Act
        settings = Settings()

        # Assert
        assert settings.REQUIRED_LOCK_AMOUNT == 2_100_000_000
        assert settings.REQUIRED_LOCK_DURATION_BLOCKS == 21_000
        assert settings.FRESHNESS_WINDOW_SECONDS == 86_400
        assert settings.MAX_UPLOAD_BYTES == 1024 * 1024
        assert settings.PORT == 5002

    def test_should_override_policy_via_environment(self):
        """Test the lock policy can be overridden via environment."""
        # Arrange
        env = {"REQUIRED_LOCK_AMOUNT": "2100", "REQUIRED_LOCK_DURATION_BLOCKS": "10"}

        # Act
        with patch.dict(os.environ, env):
            settings = Settings()

        # Assert
        assert settings.REQUIRED_LOCK_AMOUNT == 2100
        assert settings.REQUIRED_LOCK_DURATION_BLOCKS == 10

    def test_should_reject_non_positive_amount(self):
        """Test a zero lock amount is rejected."""
        with patch.dict(os.environ, {"REQUIRED_LOCK_AMOUNT": "0"}):
            with pytest.raises(ValidationError):
                Settings()

    def test_should_reject_invalid_reference_pattern(self):
        """Test a broken reference pattern fails at startup."""
        with pytest.raises(ValidationError, match="TX_REFERENCE_PATTERN"):
            Settings(TX_REFERENCE_PATTERN="([0-9")

    def test_policy_is_built_from_settings(self):
        """Test settings translate into the workflow's lock policy."""
        settings = Settings(REQUIRED_LOCK_AMOUNT=5, FRESHNESS_WINDOW_SECONDS=60)

        policy = policy_from_settings(settings)

        assert policy.amount == 5
        assert policy.lock_duration_blocks == settings.REQUIRED_LOCK_DURATION_BLOCKS
        assert policy.freshness_window_seconds == 60
        assert policy.reference_pattern == settings.TX_REFERENCE_PATTERN


class TestEndpointSettings:
    """Test collaborator endpoint settings."""

    def test_should_strip_trailing_slashes(self):
        """Test base URLs are normalised."""
        settings = Settings(
            LEDGER_ENDPOINT="https://explorer.example/ ",
            CONTENT_STORE_URL="http://127.0.0.1:5001/",
        )

        assert settings.LEDGER_ENDPOINT == "https://explorer.example"
        assert settings.CONTENT_STORE_URL == "http://127.0.0.1:5001"

    def test_should_use_test_database_when_testing(self):
        """Test TEST_DATABASE_URL replaces DATABASE_URL in test mode."""
        env = {"TESTING": "true", "TEST_DATABASE_URL": "sqlite+aiosqlite:///./test.db"}

        with patch.dict(os.environ, env):
            settings = Settings()

        assert settings.DATABASE_URL == "sqlite+aiosqlite:///./test.db"
