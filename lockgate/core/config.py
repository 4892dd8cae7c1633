"""Application configuration."""

import re

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings.

    Environment variables will be loaded and validated using Pydantic.
    """

    app_name: str = "lockgate"
    version: str = "0.1.0"
    api_prefix: str = "/api/v1"

    # CORS Settings
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = False

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 5002

    # Lock Policy
    REQUIRED_LOCK_AMOUNT: int = Field(default=2_100_000_000, gt=0)  # 2100 coins
    REQUIRED_LOCK_DURATION_BLOCKS: int = Field(default=21_000, gt=0)
    FRESHNESS_WINDOW_SECONDS: float = Field(default=86_400, gt=0)  # 1 day
    TX_REFERENCE_PATTERN: str = r"^[0-9a-fA-F]{64}$"

    # Upload Settings
    MAX_UPLOAD_BYTES: int = Field(default=1024 * 1024, gt=0)
    UPLOAD_CHUNK_BYTES: int = Field(default=64 * 1024, gt=0)
    # Allowance above MAX_UPLOAD_BYTES for multipart framing and form fields
    MULTIPART_OVERHEAD_BYTES: int = Field(default=64 * 1024, ge=0)

    # Ledger Explorer Settings
    LEDGER_ENDPOINT: str = "https://yaswap.yacoin.org"
    LEDGER_TIMEOUT_SECONDS: float = 15.0

    # Content Store (Kubo RPC) Settings
    CONTENT_STORE_URL: str = "http://127.0.0.1:5001"
    CONTENT_STORE_TIMEOUT_SECONDS: float = 60.0

    # Record Store Settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./lockgate.db"
    MAX_CONNECTIONS: int = 10

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    @field_validator("LEDGER_ENDPOINT", "CONTENT_STORE_URL")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalise base URLs so paths can be appended directly."""
        return value.strip().rstrip("/")

    @field_validator("TX_REFERENCE_PATTERN")
    @classmethod
    def validate_reference_pattern(cls, value: str) -> str:
        """Fail at startup rather than on the first upload."""
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid TX_REFERENCE_PATTERN: {e}") from e
        return value

    @model_validator(mode="after")
    def use_test_configs_for_testing(self) -> "Settings":
        """Use the test record store for tests to ensure isolation."""
        import os

        if os.getenv("TESTING") == "true":
            test_database_url = os.getenv("TEST_DATABASE_URL")
            if test_database_url:
                self.DATABASE_URL = test_database_url
        return self
