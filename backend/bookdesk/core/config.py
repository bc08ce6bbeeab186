# backend/bookdesk/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    """Runtime configuration for the booking back-end."""

    environment: str = "development"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./bookdesk.db"
    test_database_url: Optional[str] = None
    statement_timeout_ms: int = Field(default=15000, ge=0)
    sqlite_busy_timeout_seconds: float = Field(default=5.0, gt=0)

    # Auth
    secret_key: SecretStr = SecretStr("change-me-in-production-use-a-long-random-value")
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Request handling
    api_v1_prefix: str = "/api/v1"
    request_timeout_seconds: float = Field(default=15.0, gt=0)

    # Booking defaults applied to newly provisioned organizations
    default_timezone: str = "Australia/Adelaide"
    default_slot_minutes: int = Field(default=60, gt=0)
    default_min_lead_minutes: int = Field(default=60, ge=0)
    default_max_horizon_days: int = Field(default=30, gt=0)

    # Pagination
    default_page_size: int = Field(default=20, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Conflict handling
    booking_retry_attempts: int = Field(default=3, ge=0)

    is_testing: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    def get_database_url(self) -> str:
        """Return the DSN the application engine should bind to."""
        if self.is_testing and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
