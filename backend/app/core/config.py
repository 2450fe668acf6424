# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

logger = logging.getLogger(__name__)

env_path = _BACKEND_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

_DEFAULT_SECRET_KEY = SecretStr("tutorbook-development-secret-key-change-me")


class Settings(BaseSettings):
    secret_key: SecretStr = Field(
        default=_DEFAULT_SECRET_KEY,
        description="Secret key for JWT tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    environment: str = Field(default="development", description="development | staging | production")
    database_url: str = Field(
        default="sqlite:///./tutorbook.db",
        description="SQLAlchemy database URL",
    )
    redis_url: str = Field(default="redis://localhost:6379/0", description="Celery broker and result backend")

    # Scheduling
    uk_timezone: str = "Europe/London"
    working_hours_start: int = Field(default=8, description="First bookable hour, UK local")
    working_hours_end: int = Field(default=20, description="Bookings must end by this hour, UK local")
    slot_interval_minutes: int = 5

    # Video session join window, relative to booking start
    join_window_early_minutes: int = 10
    join_window_late_minutes: int = 60

    max_message_length: int = 1000
    bookings_page_size: int = 20
    auto_complete_interval_minutes: int = 5

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("secret_key")
    @classmethod
    def _require_secret(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip() and not is_running_tests():
            raise ValueError("SECRET_KEY must not be empty")
        return value

    @field_validator("working_hours_start", "working_hours_end")
    @classmethod
    def _clamp_hours(cls, value: int) -> int:
        return max(0, min(24, int(value)))

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: Optional[str]) -> str:
        return (value or "development").strip().lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_database_url(self) -> str:
        """Return the database URL, preferring TEST_DATABASE_URL while tests run."""
        test_url = os.getenv("TEST_DATABASE_URL")
        if test_url and is_running_tests():
            return test_url
        return self.database_url


def assert_env(settings_obj: Settings) -> None:
    """Refuse to start production with the development secret."""
    if settings_obj.is_production and settings_obj.secret_key == _DEFAULT_SECRET_KEY:
        raise RuntimeError("Refusing to start: SECRET_KEY must be set in production")


settings = Settings()
logger.info(
    "[CONFIG] environment=%s timezone=%s working_hours=%s-%s",
    settings.environment,
    settings.uk_timezone,
    settings.working_hours_start,
    settings.working_hours_end,
)
