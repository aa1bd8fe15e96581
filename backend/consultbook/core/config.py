# backend/consultbook/core/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(
        default="development",
        description="Deployment environment (development, testing, production)",
    )
    log_level: str = Field(default="INFO", description="Root log level for workers")
    provider_timezone: str = Field(
        default="UTC",
        description="IANA zone of the provider; slot times and \"now\" are wall-clock times here",
    )

    # Storage
    database_url: str = Field(
        default="sqlite+pysqlite:///./consultbook.db",
        description="SQLAlchemy URL for the booking store",
    )
    database_echo: bool = False
    redis_url: str = Field(default="redis://localhost:6379", description="Redis for locks/broker")

    # Slot locking around re-validation + persist
    slot_lock_enabled: bool = Field(
        default=True,
        description="Serialize writers per (booking type, date) with a Redis mutex",
    )
    slot_lock_ttl_seconds: int = 30

    # Scheduling rules
    reschedule_notice_hours: int = Field(
        default=24,
        description="Minimum hours between now and the booking start for user reschedules",
    )
    imminent_window_minutes: int = Field(
        default=60,
        description="Bookings starting within this many minutes receive a reminder",
    )
    reconciliation_interval_seconds: int = Field(
        default=60,
        description="How often the reconciliation tick runs",
    )
    max_availability_range_days: int = 62
    max_page_size: int = 100

    # Meeting provider (Zoom Server-to-Server OAuth)
    zoom_enabled: bool = False
    zoom_account_id: Optional[str] = None
    zoom_client_id: Optional[str] = None
    zoom_client_secret: Optional[SecretStr] = None
    zoom_api_base_url: str = "https://api.zoom.us/v2"
    zoom_oauth_url: str = "https://zoom.us/oauth/token"

    # Payments
    stripe_secret_key: Optional[SecretStr] = Field(
        default=None,
        description="Stripe secret key used for refunds of one-off charges",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "slot_lock_ttl_seconds",
        "reschedule_notice_hours",
        "imminent_window_minutes",
        "reconciliation_interval_seconds",
        "max_availability_range_days",
        "max_page_size",
    )
    @classmethod
    def _must_be_positive(cls, value: int, info: ValidationInfo) -> int:
        if value <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> str:
        level = str(value or "INFO").strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level {value!r}")
        return level

    @field_validator("provider_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones:
            raise ValueError(f"Unknown timezone {value!r}")
        return value

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: object) -> str:
        return str(value or "development").strip().lower()


settings = Settings()
logger.info(
    "[CONFIG] environment=%s slot_lock_enabled=%s zoom_enabled=%s",
    settings.environment,
    settings.slot_lock_enabled,
    settings.zoom_enabled,
)
