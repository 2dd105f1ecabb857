# backend/courtbook/core/config.py
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)

load_dotenv()


class Settings(BaseSettings):
    """Runtime configuration for the booking engine."""

    environment: str = Field(default="development", description="Deployment environment name")
    log_level: str = Field(default="INFO", description="Root logging level")

    database_url: str = Field(
        default="sqlite+pysqlite:///./courtbook.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    default_timezone: str = Field(
        default="America/Argentina/Buenos_Aires",
        description="Timezone used when an establishment has none configured",
    )

    # Scheduling
    slot_step_minutes: int = Field(default=30, ge=5, le=240, description="Slot grid step")
    default_open_time: str = Field(default="08:00", description="Fallback opening time")
    default_close_time: str = Field(default="22:00", description="Fallback closing time")
    default_min_cancellation_notice_hours: int = Field(
        default=2, ge=0, description="Minimum notice for non-privileged cancellations"
    )
    no_show_grace_minutes: int = Field(
        default=30, ge=0, description="Minutes after start before an unattended booking is a no-show"
    )

    # Notifications
    notification_webhook_url: Optional[str] = Field(
        default=None, description="Fallback webhook for booking notifications"
    )
    notification_timeout_seconds: float = Field(default=5.0, gt=0)

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/0")
    celery_result_backend: str = Field(default="redis://localhost:6379/1")
    celery_task_always_eager: bool = Field(default=False)

    # Monitoring
    slow_operation_threshold_seconds: float = Field(default=1.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_timezone")
    @classmethod
    def _validate_timezone(cls, v: str) -> str:
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {v}")
        return v


settings = Settings()
