# backend/courtbook/tasks/celery_app.py
"""
Celery application configuration for Courtbook.

This module sets up the Celery app with Redis as the broker and backend,
configures task serialization, timezone, and the periodic schedule.
"""

import logging
from typing import Any, Type, cast

from celery import Celery, Task
from celery.schedules import crontab
from celery.signals import setup_logging

from courtbook.core.config import settings

TASK_MODULES = (
    "courtbook.tasks.notification_tasks",
    "courtbook.tasks.booking_tasks",
)

BEAT_SCHEDULE = {
    # Flag bookings nobody showed up for
    "mark-no-show-bookings": {
        "task": "courtbook.tasks.booking_tasks.mark_no_show_bookings",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "bookings", "priority": 5},
    },
}


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    celery_app = Celery(
        "courtbook",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
    )

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": settings.default_timezone,
            "enable_utc": True,
            "task_always_eager": settings.celery_task_always_eager,
            "worker_prefetch_multiplier": 4,
            "task_soft_time_limit": 60,
            "task_time_limit": 120,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "worker_hijack_root_logger": False,
            "imports": TASK_MODULES,
            "task_routes": {
                "courtbook.tasks.notification_tasks.*": {"queue": "notifications"},
                "courtbook.tasks.booking_tasks.*": {"queue": "bookings"},
            },
            "beat_schedule": BEAT_SCHEDULE,
        }
    )
    return celery_app


@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    logging.basicConfig(
        level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


celery_app = create_celery_app()


class BaseTask(Task):  # type: ignore[misc]
    """Base task with failure logging."""

    def on_failure(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger = logging.getLogger(__name__)
        logger.error(
            f"Task {self.name}[{task_id}] failed with exception: {exc}",
            exc_info=True,
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_retry(self, exc: Exception, task_id: str, args: Any, kwargs: Any, einfo: Any) -> None:
        logger = logging.getLogger(__name__)
        logger.warning(
            f"Task {self.name}[{task_id}] retry {self.request.retries} due to: {exc}",
            extra={"task_id": task_id, "task_name": self.name},
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


celery_app.Task = cast(Type[Task], BaseTask)
