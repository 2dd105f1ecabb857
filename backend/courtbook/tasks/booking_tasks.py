# backend/courtbook/tasks/booking_tasks.py
"""
Periodic booking maintenance.

The no-show sweep runs from beat every 15 minutes.
"""

import logging
import time
from typing import Any, Dict

from courtbook.database.sessions import get_worker_session
from courtbook.services.booking_service import BookingService
from courtbook.tasks.celery_app import BaseTask
from courtbook.tasks.notification_tasks import typed_task

logger = logging.getLogger(__name__)


@typed_task(
    base=BaseTask,
    name="courtbook.tasks.booking_tasks.mark_no_show_bookings",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def mark_no_show_bookings(self: Any) -> Dict[str, Any]:
    """Mark unattended bookings past the grace period as no-show."""
    start_time = time.time()
    with get_worker_session() as db:
        marked = BookingService(db).mark_no_show_bookings()

    execution_time = time.time() - start_time
    logger.info(
        f"No-show sweep marked {len(marked)} bookings",
        extra={"task_id": self.request.id, "execution_time": round(execution_time, 2)},
    )
    return {"status": "success", "marked": len(marked), "booking_ids": marked}
