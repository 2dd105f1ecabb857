"""Event publisher - hands committed domain events to the notification worker."""
from datetime import date, datetime
import logging
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

Enqueue = Callable[[str, Dict[str, Any]], None]


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


def _celery_enqueue(event_type: str, payload: Dict[str, Any]) -> None:
    from ..tasks.notification_tasks import send_booking_notification

    send_booking_notification.delay(event_type, payload)


class EventPublisher:
    """
    Publishes domain events for asynchronous delivery.

    Only call ``publish`` after the transaction that produced the event has
    committed; delivery happens in a Celery worker.
    """

    def __init__(self, enqueue: Optional[Enqueue] = None):
        self._enqueue = enqueue or _celery_enqueue

    def publish(self, event: Event) -> None:
        event_type = type(event).__name__
        payload = event.to_dict()

        # Convert dates to ISO strings for JSON serialization
        for key, value in payload.items():
            if isinstance(value, (datetime, date)):
                payload[key] = value.isoformat()

        self._enqueue(event_type, payload)
        logger.debug(f"Queued {event_type} event")
