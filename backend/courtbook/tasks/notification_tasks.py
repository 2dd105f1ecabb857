# backend/courtbook/tasks/notification_tasks.py
"""
Webhook delivery for committed booking events.

Tasks are queued strictly after commit. Delivery failures are retried a few
times, then logged by BaseTask.on_failure; they never touch booking state.
"""

import logging
from typing import Any, Callable, Dict, Optional, ParamSpec, TypeVar, cast

import httpx

from courtbook.core.config import settings
from courtbook.database.sessions import get_worker_session
from courtbook.models.establishment import Establishment
from courtbook.monitoring.prometheus_metrics import prometheus_metrics
from courtbook.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def typed_task(*task_args: Any, **task_kwargs: Any) -> Callable[[Callable[P, R]], Any]:
    """Return a typed Celery task decorator for mypy."""
    return cast(Callable[[Callable[P, R]], Any], celery_app.task(*task_args, **task_kwargs))


def resolve_webhook_url(establishment_id: Optional[str]) -> Optional[str]:
    """The establishment's webhook, falling back to the configured default."""
    if establishment_id:
        with get_worker_session() as db:
            establishment = (
                db.query(Establishment).filter(Establishment.id == establishment_id).first()
            )
            if establishment is not None and establishment.webhook_url:
                return str(establishment.webhook_url)
    return settings.notification_webhook_url


def deliver_webhook(
    url: str,
    event_type: str,
    payload: Dict[str, Any],
    client: Optional[httpx.Client] = None,
) -> int:
    """
    POST an event to ``url``.

    Returns:
        The HTTP status code

    Raises:
        httpx.HTTPError: on transport errors or non-2xx responses
    """
    body = {"event": event_type, "data": payload}
    if client is not None:
        response = client.post(url, json=body)
    else:
        with httpx.Client(timeout=settings.notification_timeout_seconds) as own_client:
            response = own_client.post(url, json=body)
    response.raise_for_status()
    return response.status_code


@typed_task(
    name="courtbook.tasks.notification_tasks.send_booking_notification",
    bind=True,
    max_retries=3,
    default_retry_delay=30,
)
def send_booking_notification(self: Any, event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    url = resolve_webhook_url(payload.get("establishment_id"))
    if not url:
        logger.debug(f"No webhook configured for {event_type}; skipping")
        return {"status": "skipped", "event": event_type}

    try:
        status_code = deliver_webhook(url, event_type, payload)
    except httpx.HTTPError as exc:
        prometheus_metrics.record_notification(event_type, "failed")
        logger.warning(f"Webhook delivery for {event_type} failed: {exc}")
        raise self.retry(exc=exc)

    prometheus_metrics.record_notification(event_type, "delivered")
    return {"status": "delivered", "event": event_type, "status_code": status_code}
