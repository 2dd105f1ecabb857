"""Booking domain events and their publisher."""

from courtbook.events.booking_events import (
    BookingCancelled,
    BookingConfirmed,
    RecurringGroupCreated,
)
from courtbook.events.publisher import EventPublisher

__all__ = [
    "BookingCancelled",
    "BookingConfirmed",
    "EventPublisher",
    "RecurringGroupCreated",
]
