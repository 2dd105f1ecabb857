# backend/courtbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...events import EventPublisher
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.recurring_booking_service import RecurringBookingService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_event_publisher_singleton() -> EventPublisher:
    """Get singleton event publisher instance."""
    return EventPublisher()


def get_event_publisher() -> EventPublisher:
    """Get event publisher instance for dependency injection."""
    return get_event_publisher_singleton()


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        event_publisher: Publisher for post-commit notifications

    Returns:
        BookingService instance
    """
    return BookingService(db, event_publisher=event_publisher)


def get_recurring_booking_service(
    db: Session = Depends(get_db),
    event_publisher: EventPublisher = Depends(get_event_publisher),
) -> RecurringBookingService:
    return RecurringBookingService(db, event_publisher=event_publisher)
