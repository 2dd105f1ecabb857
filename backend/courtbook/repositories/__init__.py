# backend/courtbook/repositories/__init__.py
"""
Repository Pattern Implementation for Courtbook

This package provides the repository layer for data access,
separating business logic from database queries.

Usage:
    from courtbook.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_conflict_checker_repository(db)
    bookings = repository.get_bookings_for_conflict_check(resource_id, day)
"""

from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .recurring_booking_repository import RecurringBookingRepository
from .resource_repository import ResourceRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "ConflictCheckerRepository",
    "IRepository",
    "PaymentRepository",
    "RecurringBookingRepository",
    "RepositoryFactory",
    "ResourceRepository",
]
