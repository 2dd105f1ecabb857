# backend/courtbook/repositories/factory.py
"""
Repository Factory for Courtbook

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .conflict_checker_repository import ConflictCheckerRepository
    from .payment_repository import PaymentRepository
    from .recurring_booking_repository import RecurringBookingRepository
    from .resource_repository import ResourceRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_conflict_checker_repository(db: Session) -> "ConflictCheckerRepository":
        """Create repository for conflict checking queries."""
        from .conflict_checker_repository import ConflictCheckerRepository

        return ConflictCheckerRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking lifecycle operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_resource_repository(db: Session) -> "ResourceRepository":
        """Create repository for resources, establishments and opening hours."""
        from .resource_repository import ResourceRepository

        return ResourceRepository(db)

    @staticmethod
    def create_recurring_booking_repository(db: Session) -> "RecurringBookingRepository":
        """Create repository for recurring booking groups."""
        from .recurring_booking_repository import RecurringBookingRepository

        return RecurringBookingRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        """Create repository for payments and cash-register movements."""
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)
