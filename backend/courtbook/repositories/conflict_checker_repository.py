# backend/courtbook/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for Courtbook

Data access for interval conflict detection. All queries are scoped by
(resource, date), the only shared mutable set the booking engine writes to.
"""

from datetime import date, time
import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ACTIVE_BOOKING_STATUSES, BookingStatus
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConflictCheckerRepository(BaseRepository[Booking]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_bookings_for_conflict_check(
        self,
        resource_id: str,
        check_date: date,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Get the active bookings that could conflict on a resource and date.

        Args:
            resource_id: The resource to check
            check_date: The operating date to check
            exclude_booking_id: Optional booking ID to leave out (edits)

        Returns:
            Active bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.resource_id == resource_id,
                Booking.booking_date == check_date,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )

            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)

            return cast(List[Booking], query.order_by(Booking.start_time).all())

        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}")

    def delete_cancelled_at_slot(self, resource_id: str, slot_date: date, start_time: time) -> int:
        """
        Delete cancelled bookings sitting on an exact (resource, date, start).

        Cancelled occurrences of a recurring series are kept; the series
        counters are aggregates over them.

        Returns:
            Number of rows removed
        """
        try:
            stale = (
                self.db.query(Booking)
                .filter(
                    Booking.resource_id == resource_id,
                    Booking.booking_date == slot_date,
                    Booking.start_time == start_time,
                    Booking.status == BookingStatus.CANCELLED.value,
                    Booking.recurring_group_id.is_(None),
                )
                .all()
            )
            for booking in stale:
                self.db.delete(booking)
            if stale:
                self.db.flush()
            return len(stale)

        except SQLAlchemyError as e:
            self.logger.error(f"Error purging cancelled slot: {str(e)}")
            raise RepositoryException(f"Failed to purge cancelled slot: {str(e)}")
