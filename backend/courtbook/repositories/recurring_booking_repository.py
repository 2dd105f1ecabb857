# backend/courtbook/repositories/recurring_booking_repository.py
"""
RecurringBooking Repository for Courtbook

Queries over a recurring group and its child bookings. Group counters are
never incremented in place; ``recompute_counters`` rewrites them from the
children so they can't drift.
"""

from datetime import date, datetime
import logging
from typing import List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import (
    ACTIVE_BOOKING_STATUSES,
    CANCELLABLE_BOOKING_STATUSES,
    PAID_RECURRING_STATUSES,
    BookingStatus,
    RecurringGroupStatus,
    RecurringPaymentStatus,
)
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..models.payment import BookingPayment
from ..models.recurring_booking_group import RecurringBookingGroup
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RecurringBookingRepository(BaseRepository[RecurringBookingGroup]):
    def __init__(self, db: Session):
        super().__init__(db, RecurringBookingGroup)

    def list_groups(
        self,
        establishment_id: str,
        status: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> List[RecurringBookingGroup]:
        """Groups of an establishment, newest first."""
        query = self._build_query().filter(RecurringBookingGroup.establishment_id == establishment_id)
        if status:
            query = query.filter(RecurringBookingGroup.status == status)
        if client_id:
            query = query.filter(RecurringBookingGroup.client_id == client_id)
        query = query.order_by(
            RecurringBookingGroup.created_at.desc(), RecurringBookingGroup.id.desc()
        )
        return cast(List[RecurringBookingGroup], self._execute_query(query))

    def _children(self, group_id: str):
        return self.db.query(Booking).filter(Booking.recurring_group_id == group_id)

    def get_occurrences(self, group_id: str) -> List[Booking]:
        query = self._children(group_id).order_by(Booking.booking_date, Booking.recurring_sequence)
        return cast(List[Booking], self._execute_query(query))

    def get_occurrence(self, group_id: str, booking_id: str) -> Optional[Booking]:
        try:
            return cast(
                Optional[Booking],
                self._children(group_id).filter(Booking.id == booking_id).first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading occurrence {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load occurrence: {str(e)}")

    def get_next_pending_occurrence(self, group_id: str) -> Optional[Booking]:
        """Earliest unpaid occurrence that is still pending or confirmed."""
        try:
            return cast(
                Optional[Booking],
                self._children(group_id)
                .filter(
                    Booking.recurring_payment_status == RecurringPaymentStatus.PENDING.value,
                    Booking.status.in_(CANCELLABLE_BOOKING_STATUSES),
                )
                .order_by(Booking.booking_date, Booking.recurring_sequence)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding next pending occurrence: {str(e)}")
            raise RepositoryException(f"Failed to find pending occurrence: {str(e)}")

    def get_cancellable_occurrences(self, group_id: str, from_date: date) -> List[Booking]:
        query = (
            self._children(group_id)
            .filter(
                Booking.booking_date >= from_date,
                Booking.status.in_(CANCELLABLE_BOOKING_STATUSES),
            )
            .order_by(Booking.booking_date)
        )
        return cast(List[Booking], self._execute_query(query))

    def count_active_from(self, group_id: str, from_date: date) -> int:
        query = self.db.query(func.count(Booking.id)).filter(
            Booking.recurring_group_id == group_id,
            Booking.booking_date >= from_date,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        return int(self._execute_scalar(query) or 0)

    def recompute_counters(self, group: RecurringBookingGroup) -> RecurringBookingGroup:
        """Rewrite the group's counters from its child bookings and payments."""
        self.db.flush()
        paid_count = self.db.query(func.count(Booking.id)).filter(
            Booking.recurring_group_id == group.id,
            Booking.recurring_payment_status.in_(PAID_RECURRING_STATUSES),
        )
        cancelled_count = self.db.query(func.count(Booking.id)).filter(
            Booking.recurring_group_id == group.id,
            Booking.status == BookingStatus.CANCELLED.value,
        )
        total_paid = (
            self.db.query(func.coalesce(func.sum(BookingPayment.amount), 0))
            .join(Booking, Booking.id == BookingPayment.booking_id)
            .filter(Booking.recurring_group_id == group.id)
        )

        group.paid_bookings_count = int(self._execute_scalar(paid_count) or 0)
        group.cancelled_occurrences = int(self._execute_scalar(cancelled_count) or 0)
        group.total_paid = self._execute_scalar(total_paid) or 0
        self.db.flush()
        return group

    def close_if_exhausted(
        self,
        group: RecurringBookingGroup,
        today: date,
        at: Optional[datetime] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Mark the group cancelled when no active occurrence remains from ``today``."""
        if group.status == RecurringGroupStatus.CANCELLED.value:
            return False
        if self.count_active_from(group.id, today) > 0:
            return False
        group.status = RecurringGroupStatus.CANCELLED.value
        group.cancelled_at = at
        if reason and not group.cancellation_reason:
            group.cancellation_reason = reason
        self.db.flush()
        self.logger.info(f"Recurring group {group.id} has no active occurrences left; closed")
        return True
