# backend/courtbook/models/booking.py
"""
Booking model for Courtbook.

A booking reserves one resource for a half-open interval ``[start, end)`` on
an operating date. Times are local wall-clock values of the establishment.
A booking whose start is earlier than the opening time of its date belongs
to the after-midnight part of that date's opening window.

Invariant: among active (pending, confirmed, in progress) bookings for the
same resource and date, no two intervals overlap. The partial unique index
below guards the exact (resource, date, start) tuple against races between
check and insert, over the same statuses the conflict check counts.
"""

from datetime import datetime, timezone
from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    PaymentStatus,
    RecurringPaymentStatus,
)
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)

ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base):
    """One reservation of a resource on a date."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)

    establishment_id = Column(
        String(26), ForeignKey("establishments.id"), nullable=False, index=True
    )
    resource_id = Column(String(26), ForeignKey("resources.id"), nullable=False, index=True)

    # Client snapshot (client CRUD lives elsewhere)
    client_id = Column(String(26), nullable=True, index=True)
    client_name = Column(String(200), nullable=True)
    client_phone = Column(String(50), nullable=True)
    client_email = Column(String(255), nullable=True)

    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    deposit_amount = Column(Numeric(10, 2), nullable=False, default=0)
    initial_deposit = Column(Numeric(10, 2), nullable=False, default=0)
    deposit_method = Column(String(30), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Recurring series membership
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_group_id = Column(
        String(26), ForeignKey("recurring_booking_groups.id"), nullable=True, index=True
    )
    recurring_sequence = Column(Integer, nullable=True)
    recurring_payment_status = Column(
        String(20), nullable=False, default=RecurringPaymentStatus.NOT_APPLICABLE.value
    )

    check_in_code = Column(String(12), nullable=True)
    review_token = Column(String(64), nullable=True, unique=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(String(26), nullable=True)

    # Lifecycle timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    no_show_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    resource = relationship("Resource")
    establishment = relationship("Establishment")
    recurring_group = relationship("RecurringBookingGroup", back_populates="bookings")
    payments = relationship(
        "BookingPayment", back_populates="booking", cascade="all, delete-orphan"
    )
    consumption = relationship(
        "BookingConsumption", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'no_show', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'partial', 'completed', 'refunded', 'failed')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint(
            "recurring_payment_status IN ('not_applicable', 'pending', 'paid', 'paid_in_advance')",
            name="ck_bookings_recurring_payment_status",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("total_amount >= 0", name="check_total_non_negative"),
        CheckConstraint("deposit_amount >= 0", name="check_deposit_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: resource={self.resource_id}, date={self.booking_date}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def outstanding_balance(self) -> Decimal:
        return Decimal(self.total_amount or 0) - Decimal(self.deposit_amount or 0)

    def confirm(self, at: Optional[datetime] = None) -> None:
        self.status = BookingStatus.CONFIRMED.value
        self.confirmed_at = at or _utcnow()
        logger.info(f"Booking {self.id} confirmed")

    def start(self, at: Optional[datetime] = None) -> None:
        self.status = BookingStatus.IN_PROGRESS.value
        self.started_at = at or _utcnow()
        logger.info(f"Booking {self.id} checked in")

    def complete(self, at: Optional[datetime] = None) -> None:
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = at or _utcnow()
        logger.info(f"Booking {self.id} marked as completed")

    def mark_no_show(self, at: Optional[datetime] = None) -> None:
        self.status = BookingStatus.NO_SHOW.value
        self.no_show_at = at or _utcnow()
        logger.info(f"Booking {self.id} marked as no-show")

    def cancel(
        self,
        cancelled_by_id: Optional[str],
        reason: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = at or _utcnow()
        self.cancelled_by_id = cancelled_by_id
        self.cancellation_reason = reason
        logger.info(f"Booking {self.id} cancelled by {cancelled_by_id}")


# Exclusivity of the exact start slot among bookings that hold it
_ACTIVE_SLOT_PREDICATE = "status IN (" + ", ".join(f"'{s}'" for s in ACTIVE_BOOKING_STATUSES) + ")"

Index(
    ACTIVE_SLOT_INDEX,
    Booking.resource_id,
    Booking.booking_date,
    Booking.start_time,
    unique=True,
    postgresql_where=text(_ACTIVE_SLOT_PREDICATE),
    sqlite_where=text(_ACTIVE_SLOT_PREDICATE),
)

Index("ix_bookings_resource_date_status", Booking.resource_id, Booking.booking_date, Booking.status)
