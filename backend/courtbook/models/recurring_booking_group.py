# backend/courtbook/models/recurring_booking_group.py
"""
RecurringBookingGroup model.

A weekly series of bookings on one primary resource. The counters are a cache
of aggregates over the child bookings and are always rewritten from them
(see RecurringBookingRepository.recompute_counters).
"""

import logging

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import RecurringGroupStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class RecurringBookingGroup(Base):
    __tablename__ = "recurring_booking_groups"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    establishment_id = Column(
        String(26), ForeignKey("establishments.id"), nullable=False, index=True
    )
    primary_resource_id = Column(String(26), ForeignKey("resources.id"), nullable=False)

    client_id = Column(String(26), nullable=True, index=True)
    client_name = Column(String(200), nullable=True)
    client_phone = Column(String(50), nullable=True)
    client_email = Column(String(255), nullable=True)

    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    sport = Column(String(60), nullable=True)
    notes = Column(Text, nullable=True)

    total_occurrences = Column(Integer, nullable=False)
    price_per_booking = Column(Numeric(10, 2), nullable=False)

    paid_bookings_count = Column(Integer, nullable=False, default=0)
    total_paid = Column(Numeric(10, 2), nullable=False, default=0)
    cancelled_occurrences = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=RecurringGroupStatus.ACTIVE.value)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_by_id = Column(String(26), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    bookings = relationship(
        "Booking",
        back_populates="recurring_group",
        order_by="Booking.recurring_sequence",
    )
    primary_resource = relationship("Resource")

    __table_args__ = (
        CheckConstraint("status IN ('active', 'cancelled')", name="ck_recurring_groups_status"),
        CheckConstraint("total_occurrences > 0", name="ck_recurring_groups_occurrences_positive"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_recurring_groups_weekday"),
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringBookingGroup {self.id}: resource={self.primary_resource_id}, "
            f"{self.start_date}..{self.end_date}, status={self.status}>"
        )
