# backend/courtbook/models/establishment.py
"""
Establishment and opening-hours models.

An establishment owns the bookable resources and carries the scheduling
policy applied to them: weekly opening hours, cancellation/refund rules and
the limits for recurring series. Opening hours are stored as one typed row per
weekday, optionally overridden per resource.
"""

from dataclasses import dataclass
from datetime import time
import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import CancellationPolicy, RecurringCancellationPolicy
from ..core.ulid_helper import generate_ulid
from ..database import Base
from ..utils.time_utils import crosses_midnight, resolve_close, to_minutes

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIME = time(8, 0)
DEFAULT_CLOSE_TIME = time(22, 0)


@dataclass(frozen=True)
class OpeningWindow:
    """Resolved opening window for one weekday, in extended minutes."""

    weekday: int
    open_time: time
    close_time: time
    is_closed: bool = False

    @property
    def open_minutes(self) -> int:
        return to_minutes(self.open_time)

    @property
    def close_minutes(self) -> int:
        return resolve_close(self.open_minutes, to_minutes(self.close_time))

    @property
    def crosses_midnight(self) -> bool:
        return crosses_midnight(self.open_minutes, to_minutes(self.close_time))

    def contains(self, start_minutes: int, end_minutes: int) -> bool:
        """Whether ``[start, end)`` in extended minutes lies inside the window."""
        if self.is_closed:
            return False
        return self.open_minutes <= start_minutes and end_minutes <= self.close_minutes


class Establishment(Base):
    """A sports facility and its scheduling policy."""

    __tablename__ = "establishments"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    name = Column(String(200), nullable=False)
    timezone = Column(String(64), nullable=False, default="America/Argentina/Buenos_Aires")
    webhook_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Booking policy
    min_advance_booking_hours = Column(Integer, nullable=False, default=0)
    min_cancellation_notice_hours = Column(Integer, nullable=False, default=2)
    cancellation_policy = Column(
        String(20), nullable=False, default=CancellationPolicy.PARTIAL_REFUND.value
    )
    refund_percentage = Column(Integer, nullable=False, default=50)

    # Recurring series policy
    recurring_min_weeks = Column(Integer, nullable=False, default=4)
    recurring_max_weeks = Column(Integer, nullable=False, default=24)
    recurring_cancellation_policy = Column(
        String(20), nullable=False, default=RecurringCancellationPolicy.CREDIT.value
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    resources = relationship("Resource", back_populates="establishment")
    opening_hours = relationship(
        "OpeningHours", back_populates="establishment", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "cancellation_policy IN ('full_refund', 'partial_refund', 'no_refund', 'credit')",
            name="ck_establishments_cancellation_policy",
        ),
        CheckConstraint(
            "recurring_cancellation_policy IN ('credit', 'refund_unused', 'none')",
            name="ck_establishments_recurring_cancellation_policy",
        ),
        CheckConstraint(
            "refund_percentage >= 0 AND refund_percentage <= 100",
            name="ck_establishments_refund_percentage",
        ),
        CheckConstraint(
            "recurring_min_weeks >= 1 AND recurring_max_weeks >= recurring_min_weeks",
            name="ck_establishments_recurring_weeks",
        ),
    )

    def __repr__(self) -> str:
        return f"<Establishment {self.id}: {self.name}>"


class OpeningHours(Base):
    """
    Opening window for one weekday (0 = Monday).

    Rows with ``resource_id`` set override the establishment-wide row for that
    resource. A close time at or before the open time means the window closes
    after local midnight.
    """

    __tablename__ = "opening_hours"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    establishment_id = Column(
        String(26), ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    resource_id = Column(
        String(26), ForeignKey("resources.id", ondelete="CASCADE"), nullable=True, index=True
    )
    weekday = Column(Integer, nullable=False)
    open_time = Column(Time, nullable=False, default=DEFAULT_OPEN_TIME)
    close_time = Column(Time, nullable=False, default=DEFAULT_CLOSE_TIME)
    is_closed = Column(Boolean, nullable=False, default=False)

    establishment = relationship("Establishment", back_populates="opening_hours")

    __table_args__ = (
        UniqueConstraint(
            "establishment_id", "resource_id", "weekday", name="uq_opening_hours_weekday"
        ),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_opening_hours_weekday"),
    )

    def to_window(self) -> OpeningWindow:
        return OpeningWindow(
            weekday=self.weekday,
            open_time=self.open_time,
            close_time=self.close_time,
            is_closed=bool(self.is_closed),
        )


def default_window(weekday: int, open_time: Optional[time] = None, close_time: Optional[time] = None) -> OpeningWindow:
    return OpeningWindow(
        weekday=weekday,
        open_time=open_time or DEFAULT_OPEN_TIME,
        close_time=close_time or DEFAULT_CLOSE_TIME,
    )
