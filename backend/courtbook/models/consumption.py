# backend/courtbook/models/consumption.py
"""
Companion consumption record opened when a booking is checked in.

The consumption tracks what the client consumes during the booking. It never
stores a status of its own: ``display_status`` is projected from the owning
booking at read time so the two can't disagree.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import BookingStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base

_DISPLAY_STATUS = {
    BookingStatus.PENDING.value: "pending",
    BookingStatus.CONFIRMED.value: "pending",
    BookingStatus.IN_PROGRESS.value: "open",
    BookingStatus.COMPLETED.value: "closed",
    BookingStatus.NO_SHOW.value: "cancelled",
    BookingStatus.CANCELLED.value: "cancelled",
}


class BookingConsumption(Base):
    __tablename__ = "booking_consumptions"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    order_number = Column(String(30), nullable=False, unique=True)
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    establishment_id = Column(String(26), ForeignKey("establishments.id"), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    created_by_id = Column(String(26), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="consumption")

    @property
    def display_status(self) -> str:
        return _DISPLAY_STATUS.get(self.booking.status, "pending")
