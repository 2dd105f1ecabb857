# backend/courtbook/models/payment.py
"""
Payment records and the cash-register ledger.

BookingPayment rows are the durable record of money taken for a booking.
Cash registers are opened per establishment and user; every payment taken by
a user with an open register is mirrored as a ``sale`` movement in the same
transaction as the booking change it accompanies.
"""

import logging

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import CashRegisterStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)


class BookingPayment(Base):
    __tablename__ = "booking_payments"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(30), nullable=False)
    payment_type = Column(String(30), nullable=False, default="deposit")
    notes = Column(Text, nullable=True)
    registered_by_id = Column(String(26), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="payments")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_booking_payments_amount_positive"),)

    def __repr__(self) -> str:
        return f"<BookingPayment {self.id}: booking={self.booking_id}, amount={self.amount}>"


class CashRegister(Base):
    __tablename__ = "cash_registers"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    establishment_id = Column(
        String(26), ForeignKey("establishments.id"), nullable=False, index=True
    )
    user_id = Column(String(26), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=CashRegisterStatus.OPEN.value)

    total_sales = Column(Numeric(12, 2), nullable=False, default=0)
    total_cash = Column(Numeric(12, 2), nullable=False, default=0)
    total_card = Column(Numeric(12, 2), nullable=False, default=0)
    total_transfer = Column(Numeric(12, 2), nullable=False, default=0)
    total_other = Column(Numeric(12, 2), nullable=False, default=0)

    opened_at = Column(DateTime(timezone=True), server_default=func.now())
    closed_at = Column(DateTime(timezone=True), nullable=True)

    movements = relationship(
        "CashRegisterMovement", back_populates="cash_register", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("status IN ('open', 'closed')", name="ck_cash_registers_status"),
    )


class CashRegisterMovement(Base):
    __tablename__ = "cash_register_movements"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    cash_register_id = Column(
        String(26), ForeignKey("cash_registers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    establishment_id = Column(String(26), ForeignKey("establishments.id"), nullable=False)
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True
    )
    movement_type = Column(String(20), nullable=False, default="sale")
    amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    registered_by_id = Column(String(26), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    cash_register = relationship("CashRegister", back_populates="movements")
