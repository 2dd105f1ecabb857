# backend/courtbook/models/__init__.py
"""
SQLAlchemy models for Courtbook.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import Booking
from .consumption import BookingConsumption
from .establishment import Establishment, OpeningHours, OpeningWindow
from .payment import BookingPayment, CashRegister, CashRegisterMovement
from .recurring_booking_group import RecurringBookingGroup
from .resource import Resource

__all__ = [
    "Booking",
    "BookingConsumption",
    "BookingPayment",
    "CashRegister",
    "CashRegisterMovement",
    "Establishment",
    "OpeningHours",
    "OpeningWindow",
    "RecurringBookingGroup",
    "Resource",
]
