# backend/courtbook/core/enums.py
"""
Core enums for the Courtbook booking engine.

Status columns are stored as plain strings; these enums provide the
canonical values used throughout services, schemas and models.
"""

from enum import Enum


class ActorRole(str, Enum):
    """Role of the caller as resolved by the upstream auth layer."""

    CLIENT = "client"
    STAFF = "staff"
    ADMIN = "admin"

    @property
    def is_privileged(self) -> bool:
        return self in (ActorRole.STAFF, ActorRole.ADMIN)


class ResourceKind(str, Enum):
    COURT = "court"
    AMENITY = "amenity"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED = "cancelled"


# Statuses that hold exclusivity over their interval
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.IN_PROGRESS.value,
)

# Statuses a booking may still be cancelled from
CANCELLABLE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    FAILED = "failed"


class RecurringPaymentStatus(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    PENDING = "pending"
    PAID = "paid"
    PAID_IN_ADVANCE = "paid_in_advance"


PAID_RECURRING_STATUSES = (
    RecurringPaymentStatus.PAID.value,
    RecurringPaymentStatus.PAID_IN_ADVANCE.value,
)


class RecurringGroupStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class RecurringCancelMode(str, Enum):
    SINGLE = "single"
    FROM_DATE = "from_date"
    ALL_PENDING = "all_pending"


class CancellationPolicy(str, Enum):
    FULL_REFUND = "full_refund"
    PARTIAL_REFUND = "partial_refund"
    NO_REFUND = "no_refund"
    CREDIT = "credit"


class RecurringCancellationPolicy(str, Enum):
    CREDIT = "credit"
    REFUND_UNUSED = "refund_unused"
    NONE = "none"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    MERCADOPAGO = "mercadopago"
    OTHER = "other"


class CashRegisterStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
