# backend/courtbook/schemas/booking.py
"""
Booking schemas for Courtbook.

Request models are strict (unknown fields are rejected); response models are
built from ORM objects.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from ..core.enums import BookingStatus, PaymentMethod
from ._strict_base import StrictModel, StrictRequestModel
from ._validators import ensure_date_only, parse_time_value


class ClientInfo(StrictRequestModel):
    client_id: Optional[str] = Field(None, description="Client record, when known")
    client_name: Optional[str] = Field(None, max_length=200)
    client_phone: Optional[str] = Field(None, max_length=50)
    client_email: Optional[str] = Field(None, max_length=255)


class BookingCreate(ClientInfo):
    """
    Create a single booking.

    Courts and amenities are both resources; ``amenity_id`` is accepted as an
    alias for ``resource_id``.
    """

    resource_id: Optional[str] = Field(None, description="Court or amenity to book")
    amenity_id: Optional[str] = Field(None, description="Amenity to book")
    booking_date: date = Field(..., description="Operating date of the booking")
    start_time: time = Field(..., description="Start time (HH:MM)")
    duration_minutes: int = Field(..., gt=0, le=720, description="Duration in minutes")
    notes: Optional[str] = Field(None, max_length=1000)
    deposit_amount: Decimal = Field(Decimal("0"), ge=0, description="Deposit taken on creation")
    deposit_method: Optional[PaymentMethod] = Field(None, description="How the deposit was paid")
    status: Optional[BookingStatus] = Field(
        None, description="Initial status; honoured for staff and admins only"
    )

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "booking_date")

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return parse_time_value(v)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v

    @model_validator(mode="after")
    def _require_resource(self) -> "BookingCreate":
        if not (self.resource_id or self.amenity_id):
            raise ValueError("resource_id or amenity_id is required")
        if self.resource_id and self.amenity_id and self.resource_id != self.amenity_id:
            raise ValueError("Provide either resource_id or amenity_id, not both")
        if self.deposit_amount > 0 and self.deposit_method is None:
            raise ValueError("deposit_method is required when a deposit is supplied")
        return self

    @property
    def target_resource_id(self) -> str:
        return str(self.resource_id or self.amenity_id)


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatus = Field(..., description="Requested status")
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class BookingReschedule(StrictRequestModel):
    """Move a booking in time and/or to another resource of the same establishment."""

    resource_id: Optional[str] = None
    booking_date: Optional[date] = None
    start_time: Optional[time] = None
    duration_minutes: Optional[int] = Field(None, gt=0, le=720)

    @field_validator("booking_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "booking_date")

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return parse_time_value(v)

    @model_validator(mode="after")
    def _require_change(self) -> "BookingReschedule":
        if not any(
            v is not None
            for v in (self.resource_id, self.booking_date, self.start_time, self.duration_minutes)
        ):
            raise ValueError("At least one field must change")
        return self


class PaymentCreate(StrictRequestModel):
    amount: Decimal = Field(..., gt=0, description="Amount paid")
    method: PaymentMethod = Field(PaymentMethod.CASH, description="Payment method")
    notes: Optional[str] = Field(None, max_length=500)


class BookingResponse(StrictModel):
    id: str
    establishment_id: str
    resource_id: str
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: int
    status: str
    payment_status: str
    total_amount: Decimal
    deposit_amount: Decimal
    deposit_method: Optional[str] = None
    is_recurring: bool
    recurring_group_id: Optional[str] = None
    recurring_sequence: Optional[int] = None
    recurring_payment_status: str
    check_in_code: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class RefundEstimateResponse(StrictModel):
    amount: Decimal
    policy: str
    action: str


class BookingCancellationResponse(StrictModel):
    booking: BookingResponse
    refund_estimate: RefundEstimateResponse
