# backend/courtbook/schemas/recurring_booking.py
"""Schemas for recurring booking series."""

from datetime import date, time
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import Field, field_validator, model_validator

from ..core.enums import PaymentMethod, RecurringCancelMode
from ._strict_base import StrictModel, StrictRequestModel
from ._validators import ensure_date_only, parse_time_value
from .booking import BookingResponse, ClientInfo


class RecurringAvailabilityRequest(StrictRequestModel):
    resource_id: str
    dates: List[date] = Field(..., min_length=1, max_length=104)
    start_time: time
    duration_minutes: int = Field(..., gt=0, le=720)
    sport: Optional[str] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return parse_time_value(v)


class DateConfiguration(StrictRequestModel):
    """Per-date override: pin a resource, or skip the date entirely."""

    date: date
    resource_id: Optional[str] = None
    skip: bool = False

    @field_validator("date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "date")


class InitialPayment(StrictRequestModel):
    amount: Decimal = Field(..., ge=0)
    method: PaymentMethod = PaymentMethod.CASH


class RecurringGroupCreate(ClientInfo):
    resource_id: str = Field(..., description="Primary court or amenity")
    start_date: date
    start_time: time
    duration_minutes: int = Field(..., gt=0, le=720)
    total_weeks: int = Field(..., gt=0, le=104)
    price_per_booking: Optional[Decimal] = Field(
        None, ge=0, description="Defaults to the resource price for the duration"
    )
    sport: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)
    initial_payment: Optional[InitialPayment] = None
    date_configurations: List[DateConfiguration] = Field(default_factory=list)
    skip_unresolved: bool = Field(
        True, description="Skip dates with no free resource instead of failing"
    )

    @field_validator("start_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "start_date")

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: object) -> object:
        return parse_time_value(v)

    @model_validator(mode="after")
    def _unique_configurations(self) -> "RecurringGroupCreate":
        seen = [c.date for c in self.date_configurations]
        if len(seen) != len(set(seen)):
            raise ValueError("date_configurations must not repeat a date")
        return self


class RecurringPaymentCreate(StrictRequestModel):
    amount: Optional[Decimal] = Field(None, gt=0, description="Defaults to the price per booking")
    method: PaymentMethod = PaymentMethod.CASH
    booking_id: Optional[str] = Field(None, description="Occurrence to pay; defaults to the next one")


class RecurringCancelRequest(StrictRequestModel):
    mode: RecurringCancelMode = RecurringCancelMode.ALL_PENDING
    booking_id: Optional[str] = Field(None, description="Reference occurrence")
    from_date: Optional[date] = Field(None, description="Reference date for from_date mode")
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _require_reference(self) -> "RecurringCancelRequest":
        if self.mode == RecurringCancelMode.SINGLE and not self.booking_id:
            raise ValueError("booking_id is required for single cancellation")
        return self

    @property
    def reference(self) -> Optional[Union[str, date]]:
        if self.mode == RecurringCancelMode.FROM_DATE and self.from_date is not None:
            return self.from_date
        return self.booking_id


# Responses


class AlternativeResourceResponse(StrictModel):
    resource_id: str
    name: str
    available: bool


class OccurrenceAvailabilityResponse(StrictModel):
    date: date
    day_of_week: int
    primary_available: bool
    conflict_with: List[dict] = Field(default_factory=list)
    alternatives: List[AlternativeResourceResponse] = Field(default_factory=list)
    selected_resource_id: Optional[str] = None
    unresolved: bool
    error: Optional[str] = None


class AvailabilitySummaryResponse(StrictModel):
    total: int
    available: int
    needs_alternative: int
    unavailable: int


class RecurringAvailabilityResponse(StrictModel):
    dates: List[OccurrenceAvailabilityResponse]
    summary: AvailabilitySummaryResponse


class RecurringGroupResponse(StrictModel):
    id: str
    establishment_id: str
    primary_resource_id: str
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    day_of_week: int
    start_time: time
    end_time: time
    duration_minutes: int
    start_date: date
    end_date: date
    sport: Optional[str] = None
    total_occurrences: int
    price_per_booking: Decimal
    paid_bookings_count: int
    total_paid: Decimal
    cancelled_occurrences: int
    status: str


class RecurringGroupDetailResponse(StrictModel):
    group: RecurringGroupResponse
    bookings: List[BookingResponse]


class RecurringRefundEstimateResponse(StrictModel):
    amount: Decimal
    paid_occurrences: int
    policy: str
    action: str


class RecurringCancellationResponse(StrictModel):
    group: RecurringGroupResponse
    cancelled_bookings: List[BookingResponse]
    refund_estimate: RecurringRefundEstimateResponse


class PendingOccurrencesSummary(StrictModel):
    total: int
    paid: int
    unpaid: int
    unpaid_amount: Decimal


class PendingOccurrencesResponse(StrictModel):
    bookings: List[BookingResponse]
    summary: PendingOccurrencesSummary
