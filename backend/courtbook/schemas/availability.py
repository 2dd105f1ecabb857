"""Availability schemas."""

from datetime import date
from decimal import Decimal
from typing import List

from ._strict_base import StrictModel


class AvailabilitySlotResponse(StrictModel):
    start: str
    end: str
    is_booked: bool
    next_day: bool
    price: Decimal


class ResourceAvailabilityResponse(StrictModel):
    resource_id: str
    date: date
    duration_minutes: int
    slots: List[AvailabilitySlotResponse]
