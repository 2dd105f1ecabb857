"""Booking domain events."""
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional


@dataclass
class BookingConfirmed:
    """Fired after a booking reaches confirmed status and the change is committed."""

    booking_id: str
    establishment_id: str
    resource_id: str
    booking_date: date
    start_time: str
    end_time: str
    confirmed_at: datetime
    client_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCancelled:
    """Fired after a booking is cancelled."""

    booking_id: str
    establishment_id: str
    cancelled_by: Optional[str]
    cancelled_at: datetime
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RecurringGroupCreated:
    """Fired after a recurring series and all its occurrences are committed."""

    group_id: str
    establishment_id: str
    resource_id: str
    booking_ids: List[str]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
