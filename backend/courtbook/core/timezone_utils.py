"""
Timezone utilities for Courtbook.

Provides establishment-based timezone support. Booking dates and times are
stored as local wall-clock values of the establishment that owns the resource.
"""

from datetime import date, datetime, time
from typing import TYPE_CHECKING, Optional

import pytz

from .config import settings

if TYPE_CHECKING:
    from ..models.establishment import Establishment


def get_establishment_timezone(establishment: Optional["Establishment"]) -> pytz.BaseTzInfo:
    """Return the establishment's timezone, falling back to the configured default."""
    tz_name = getattr(establishment, "timezone", None) or settings.default_timezone
    return pytz.timezone(tz_name)


def to_establishment_time(dt: datetime, establishment: Optional["Establishment"]) -> datetime:
    """
    Convert a datetime to the establishment's timezone.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(get_establishment_timezone(establishment))


def get_establishment_today(establishment: Optional["Establishment"], now: datetime) -> date:
    """Get 'today' in the establishment's timezone for the given instant."""
    return to_establishment_time(now, establishment).date()


def localize_wall_clock(
    establishment: Optional["Establishment"], local_date: date, local_time: time
) -> datetime:
    """Attach the establishment's timezone to a local date/time pair."""
    tz = get_establishment_timezone(establishment)
    return tz.localize(datetime.combine(local_date, local_time))
