"""
Minute-of-day arithmetic for opening windows and booking intervals.

All comparisons happen in "extended minutes": minutes since the local midnight
that opens an operating day. Values above 1439 belong to the after-midnight
part of a window that closes on the next calendar day. Conversion back to a
plain clock time happens only for display.
"""

from __future__ import annotations

from datetime import time
from typing import Optional, Union

MINUTES_PER_DAY = 24 * 60

TimeLike = Union[str, time]


def to_minutes(value: TimeLike) -> int:
    """
    Parse ``HH:MM`` / ``HH:MM:SS`` (or a ``time``) into minutes since midnight.

    Seconds are truncated. Raises ValueError for malformed or out-of-range input.
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise ValueError(f"Unsupported time value: {value!r}")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time format: {value!r}")

    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    if not (0 <= hours <= 23 and 0 <= minutes <= 59 and 0 <= seconds <= 59):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def resolve_close(open_minutes: int, close_minutes: int) -> int:
    """Return the close in extended minutes; a close at or before the open crosses midnight."""
    if close_minutes <= open_minutes:
        return close_minutes + MINUTES_PER_DAY
    return close_minutes


def crosses_midnight(open_minutes: int, close_minutes: int) -> bool:
    return resolve_close(open_minutes, close_minutes) > MINUTES_PER_DAY


def display_minutes(extended_minutes: int) -> int:
    """Fold an extended minute back onto a 0-1439 clock. Rendering only."""
    return extended_minutes % MINUTES_PER_DAY


def project_into_window(
    raw_minutes: int,
    window_open_minutes: Optional[int],
    window_crosses_midnight: bool = True,
) -> int:
    """
    Align a stored 0-1439 time with a midnight-crossing window.

    A raw time earlier than the window open belongs to the next-day portion of
    the window and is shifted by a full day. ``window_open_minutes=None`` or a
    window that stays within one day leaves the value untouched.
    """
    if window_open_minutes is None or not window_crosses_midnight:
        return raw_minutes
    if raw_minutes < window_open_minutes:
        return raw_minutes + MINUTES_PER_DAY
    return raw_minutes


def interval_end(start_minutes: int, end_minutes: Optional[int], duration_minutes: Optional[int]) -> int:
    """
    Compute the extended end of an interval starting at ``start_minutes``.

    A stored end time wins over duration. A stored end at or before the start
    wraps past midnight.
    """
    if end_minutes is not None:
        if end_minutes <= start_minutes:
            return end_minutes + MINUTES_PER_DAY
        return end_minutes
    if duration_minutes is None:
        raise ValueError("Either an end time or a duration is required")
    return start_minutes + duration_minutes


def minutes_to_time_str(minutes: int) -> str:
    """Render extended minutes as ``HH:MM`` on the 24h clock."""
    clock = display_minutes(minutes)
    return f"{clock // 60:02d}:{clock % 60:02d}"


def minutes_to_time(minutes: int) -> time:
    clock = display_minutes(minutes)
    return time(clock // 60, clock % 60)
