# backend/courtbook/services/conflict_checker.py
"""
Conflict Checker Service for Courtbook

Handles interval conflict detection for a resource and operating date:
- Loading the active bookings that hold exclusivity on the date
- Aligning stored clock times with a midnight-crossing opening window
- Half-open overlap tests (back-to-back bookings don't conflict)
- Freeing an exact slot held only by cancelled history
"""

from dataclasses import dataclass
from datetime import date, time
import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ..models.booking import Booking
from ..models.establishment import OpeningWindow
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from ..utils.time_utils import (
    TimeLike,
    interval_end,
    minutes_to_time_str,
    project_into_window,
    to_minutes,
)
from .base import BaseService, Clock

logger = logging.getLogger(__name__)

MinuteLike = Union[int, TimeLike]


@dataclass(frozen=True)
class BookingInterval:
    """An active booking expressed in the extended minutes of its operating day."""

    booking_id: str
    start_minutes: int
    end_minutes: int
    status: str

    def overlaps(self, start_minutes: int, end_minutes: int) -> bool:
        return start_minutes < self.end_minutes and end_minutes > self.start_minutes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "start_time": minutes_to_time_str(self.start_minutes),
            "end_time": minutes_to_time_str(self.end_minutes),
            "status": self.status,
        }


def _window_open(window: Optional[OpeningWindow]) -> Optional[int]:
    if window is None or not window.crosses_midnight:
        return None
    return window.open_minutes


def _align(start: int, end: int, open_minutes: Optional[int]) -> tuple[int, int]:
    """Project an interval into the window, preserving its length."""
    projected = project_into_window(start, open_minutes)
    return projected, projected + (end - start)


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts.

    Only bookings in pending, confirmed or in_progress status hold a slot.
    """

    def __init__(
        self,
        db: Session,
        repository: Optional[ConflictCheckerRepository] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock=clock)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    def booked_intervals(
        self,
        resource_id: str,
        check_date: date,
        window: Optional[OpeningWindow] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> List[BookingInterval]:
        """Active bookings on the date, aligned with ``window`` when it crosses midnight."""
        open_minutes = _window_open(window)
        bookings = self.repository.get_bookings_for_conflict_check(
            resource_id, check_date, exclude_booking_id
        )
        return [self._to_interval(b, open_minutes) for b in bookings]

    @staticmethod
    def _to_interval(booking: Booking, open_minutes: Optional[int]) -> BookingInterval:
        start = to_minutes(booking.start_time)
        end_raw = to_minutes(booking.end_time) if booking.end_time is not None else None
        end = interval_end(start, end_raw, booking.duration_minutes)
        start, end = _align(start, end, open_minutes)
        return BookingInterval(
            booking_id=booking.id,
            start_minutes=start,
            end_minutes=end,
            status=booking.status,
        )

    @staticmethod
    def proposed_interval(
        proposed_start: MinuteLike,
        proposed_end: MinuteLike,
        window: Optional[OpeningWindow] = None,
    ) -> tuple[int, int]:
        """
        Normalize a proposed interval into extended minutes.

        Integers are taken as already-computed minutes; strings and ``time``
        values are parsed. An end at or before the start wraps past midnight.
        """
        start = proposed_start if isinstance(proposed_start, int) else to_minutes(proposed_start)
        end_raw = proposed_end if isinstance(proposed_end, int) else to_minutes(proposed_end)
        end = interval_end(start, end_raw, None)
        return _align(start, end, _window_open(window))

    @BaseService.measure_operation("check_booking_conflicts")
    def check_booking_conflicts(
        self,
        resource_id: str,
        check_date: date,
        proposed_start: MinuteLike,
        proposed_end: MinuteLike,
        exclude_booking_id: Optional[str] = None,
        window: Optional[OpeningWindow] = None,
    ) -> List[Dict[str, Any]]:
        """
        Check if a proposed interval overlaps active bookings.

        Args:
            resource_id: The resource to check
            check_date: The operating date
            proposed_start: Start of the proposed interval
            proposed_end: End of the proposed interval
            exclude_booking_id: Booking to ignore (the one being edited)
            window: Opening window of the date; needed when it crosses midnight

        Returns:
            Conflicting bookings as dicts, empty when the interval is free
        """
        start, end = self.proposed_interval(proposed_start, proposed_end, window)
        conflicts = [
            interval.to_dict()
            for interval in self.booked_intervals(
                resource_id, check_date, window=window, exclude_booking_id=exclude_booking_id
            )
            if interval.overlaps(start, end)
        ]

        if conflicts:
            self.logger.info(
                f"Found {len(conflicts)} booking conflicts for resource {resource_id} "
                f"on {check_date} between {minutes_to_time_str(start)}-{minutes_to_time_str(end)}"
            )

        return conflicts

    def has_conflict(
        self,
        resource_id: str,
        check_date: date,
        proposed_start: MinuteLike,
        proposed_end: MinuteLike,
        exclude_booking_id: Optional[str] = None,
        window: Optional[OpeningWindow] = None,
    ) -> bool:
        """Boolean form of check_booking_conflicts."""
        return bool(
            self.check_booking_conflicts(
                resource_id,
                check_date,
                proposed_start,
                proposed_end,
                exclude_booking_id=exclude_booking_id,
                window=window,
            )
        )

    def purge_exact_cancelled_slot(self, resource_id: str, slot_date: date, start_time: time) -> int:
        """
        Remove cancelled bookings on the exact (resource, date, start) tuple.

        Runs inside the caller's transaction, right before the insert or move
        that reuses the slot.
        """
        removed = self.repository.delete_cancelled_at_slot(resource_id, slot_date, start_time)
        if removed:
            self.logger.info(
                f"Purged {removed} cancelled booking(s) at {resource_id} {slot_date} {start_time}"
            )
        return removed
