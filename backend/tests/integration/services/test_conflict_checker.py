"""Integration tests for ConflictChecker against a real database."""

from datetime import time

import pytest

from courtbook.core.enums import BookingStatus
from courtbook.models.booking import Booking
from courtbook.models.establishment import OpeningWindow
from courtbook.services.conflict_checker import ConflictChecker

from tests.conftest import MONDAY

LATE_WINDOW = OpeningWindow(weekday=0, open_time=time(18, 0), close_time=time(2, 0))


@pytest.fixture
def checker(db, clock):
    return ConflictChecker(db, clock=clock)


class TestOverlap:
    def test_overlapping_interval_conflicts(self, checker, court, make_booking):
        existing = make_booking(start=time(18, 0), end=time(19, 0))

        conflicts = checker.check_booking_conflicts(court.id, MONDAY, "18:30", "19:30")

        assert [c["booking_id"] for c in conflicts] == [existing.id]
        assert conflicts[0]["start_time"] == "18:00"

    def test_back_to_back_intervals_do_not_conflict(self, checker, court, make_booking):
        make_booking(start=time(18, 0), end=time(19, 0))

        assert not checker.has_conflict(court.id, MONDAY, "19:00", "20:00")
        assert not checker.has_conflict(court.id, MONDAY, "17:00", "18:00")

    def test_enclosing_interval_conflicts(self, checker, court, make_booking):
        make_booking(start=time(18, 30), end=time(19, 0))
        assert checker.has_conflict(court.id, MONDAY, "18:00", "20:00")

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value, BookingStatus.NO_SHOW.value],
    )
    def test_inactive_bookings_hold_no_slot(self, checker, court, make_booking, status):
        make_booking(status=status)
        assert not checker.has_conflict(court.id, MONDAY, "18:00", "19:00")

    @pytest.mark.parametrize(
        "status",
        [BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value, BookingStatus.IN_PROGRESS.value],
    )
    def test_active_bookings_hold_their_slot(self, checker, court, make_booking, status):
        make_booking(status=status)
        assert checker.has_conflict(court.id, MONDAY, "18:00", "19:00")

    def test_excluded_booking_is_ignored(self, checker, court, make_booking):
        existing = make_booking()
        assert not checker.has_conflict(
            court.id, MONDAY, "18:00", "19:00", exclude_booking_id=existing.id
        )

    def test_other_resources_and_dates_are_ignored(self, checker, court, second_court, make_booking):
        make_booking(resource=second_court)
        make_booking(booking_date=MONDAY.replace(day=4))
        assert not checker.has_conflict(court.id, MONDAY, "18:00", "19:00")


class TestMidnightCrossing:
    def test_after_midnight_booking_matches_extended_proposal(self, checker, court, make_booking):
        make_booking(start=time(0, 30), end=time(1, 30))

        # 24:30-25:30 in extended minutes
        assert checker.has_conflict(court.id, MONDAY, 1470, 1530, window=LATE_WINDOW)

    def test_clock_times_are_projected_with_the_window(self, checker, court, make_booking):
        make_booking(start=time(0, 30), end=time(1, 30))
        assert checker.has_conflict(court.id, MONDAY, "01:00", "02:00", window=LATE_WINDOW)

    def test_booking_spanning_midnight_blocks_early_slot(self, checker, court, make_booking):
        make_booking(start=time(23, 30), end=time(0, 30))

        assert checker.has_conflict(court.id, MONDAY, "00:00", "01:00", window=LATE_WINDOW)
        assert not checker.has_conflict(court.id, MONDAY, "00:30", "01:30", window=LATE_WINDOW)

    def test_evening_booking_does_not_block_after_midnight(self, checker, court, make_booking):
        make_booking(start=time(18, 0), end=time(19, 0))
        assert not checker.has_conflict(court.id, MONDAY, "00:00", "01:00", window=LATE_WINDOW)


class TestPurge:
    def test_removes_only_cancelled_rows_at_exact_slot(self, db, checker, court, make_booking):
        cancelled = make_booking(status=BookingStatus.CANCELLED.value)
        other_start = make_booking(start=time(20, 0), end=time(21, 0), status=BookingStatus.CANCELLED.value)

        removed = checker.purge_exact_cancelled_slot(court.id, MONDAY, time(18, 0))
        db.commit()

        assert removed == 1
        remaining = {b.id for b in db.query(Booking).all()}
        assert cancelled.id not in remaining
        assert other_start.id in remaining

    def test_leaves_active_rows_alone(self, db, checker, court, make_booking):
        active = make_booking()

        assert checker.purge_exact_cancelled_slot(court.id, MONDAY, time(18, 0)) == 0
        assert db.query(Booking).filter(Booking.id == active.id).count() == 1
