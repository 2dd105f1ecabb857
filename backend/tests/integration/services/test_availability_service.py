"""Integration tests for AvailabilityService."""

from datetime import time
from decimal import Decimal

import pytest

from courtbook.core.enums import BookingStatus
from courtbook.core.exceptions import NotFoundException, ValidationException
from courtbook.services.availability_service import AvailabilityService

from tests.conftest import MONDAY


@pytest.fixture
def service(db, clock):
    return AvailabilityService(db, clock=clock)


def _slot(slots, start):
    return next(s for s in slots if s.start == start)


class TestGetAvailability:
    def test_default_hours_when_none_configured(self, service, court):
        slots = service.get_availability(court.id, MONDAY, 60)

        assert (slots[0].start, slots[0].end) == ("08:00", "09:00")
        assert (slots[-1].start, slots[-1].end) == ("21:00", "22:00")
        assert all(not s.is_booked for s in slots)
        assert slots[0].price == Decimal("10000.00")

    def test_marks_overlapping_slots_booked(self, service, court, make_booking):
        make_booking(start=time(18, 0), end=time(19, 0))
        slots = service.get_availability(court.id, MONDAY, 60)

        assert _slot(slots, "17:30").is_booked
        assert _slot(slots, "18:00").is_booked
        assert _slot(slots, "18:30").is_booked
        assert not _slot(slots, "17:00").is_booked
        assert not _slot(slots, "19:00").is_booked

    def test_cancelled_bookings_free_their_slots(self, service, court, make_booking):
        make_booking(status=BookingStatus.CANCELLED.value)
        assert not _slot(service.get_availability(court.id, MONDAY, 60), "18:00").is_booked

    def test_closed_day_is_empty(self, service, court, set_hours):
        set_hours(MONDAY.weekday(), time(8, 0), time(22, 0), is_closed=True)
        assert service.get_availability(court.id, MONDAY, 60) == []

    def test_resource_hours_override_establishment_hours(self, service, court, set_hours):
        set_hours(MONDAY.weekday(), time(8, 0), time(22, 0))
        set_hours(MONDAY.weekday(), time(10, 0), time(12, 0), resource=court)

        slots = service.get_availability(court.id, MONDAY, 60)
        assert [s.start for s in slots] == ["10:00", "10:30", "11:00"]

    def test_after_midnight_slots_are_flagged_and_checked(self, service, court, set_hours, make_booking):
        set_hours(MONDAY.weekday(), time(18, 0), time(1, 30))
        make_booking(start=time(0, 30), end=time(1, 30))

        slots = service.get_availability(court.id, MONDAY, 60)

        midnight = _slot(slots, "00:00")
        assert midnight.next_day
        assert midnight.is_booked
        assert not _slot(slots, "18:00").next_day
        assert not _slot(slots, "23:00").is_booked
        assert slots[-1].start == "00:30"

    def test_uses_tier_price_for_duration(self, service, court):
        slots = service.get_availability(court.id, MONDAY, 90)
        assert slots[0].price == Decimal("14000.00")


def test_rejects_non_positive_duration(service, court):
    with pytest.raises(ValidationException):
        service.get_availability(court.id, MONDAY, 0)


def test_unknown_resource(service):
    with pytest.raises(NotFoundException):
        service.get_availability("01JUNKNOWNRESOURCE00000000", MONDAY, 60)
