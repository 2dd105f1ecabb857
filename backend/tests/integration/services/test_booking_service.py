"""Integration tests for BookingService: creation, lifecycle, moves and payments."""

from datetime import datetime, time, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from courtbook.core.enums import BookingStatus, PaymentMethod, PaymentStatus
from courtbook.core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    CancellationWindowException,
    ConflictException,
    InvalidStatusTransitionException,
    NotFoundException,
    PolicyViolationException,
    ValidationException,
)
from courtbook.models.booking import Booking
from courtbook.models.consumption import BookingConsumption
from courtbook.models.payment import BookingPayment, CashRegisterMovement
from courtbook.schemas.booking import BookingCreate, BookingReschedule, PaymentCreate
from courtbook.services.availability_service import AvailabilityService
from courtbook.services.booking_service import (
    SLOT_TAKEN_MESSAGE,
    BookingService,
    integrity_conflict_message,
)

from tests.conftest import FIXED_NOW, MONDAY


@pytest.fixture
def service(db, clock, event_publisher):
    return BookingService(db, event_publisher=event_publisher, clock=clock)


def _create_data(resource_id, **overrides):
    data = {
        "resource_id": resource_id,
        "booking_date": MONDAY,
        "start_time": "18:00",
        "duration_minutes": 60,
        "client_name": "Lucia Perez",
    }
    data.update(overrides)
    return BookingCreate(**data)


def _active_count(db, resource_id):
    return (
        db.query(Booking)
        .filter(Booking.resource_id == resource_id, Booking.status != BookingStatus.CANCELLED.value)
        .count()
    )


class TestCreateBooking:
    def test_creates_pending_booking_without_deposit(self, service, court, client_actor, published):
        booking = service.create_booking(client_actor, _create_data(court.id))

        assert booking.status == BookingStatus.PENDING.value
        assert booking.start_time == time(18, 0)
        assert booking.end_time == time(19, 0)
        assert booking.total_amount == Decimal("10000.00")
        assert booking.payment_status == PaymentStatus.PENDING.value
        assert len(booking.check_in_code) == 6
        assert booking.check_in_code == booking.check_in_code.upper()
        assert published == []

    def test_deposit_confirms_and_notifies(self, db, service, court, client_actor, published):
        booking = service.create_booking(
            client_actor,
            _create_data(court.id, deposit_amount="4000", deposit_method="cash"),
        )

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.confirmed_at is not None
        assert booking.payment_status == PaymentStatus.PARTIAL.value
        assert db.query(BookingPayment).filter_by(booking_id=booking.id).count() == 1
        assert [event_type for event_type, _ in published] == ["BookingConfirmed"]
        assert published[0][1]["booking_date"] == MONDAY.isoformat()

    def test_amenity_alias_is_accepted(self, service, court, client_actor):
        data = _create_data(None, amenity_id=court.id)
        assert service.create_booking(client_actor, data).resource_id == court.id

    def test_overlap_is_rejected(self, db, service, court, client_actor, make_booking):
        make_booking(start=time(18, 30), end=time(19, 30))

        with pytest.raises(BookingConflictException) as exc_info:
            service.create_booking(client_actor, _create_data(court.id))

        assert exc_info.value.details["conflicts"]
        assert _active_count(db, court.id) == 1

    def test_cancelled_slot_is_reused(self, db, service, court, client_actor, make_booking):
        make_booking(status=BookingStatus.CONFIRMED.value)
        with pytest.raises(BookingConflictException):
            service.create_booking(client_actor, _create_data(court.id))

        occupying = db.query(Booking).one()
        occupying.status = BookingStatus.CANCELLED.value
        db.commit()

        booking = service.create_booking(client_actor, _create_data(court.id))

        assert booking.status == BookingStatus.PENDING.value
        assert db.query(Booking).count() == 1

    @pytest.mark.parametrize("released", [BookingStatus.NO_SHOW, BookingStatus.COMPLETED])
    def test_slot_released_by_finished_booking_can_be_booked(
        self, db, clock, service, court, client_actor, make_booking, released
    ):
        make_booking(status=released.value)
        slots = AvailabilityService(db, clock=clock).get_availability(court.id, MONDAY, 60)
        assert not next(s for s in slots if s.start == "18:00").is_booked

        booking = service.create_booking(client_actor, _create_data(court.id))

        assert booking.status == BookingStatus.PENDING.value
        assert db.query(Booking).filter_by(resource_id=court.id).count() == 2

    def test_unique_violation_becomes_slot_taken_conflict(self, service, court, client_actor):
        error = IntegrityError(
            "INSERT INTO bookings",
            {},
            Exception(
                "UNIQUE constraint failed: bookings.resource_id, bookings.booking_date, "
                "bookings.start_time"
            ),
        )
        with patch.object(service.repository, "create", side_effect=error):
            with pytest.raises(BookingConflictException) as exc_info:
                service.create_booking(client_actor, _create_data(court.id))

        assert exc_info.value.message == SLOT_TAKEN_MESSAGE

    def test_outside_opening_hours(self, service, court, client_actor):
        with pytest.raises(PolicyViolationException) as exc_info:
            service.create_booking(client_actor, _create_data(court.id, start_time="21:30"))
        assert exc_info.value.code == "OUTSIDE_OPENING_HOURS"

    def test_closed_day(self, service, court, client_actor, set_hours):
        set_hours(MONDAY.weekday(), time(8, 0), time(22, 0), is_closed=True)
        with pytest.raises(PolicyViolationException):
            service.create_booking(client_actor, _create_data(court.id))

    def test_after_midnight_booking_stays_on_operating_date(
        self, service, court, client_actor, set_hours, make_booking
    ):
        set_hours(MONDAY.weekday(), time(18, 0), time(2, 0))
        make_booking(start=time(23, 30), end=time(0, 30))

        with pytest.raises(BookingConflictException):
            service.create_booking(client_actor, _create_data(court.id, start_time="00:00"))

        booking = service.create_booking(client_actor, _create_data(court.id, start_time="00:30"))
        assert booking.booking_date == MONDAY
        assert booking.end_time == time(1, 30)

    def test_client_cannot_book_in_the_past(self, service, court, client_actor):
        data = _create_data(court.id, booking_date=FIXED_NOW.date(), start_time="08:00")
        with pytest.raises(PolicyViolationException):
            service.create_booking(client_actor, data)

    def test_staff_may_backfill_and_choose_status(self, service, court, staff_actor):
        data = _create_data(
            court.id, booking_date=FIXED_NOW.date(), start_time="08:00", status="confirmed"
        )
        booking = service.create_booking(staff_actor, data)
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_deposit_above_price_is_rejected(self, service, court, client_actor):
        data = _create_data(court.id, deposit_amount="20000", deposit_method="cash")
        with pytest.raises(ValidationException):
            service.create_booking(client_actor, data)

    def test_inactive_resource(self, db, service, court, client_actor):
        court.is_active = False
        db.commit()
        with pytest.raises(NotFoundException):
            service.create_booking(client_actor, _create_data(court.id))

    def test_notification_failure_does_not_fail_booking(self, db, clock, court, client_actor):
        def broken_enqueue(event_type, payload):
            raise ConnectionError("broker down")

        from courtbook.events import EventPublisher

        service = BookingService(db, event_publisher=EventPublisher(enqueue=broken_enqueue), clock=clock)
        booking = service.create_booking(
            client_actor, _create_data(court.id, deposit_amount="1000", deposit_method="card")
        )

        assert db.query(Booking).filter_by(id=booking.id).one().status == "confirmed"


class TestTransitions:
    def test_full_lifecycle(self, db, service, court, staff_actor, make_booking, published):
        booking = make_booking(status=BookingStatus.PENDING.value)

        service.transition_status(booking.id, BookingStatus.CONFIRMED, staff_actor)
        assert booking.confirmed_at is not None
        assert published[-1][0] == "BookingConfirmed"

        service.transition_status(booking.id, BookingStatus.IN_PROGRESS, staff_actor)
        assert booking.started_at is not None
        consumption = service.repository.get_consumption(booking.id)
        assert consumption is not None
        assert consumption.display_status == "open"

        service.transition_status(booking.id, BookingStatus.COMPLETED, staff_actor)
        assert booking.completed_at is not None
        assert len(booking.review_token) == 64
        db.refresh(consumption)
        assert consumption.display_status == "closed"

    @pytest.mark.parametrize(
        "current,target",
        [
            (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
            (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
            (BookingStatus.PENDING, BookingStatus.COMPLETED),
            (BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED),
            (BookingStatus.NO_SHOW, BookingStatus.CONFIRMED),
        ],
    )
    def test_invalid_transitions(self, service, staff_actor, make_booking, current, target):
        booking = make_booking(status=current.value)
        with pytest.raises(InvalidStatusTransitionException):
            service.transition_status(booking.id, target, staff_actor)

    def test_client_cancellation_outside_notice_window(self, service, client_actor, make_booking, published):
        booking = make_booking()

        service.transition_status(booking.id, BookingStatus.CANCELLED, client_actor, "Rain")

        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.cancellation_reason == "Rain"
        assert booking.cancelled_by_id == client_actor.id
        assert published[-1][0] == "BookingCancelled"

    def test_client_cannot_cancel_close_to_start(self, service, client_actor, make_booking):
        # 10:00 local on the same day is one hour after the fixed clock
        booking = make_booking(booking_date=FIXED_NOW.date(), start=time(10, 0), end=time(11, 0))

        with pytest.raises(CancellationWindowException):
            service.transition_status(booking.id, BookingStatus.CANCELLED, client_actor)
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_staff_bypasses_notice_window(self, service, staff_actor, make_booking):
        booking = make_booking(booking_date=FIXED_NOW.date(), start=time(10, 0), end=time(11, 0))
        service.transition_status(booking.id, BookingStatus.CANCELLED, staff_actor)
        assert booking.status == BookingStatus.CANCELLED.value

    def test_check_ins_get_distinct_order_numbers(self, service, staff_actor, make_booking):
        first = make_booking()
        second = make_booking(start=time(19, 0), end=time(20, 0))

        service.transition_status(first.id, BookingStatus.IN_PROGRESS, staff_actor)
        service.transition_status(second.id, BookingStatus.IN_PROGRESS, staff_actor)

        numbers = {
            service.repository.get_consumption(b.id).order_number for b in (first, second)
        }
        assert len(numbers) == 2
        assert all(n.startswith("ORD-") for n in numbers)

    def test_concurrent_check_in_becomes_conflict(self, db, service, staff_actor, make_booking):
        booking = make_booking()
        # Another session checked the booking in after this one read it
        db.add(
            BookingConsumption(
                order_number="ORD-OTHER-SESSION",
                booking_id=booking.id,
                establishment_id=booking.establishment_id,
            )
        )
        db.commit()

        with patch.object(service.repository, "get_consumption", return_value=None):
            with pytest.raises(ConflictException) as exc_info:
                service.transition_status(booking.id, BookingStatus.IN_PROGRESS, staff_actor)

        assert exc_info.value.code == "CONCURRENT_UPDATE"
        db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED.value
        assert db.query(BookingConsumption).count() == 1

    def test_unknown_booking(self, service, staff_actor):
        with pytest.raises(NotFoundException):
            service.transition_status("01JMISSING0000000000000000", BookingStatus.CONFIRMED, staff_actor)


class TestRefundEstimate:
    @pytest.mark.parametrize(
        "policy,percentage,expected",
        [
            ("full_refund", 50, Decimal("4000")),
            ("partial_refund", 25, Decimal("1000.00")),
            ("no_refund", 50, Decimal("0.00")),
            ("credit", 50, Decimal("4000")),
        ],
    )
    def test_policy_amounts(self, db, service, establishment, make_booking, policy, percentage, expected):
        establishment.cancellation_policy = policy
        establishment.refund_percentage = percentage
        db.commit()
        booking = make_booking(deposit_amount=Decimal("4000"))

        estimate = service.estimate_cancellation_refund(booking)

        assert estimate.policy == policy
        assert estimate.amount == expected


class TestReschedule:
    def test_moves_to_free_time(self, service, staff_actor, make_booking):
        booking = make_booking()
        service.reschedule_booking(booking.id, staff_actor, BookingReschedule(start_time="20:00"))
        assert (booking.start_time, booking.end_time) == (time(20, 0), time(21, 0))

    def test_move_ignores_its_own_interval(self, service, staff_actor, make_booking):
        booking = make_booking()
        service.reschedule_booking(booking.id, staff_actor, BookingReschedule(start_time="18:30"))
        assert booking.start_time == time(18, 30)

    def test_move_into_conflict_is_rejected(self, service, staff_actor, make_booking):
        booking = make_booking()
        make_booking(start=time(20, 0), end=time(21, 0))

        with pytest.raises(BookingConflictException):
            service.reschedule_booking(booking.id, staff_actor, BookingReschedule(start_time="19:30"))
        assert booking.start_time == time(18, 0)

    def test_move_purges_cancelled_destination(self, db, service, second_court, staff_actor, make_booking):
        booking = make_booking()
        cancelled = make_booking(resource=second_court, status=BookingStatus.CANCELLED.value)

        service.reschedule_booking(
            booking.id, staff_actor, BookingReschedule(resource_id=second_court.id)
        )

        assert booking.resource_id == second_court.id
        assert db.query(Booking).filter_by(id=cancelled.id).count() == 0

    def test_completed_booking_cannot_move(self, service, staff_actor, make_booking):
        booking = make_booking(status=BookingStatus.COMPLETED.value)
        with pytest.raises(BusinessRuleException):
            service.reschedule_booking(booking.id, staff_actor, BookingReschedule(start_time="20:00"))


class TestRegisterPayment:
    def test_partial_then_complete(self, db, service, staff_actor, make_booking, open_register):
        booking = make_booking()

        service.register_payment(booking.id, staff_actor, PaymentCreate(amount="4000", method="cash"))
        assert booking.payment_status == PaymentStatus.PARTIAL.value

        service.register_payment(booking.id, staff_actor, PaymentCreate(amount="6000", method="card"))
        assert booking.payment_status == PaymentStatus.COMPLETED.value
        assert booking.paid_at is not None
        assert booking.outstanding_balance == Decimal("0")

        db.refresh(open_register)
        assert open_register.total_sales == Decimal("10000")
        assert open_register.total_cash == Decimal("4000")
        assert open_register.total_card == Decimal("6000")
        assert db.query(CashRegisterMovement).count() == 2

    def test_overpayment_is_rejected_and_nothing_written(self, db, service, staff_actor, make_booking):
        booking = make_booking()

        with pytest.raises(ValidationException):
            service.register_payment(
                booking.id, staff_actor, PaymentCreate(amount="10001", method=PaymentMethod.CASH)
            )
        assert db.query(BookingPayment).count() == 0

    def test_without_open_register_no_movement_is_written(self, db, service, client_actor, make_booking):
        booking = make_booking()
        service.register_payment(booking.id, client_actor, PaymentCreate(amount="1000"))

        assert db.query(BookingPayment).count() == 1
        assert db.query(CashRegisterMovement).count() == 0

    def test_ledger_failure_rolls_back_payment(self, db, service, staff_actor, make_booking, open_register):
        booking = make_booking()

        with patch.object(
            service.cash_register_service, "record_sale", side_effect=BusinessRuleException("ledger down")
        ):
            with pytest.raises(BusinessRuleException):
                service.register_payment(booking.id, staff_actor, PaymentCreate(amount="1000"))

        db.expire_all()
        assert db.query(BookingPayment).count() == 0
        assert db.query(Booking).filter_by(id=booking.id).one().deposit_amount == Decimal("0")


class TestNoShowSweep:
    def test_marks_only_bookings_past_grace(self, db, clock, event_publisher, make_booking):
        today = FIXED_NOW.date()
        late = make_booking(booking_date=today, start=time(8, 0), end=time(9, 0))
        within_grace = make_booking(booking_date=today, start=time(8, 45), end=time(9, 45))
        future = make_booking(booking_date=today, start=time(11, 0), end=time(12, 0))
        attended = make_booking(
            booking_date=today, start=time(7, 0), end=time(8, 0), status=BookingStatus.IN_PROGRESS.value
        )

        marked = BookingService(db, event_publisher=event_publisher, clock=clock).mark_no_show_bookings()

        assert marked == [late.id]
        assert late.status == BookingStatus.NO_SHOW.value
        assert within_grace.status == BookingStatus.CONFIRMED.value
        assert future.status == BookingStatus.CONFIRMED.value
        assert attended.status == BookingStatus.IN_PROGRESS.value

    def test_uses_establishment_timezone(self, db, establishment, event_publisher, make_booking):
        # 02:00 UTC is still the previous evening in Buenos Aires
        late_evening = datetime(2025, 3, 4, 2, 0, tzinfo=timezone.utc)
        booking = make_booking(booking_date=MONDAY, start=time(21, 0), end=time(22, 0))
        upcoming = make_booking(booking_date=MONDAY, start=time(23, 0), end=time(23, 59))

        service = BookingService(db, event_publisher=event_publisher, clock=lambda: late_evening)
        marked = service.mark_no_show_bookings()

        assert marked == [booking.id]
        assert upcoming.status == BookingStatus.CONFIRMED.value


def test_integrity_message_without_constraint_name_is_generic():
    error = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: bookings.status"))
    assert integrity_conflict_message(error) != SLOT_TAKEN_MESSAGE
