# backend/courtbook/services/booking_service.py
"""
Booking Service for Courtbook

Handles the lifecycle of a single booking:
- Creation with conflict detection and cancelled-slot reuse
- Status transitions and their side effects
- Moving a booking in time or to another resource
- Deposit payments mirrored into the cash-register ledger
- The periodic no-show sweep

Every mutation runs as one transaction. Notifications are published only
after commit and their failures never affect the booking.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
import secrets
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.config import settings
from ..core.enums import (
    CANCELLABLE_BOOKING_STATUSES,
    BookingStatus,
    CancellationPolicy,
    PaymentStatus,
)
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    CancellationWindowException,
    ConflictException,
    InvalidStatusTransitionException,
    NotFoundException,
    PolicyViolationException,
    ValidationException,
)
from ..core.timezone_utils import (
    get_establishment_today,
    localize_wall_clock,
    to_establishment_time,
)
from ..events import BookingCancelled, BookingConfirmed, EventPublisher
from ..models.booking import ACTIVE_SLOT_INDEX, Booking
from ..models.establishment import Establishment, OpeningWindow
from ..models.resource import Resource
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..schemas.booking import BookingCreate, BookingReschedule, PaymentCreate
from ..utils.time_utils import (
    MINUTES_PER_DAY,
    minutes_to_time,
    minutes_to_time_str,
    project_into_window,
    to_minutes,
)
from .base import BaseService, Clock
from .cash_register_service import CashRegisterService
from .conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)

GENERIC_CONFLICT_MESSAGE = "This time slot conflicts with an existing booking"
SLOT_TAKEN_MESSAGE = "This time slot was just taken by another booking"

ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    BookingStatus.PENDING.value: {
        BookingStatus.CONFIRMED.value,
        BookingStatus.CANCELLED.value,
        BookingStatus.NO_SHOW.value,
    },
    BookingStatus.CONFIRMED.value: {
        BookingStatus.IN_PROGRESS.value,
        BookingStatus.CANCELLED.value,
        BookingStatus.NO_SHOW.value,
    },
    BookingStatus.IN_PROGRESS.value: {BookingStatus.COMPLETED.value},
    BookingStatus.COMPLETED.value: set(),
    BookingStatus.NO_SHOW.value: set(),
    BookingStatus.CANCELLED.value: set(),
}


def generate_check_in_code() -> str:
    """Six upper-case hex characters shown to the client at the front desk."""
    return secrets.token_hex(3).upper()


def generate_review_token() -> str:
    return secrets.token_hex(32)


def integrity_conflict_message(integrity_error: IntegrityError) -> str:
    """Map a uniqueness violation on the active-slot index to the slot-taken message."""
    constraint_name = ""
    orig = getattr(integrity_error, "orig", None)
    diag = getattr(orig, "diag", None)

    if diag is not None:
        constraint_name = getattr(diag, "constraint_name", "") or ""

    if not constraint_name and orig is not None:
        text = str(orig)
        if ACTIVE_SLOT_INDEX in text or "bookings.resource_id, bookings.booking_date" in text:
            constraint_name = ACTIVE_SLOT_INDEX

    if constraint_name == ACTIVE_SLOT_INDEX:
        return SLOT_TAKEN_MESSAGE
    return GENERIC_CONFLICT_MESSAGE


@dataclass(frozen=True)
class RefundEstimate:
    amount: Decimal
    policy: str
    action: str


@dataclass(frozen=True)
class PlannedInterval:
    """A proposed booking interval resolved against the resource's opening window."""

    window: OpeningWindow
    start_minutes: int
    end_minutes: int

    @property
    def start_time(self) -> time:
        return minutes_to_time(self.start_minutes)

    @property
    def end_time(self) -> time:
        return minutes_to_time(self.end_minutes)


class BookingService(BaseService):
    """
    Service layer for single-booking operations.

    Recurring occurrences are ordinary bookings and go through the same
    transitions; the recurring planner owns series-level operations.
    """

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        event_publisher: Optional[EventPublisher] = None,
        cash_register_service: Optional[CashRegisterService] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock=clock)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.recurring_repository = RepositoryFactory.create_recurring_booking_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=clock)
        self.event_publisher = event_publisher or EventPublisher()
        self.cash_register_service = cash_register_service or CashRegisterService(db, clock=clock)

    # Shared helpers

    def _get_resource(self, resource_id: str) -> Resource:
        resource = self.resource_repository.get_with_establishment(resource_id)
        if not resource or not resource.is_active:
            raise NotFoundException("Resource not found", details={"resource_id": resource_id})
        return resource

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if not booking:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    def get_booking(self, booking_id: str) -> Booking:
        return self._get_booking(booking_id)

    def plan_interval(
        self, resource: Resource, booking_date: date, start_time: time, duration_minutes: int
    ) -> PlannedInterval:
        """
        Place ``[start, start + duration)`` inside the resource's window for the date.

        Raises:
            PolicyViolationException: if the resource is closed or the interval
                falls outside the opening hours
        """
        window = self.resource_repository.get_opening_window(resource, booking_date.weekday())
        if window.is_closed:
            raise PolicyViolationException(
                "Resource is closed on this day",
                code="RESOURCE_CLOSED",
                details={"resource_id": resource.id, "date": booking_date.isoformat()},
            )

        open_minutes = window.open_minutes if window.crosses_midnight else None
        start = project_into_window(to_minutes(start_time), open_minutes)
        end = start + duration_minutes
        if not window.contains(start, end):
            raise PolicyViolationException(
                "Requested time is outside opening hours",
                code="OUTSIDE_OPENING_HOURS",
                details={
                    "resource_id": resource.id,
                    "date": booking_date.isoformat(),
                    "open_time": minutes_to_time_str(window.open_minutes),
                    "close_time": minutes_to_time_str(window.close_minutes),
                },
            )
        return PlannedInterval(window=window, start_minutes=start, end_minutes=end)

    def booking_start_datetime(self, booking: Booking) -> datetime:
        """Aware start of a booking, rolling post-midnight starts onto the next day."""
        resource = booking.resource or self.resource_repository.get_by_id(booking.resource_id)
        window = self.resource_repository.get_opening_window(
            resource, booking.booking_date.weekday()
        )
        start_date = booking.booking_date
        if window.crosses_midnight and to_minutes(booking.start_time) < window.open_minutes:
            start_date = start_date + timedelta(days=1)
        return localize_wall_clock(booking.establishment, start_date, booking.start_time)

    def _ensure_free(
        self,
        resource_id: str,
        booking_date: date,
        interval: PlannedInterval,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        conflicts = self.conflict_checker.check_booking_conflicts(
            resource_id,
            booking_date,
            interval.start_minutes,
            interval.end_minutes,
            exclude_booking_id=exclude_booking_id,
            window=interval.window,
        )
        if conflicts:
            prometheus_metrics.inc_booking_conflict("overlap")
            raise BookingConflictException(
                message=GENERIC_CONFLICT_MESSAGE,
                details={
                    "resource_id": resource_id,
                    "booking_date": booking_date.isoformat(),
                    "start_time": minutes_to_time_str(interval.start_minutes),
                    "end_time": minutes_to_time_str(interval.end_minutes),
                    "conflicts": conflicts,
                },
            )

    def _raise_slot_taken(self, exc: IntegrityError, resource_id: str, booking_date: date) -> None:
        prometheus_metrics.inc_booking_conflict("constraint")
        raise BookingConflictException(
            message=integrity_conflict_message(exc),
            details={"resource_id": resource_id, "booking_date": booking_date.isoformat()},
        ) from exc

    def _sync_recurring_group(self, booking: Booking) -> None:
        """Refresh the counters and terminal status of the booking's series, if any."""
        if not booking.recurring_group_id:
            return
        group = self.recurring_repository.get_by_id(booking.recurring_group_id)
        if group is None:
            return
        self.recurring_repository.recompute_counters(group)
        today = get_establishment_today(booking.establishment, self.now())
        self.recurring_repository.close_if_exhausted(group, today, at=self.now())

    def _record_payment(
        self,
        actor: Actor,
        booking: Booking,
        amount: Decimal,
        method: str,
        description: str,
        payment_type: str = "deposit",
        notes: Optional[str] = None,
    ) -> None:
        self.payment_repository.create(
            booking_id=booking.id,
            amount=amount,
            method=method,
            payment_type=payment_type,
            notes=notes,
            registered_by_id=actor.id,
        )
        self.cash_register_service.record_sale(actor, booking, amount, method, description)

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(self, actor: Actor, booking_data: BookingCreate) -> Booking:
        """
        Create a booking after checking opening hours and conflicts.

        A cancelled booking sitting on the exact slot is purged first so its
        slot can be reused.

        Raises:
            NotFoundException: unknown or inactive resource
            PolicyViolationException: closed day, outside hours or too little notice
            BookingConflictException: the interval overlaps an active booking
        """
        resource = self._get_resource(booking_data.target_resource_id)
        establishment = resource.establishment
        interval = self.plan_interval(
            resource, booking_data.booking_date, booking_data.start_time, booking_data.duration_minutes
        )

        if not actor.is_privileged:
            self._validate_advance_notice(establishment, booking_data.booking_date, interval)

        total_amount = resource.price_for(booking_data.duration_minutes)
        deposit = Decimal(booking_data.deposit_amount or 0)
        if deposit > total_amount:
            raise ValidationException(
                "Deposit cannot exceed the booking total",
                details={"deposit_amount": str(deposit), "total_amount": str(total_amount)},
            )

        status = self._initial_status(actor, booking_data, deposit)
        self._ensure_free(resource.id, booking_data.booking_date, interval)

        now = self.now()
        try:
            with self.transaction():
                self.conflict_checker.purge_exact_cancelled_slot(
                    resource.id, booking_data.booking_date, interval.start_time
                )
                booking = self.repository.create(
                    establishment_id=resource.establishment_id,
                    resource_id=resource.id,
                    client_id=booking_data.client_id,
                    client_name=booking_data.client_name,
                    client_phone=booking_data.client_phone,
                    client_email=booking_data.client_email,
                    booking_date=booking_data.booking_date,
                    start_time=interval.start_time,
                    end_time=interval.end_time,
                    duration_minutes=booking_data.duration_minutes,
                    status=status,
                    payment_status=self._payment_status(deposit, total_amount),
                    total_amount=total_amount,
                    deposit_amount=deposit,
                    initial_deposit=deposit,
                    deposit_method=booking_data.deposit_method.value
                    if booking_data.deposit_method
                    else None,
                    paid_at=now if deposit and deposit >= total_amount else None,
                    confirmed_at=now if status == BookingStatus.CONFIRMED.value else None,
                    check_in_code=generate_check_in_code(),
                    notes=booking_data.notes,
                    created_by_id=actor.id,
                )
                if deposit > 0 and booking_data.deposit_method is not None:
                    self._record_payment(
                        actor,
                        booking,
                        deposit,
                        booking_data.deposit_method.value,
                        description=f"Booking deposit - {resource.name} {booking.booking_date}",
                    )
        except IntegrityError as exc:
            self._raise_slot_taken(exc, resource.id, booking_data.booking_date)

        self.log_operation(
            "create_booking",
            booking_id=booking.id,
            resource_id=resource.id,
            booking_status=status,
        )
        if status == BookingStatus.CONFIRMED.value:
            self._publish_confirmed(booking)
        return booking

    def _validate_advance_notice(
        self, establishment: Establishment, booking_date: date, interval: PlannedInterval
    ) -> None:
        start_date = booking_date + timedelta(days=interval.start_minutes // MINUTES_PER_DAY)
        start_dt = localize_wall_clock(establishment, start_date, interval.start_time)
        now_local = to_establishment_time(self.now(), establishment)
        hours_ahead = (start_dt - now_local).total_seconds() / 3600
        required = establishment.min_advance_booking_hours or 0
        if hours_ahead < 0:
            raise PolicyViolationException(
                "Cannot book a time in the past", code="BOOKING_IN_PAST"
            )
        if hours_ahead < required:
            raise PolicyViolationException(
                f"Bookings must be made at least {required} hours in advance",
                code="INSUFFICIENT_NOTICE",
                details={"required_hours": required, "provided_hours": round(hours_ahead, 2)},
            )

    @staticmethod
    def _payment_status(paid: Decimal, total: Decimal) -> str:
        if paid <= 0:
            return PaymentStatus.PENDING.value
        if paid >= total:
            return PaymentStatus.COMPLETED.value
        return PaymentStatus.PARTIAL.value

    @staticmethod
    def _initial_status(actor: Actor, booking_data: BookingCreate, deposit: Decimal) -> str:
        requested = booking_data.status
        if requested is not None and actor.is_privileged:
            if requested.value not in CANCELLABLE_BOOKING_STATUSES:
                raise ValidationException(
                    "New bookings can only start as pending or confirmed",
                    details={"status": requested.value},
                )
            return requested.value
        if deposit > 0:
            return BookingStatus.CONFIRMED.value
        return BookingStatus.PENDING.value

    # Status transitions

    @BaseService.measure_operation("transition_status")
    def transition_status(
        self,
        booking_id: str,
        new_status: BookingStatus,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking to ``new_status`` and apply the transition's side effects.

        Raises:
            NotFoundException: unknown booking
            InvalidStatusTransitionException: the transition isn't allowed
            CancellationWindowException: a client cancels too close to the start
            ConflictException: a concurrent check-in opened the consumption first
        """
        booking = self._get_booking(booking_id)
        current = booking.status
        target = BookingStatus(new_status).value

        if target not in ALLOWED_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransitionException(current, target)

        if target == BookingStatus.CANCELLED.value:
            self._check_cancellation_policy(booking, actor)

        now = self.now()
        try:
            with self.transaction():
                if target == BookingStatus.CONFIRMED.value:
                    booking.confirm(at=now)
                elif target == BookingStatus.IN_PROGRESS.value:
                    booking.start(at=now)
                    if self.repository.get_consumption(booking.id) is None:
                        self.repository.create_consumption(booking, created_by_id=actor.id)
                elif target == BookingStatus.COMPLETED.value:
                    booking.complete(at=now)
                    if not booking.review_token:
                        booking.review_token = generate_review_token()
                elif target == BookingStatus.CANCELLED.value:
                    booking.cancel(actor.id, reason, at=now)
                elif target == BookingStatus.NO_SHOW.value:
                    booking.mark_no_show(at=now)
                self.repository.flush()
                self._sync_recurring_group(booking)
        except IntegrityError as exc:
            raise ConflictException(
                "The booking was updated concurrently, retry the operation",
                code="CONCURRENT_UPDATE",
                details={"booking_id": booking_id, "status": target},
            ) from exc

        self.log_operation(
            "transition_status", booking_id=booking.id, from_status=current, to_status=target
        )

        if target == BookingStatus.CONFIRMED.value:
            self._publish_confirmed(booking)
        elif target == BookingStatus.CANCELLED.value:
            self._publish_event(
                BookingCancelled(
                    booking_id=booking.id,
                    establishment_id=booking.establishment_id,
                    cancelled_by=actor.id,
                    cancelled_at=now,
                    reason=reason,
                )
            )
        return booking

    def _check_cancellation_policy(self, booking: Booking, actor: Actor) -> None:
        if actor.is_privileged:
            return
        establishment = booking.establishment
        required = establishment.min_cancellation_notice_hours
        if required is None:
            required = settings.default_min_cancellation_notice_hours
        hours_until_start = (
            self.booking_start_datetime(booking) - to_establishment_time(self.now(), establishment)
        ).total_seconds() / 3600
        if hours_until_start < required:
            raise CancellationWindowException(required, hours_until_start)

    def estimate_cancellation_refund(self, booking: Booking) -> RefundEstimate:
        """Refund owed for a cancelled booking under the establishment's policy."""
        establishment = booking.establishment
        paid = Decimal(booking.deposit_amount or 0)
        policy = establishment.cancellation_policy or CancellationPolicy.PARTIAL_REFUND.value

        if policy == CancellationPolicy.FULL_REFUND.value:
            amount = paid
            action = f"Refund {amount} to the client"
        elif policy == CancellationPolicy.PARTIAL_REFUND.value:
            pct = Decimal(establishment.refund_percentage or 0)
            amount = (paid * pct / Decimal(100)).quantize(Decimal("0.01"))
            action = f"Refund {amount} ({pct}%) to the client"
        elif policy == CancellationPolicy.CREDIT.value:
            amount = paid
            action = f"Credit {amount} to the client account"
        else:
            amount = Decimal("0.00")
            action = "No refund applies"

        return RefundEstimate(amount=amount, policy=policy, action=action)

    # Reassignment

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self, booking_id: str, actor: Actor, changes: BookingReschedule
    ) -> Booking:
        """
        Move a pending or confirmed booking to another time and/or resource.

        The move is re-checked against every other active booking, and a
        cancelled booking on the destination slot is purged before commit.
        """
        booking = self._get_booking(booking_id)
        if booking.status not in CANCELLABLE_BOOKING_STATUSES:
            raise BusinessRuleException(
                "Only pending or confirmed bookings can be moved",
                code="BOOKING_NOT_MOVABLE",
                details={"status": booking.status},
            )

        resource = booking.resource
        if changes.resource_id and changes.resource_id != booking.resource_id:
            resource = self._get_resource(changes.resource_id)
            if resource.establishment_id != booking.establishment_id:
                raise ValidationException(
                    "A booking can only move to a resource of the same establishment",
                    details={"resource_id": resource.id},
                )

        new_date = changes.booking_date or booking.booking_date
        new_start = changes.start_time or booking.start_time
        new_duration = changes.duration_minutes or booking.duration_minutes
        interval = self.plan_interval(resource, new_date, new_start, new_duration)

        if not actor.is_privileged:
            self._check_cancellation_policy(booking, actor)

        self._ensure_free(resource.id, new_date, interval, exclude_booking_id=booking.id)

        try:
            with self.transaction():
                self.conflict_checker.purge_exact_cancelled_slot(
                    resource.id, new_date, interval.start_time
                )
                price_changes = (
                    not booking.recurring_group_id
                    and (resource.id != booking.resource_id or new_duration != booking.duration_minutes)
                )
                booking.resource_id = resource.id
                booking.resource = resource
                booking.booking_date = new_date
                booking.start_time = interval.start_time
                booking.end_time = interval.end_time
                booking.duration_minutes = new_duration
                if price_changes:
                    booking.total_amount = resource.price_for(new_duration)
                    booking.payment_status = self._payment_status(
                        Decimal(booking.deposit_amount or 0), Decimal(booking.total_amount)
                    )
                self.repository.flush()
        except IntegrityError as exc:
            self._raise_slot_taken(exc, resource.id, new_date)

        self.log_operation(
            "reschedule_booking",
            booking_id=booking.id,
            resource_id=resource.id,
            booking_date=new_date.isoformat(),
        )
        return booking

    # Payments

    @BaseService.measure_operation("register_payment")
    def register_payment(self, booking_id: str, actor: Actor, payment: PaymentCreate) -> Booking:
        """
        Record a deposit payment against the outstanding balance.

        The payment row, the booking totals and the ledger movement are
        committed together.
        """
        booking = self._get_booking(booking_id)
        if booking.status == BookingStatus.CANCELLED.value:
            raise BusinessRuleException(
                "Cannot register payments on a cancelled booking", code="BOOKING_CANCELLED"
            )

        amount = Decimal(payment.amount)
        outstanding = booking.outstanding_balance
        if amount <= 0:
            raise ValidationException("Payment amount must be positive")
        if amount > outstanding:
            raise ValidationException(
                "Payment exceeds the outstanding balance",
                details={"amount": str(amount), "outstanding": str(outstanding)},
            )

        now = self.now()
        with self.transaction():
            self._record_payment(
                actor,
                booking,
                amount,
                payment.method.value,
                description=f"Booking payment - {booking.resource.name} {booking.booking_date}",
                notes=payment.notes,
            )
            booking.deposit_amount = Decimal(booking.deposit_amount or 0) + amount
            booking.deposit_method = payment.method.value
            booking.payment_status = self._payment_status(
                Decimal(booking.deposit_amount), Decimal(booking.total_amount)
            )
            if booking.payment_status == PaymentStatus.COMPLETED.value:
                booking.paid_at = now
            self.repository.flush()
            self._sync_recurring_group(booking)

        self.log_operation(
            "register_payment", booking_id=booking.id, amount=str(amount), payment_method=payment.method.value
        )
        return booking

    # No-show sweep

    @BaseService.measure_operation("mark_no_show_bookings")
    def mark_no_show_bookings(self) -> List[str]:
        """
        Mark pending/confirmed bookings whose start passed the grace period as no-show.

        Dates are evaluated in each establishment's timezone. A recurring series left
        without an active occurrence from today on is closed.

        Returns:
            IDs of the bookings marked
        """
        now = self.now()
        utc_today = now.date()
        candidates = self.repository.get_unattended_bookings(
            [utc_today - timedelta(days=2), utc_today - timedelta(days=1), utc_today]
        )
        grace = timedelta(minutes=settings.no_show_grace_minutes)

        marked: List[str] = []
        series: Dict[str, Booking] = {}
        with self.transaction():
            for booking in candidates:
                local_now = to_establishment_time(now, booking.establishment)
                if local_now - self.booking_start_datetime(booking) >= grace:
                    booking.mark_no_show(at=now)
                    marked.append(booking.id)
                    if booking.recurring_group_id:
                        series.setdefault(booking.recurring_group_id, booking)
            self.repository.flush()
            for booking in series.values():
                self._sync_recurring_group(booking)

        if marked:
            prometheus_metrics.inc_no_show(len(marked))
            self.logger.info(f"Marked {len(marked)} bookings as no-show")
        return marked

    # Post-commit notifications

    def _publish_confirmed(self, booking: Booking) -> None:
        self._publish_event(
            BookingConfirmed(
                booking_id=booking.id,
                establishment_id=booking.establishment_id,
                resource_id=booking.resource_id,
                booking_date=booking.booking_date,
                start_time=booking.start_time.strftime("%H:%M"),
                end_time=booking.end_time.strftime("%H:%M"),
                confirmed_at=booking.confirmed_at or self.now(),
                client_name=booking.client_name,
            )
        )

    def _publish_event(self, event) -> None:
        try:
            self.event_publisher.publish(event)
            prometheus_metrics.record_notification(type(event).__name__, "queued")
        except Exception as e:
            # Notification failures must never affect a committed booking
            self.logger.error(f"Failed to publish {type(event).__name__}: {str(e)}")
