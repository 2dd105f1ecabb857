# backend/courtbook/services/recurring_booking_service.py
"""
Recurring Booking Service for Courtbook

Plans and manages weekly series of bookings:
- Per-date availability with alternative-resource fallback
- All-or-nothing creation of a group and its occurrences
- Paying occurrences one at a time
- Cancelling one, some or all remaining occurrences with a refund estimate

Group counters are always recomputed from the occurrences, never
incremented in place.
"""

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.enums import (
    CANCELLABLE_BOOKING_STATUSES,
    PAID_RECURRING_STATUSES,
    BookingStatus,
    PaymentStatus,
    RecurringCancellationPolicy,
    RecurringCancelMode,
    RecurringGroupStatus,
    RecurringPaymentStatus,
)
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    NotFoundException,
    PolicyViolationException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import get_establishment_today
from ..events import BookingCancelled, EventPublisher, RecurringGroupCreated
from ..models.booking import Booking
from ..models.recurring_booking_group import RecurringBookingGroup
from ..models.resource import Resource
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..schemas.recurring_booking import (
    DateConfiguration,
    RecurringCancelRequest,
    RecurringGroupCreate,
    RecurringPaymentCreate,
)
from ..utils.time_utils import minutes_to_time, to_minutes
from .base import BaseService, Clock
from .booking_service import (
    GENERIC_CONFLICT_MESSAGE,
    BookingService,
    PlannedInterval,
    generate_check_in_code,
    integrity_conflict_message,
)
from .cash_register_service import CashRegisterService
from .conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)


def generate_occurrence_dates(start_date: date, total_weeks: int) -> List[date]:
    """``total_weeks`` dates, seven days apart, starting at ``start_date``."""
    if total_weeks <= 0:
        raise ValidationException(
            "total_weeks must be positive", details={"total_weeks": total_weeks}
        )
    return [start_date + timedelta(weeks=i) for i in range(total_weeks)]


@dataclass
class OccurrencePlan:
    """Availability of one planned date, on the primary resource and its alternatives."""

    date: date
    primary_available: bool = False
    conflict_with: List[Dict[str, Any]] = field(default_factory=list)
    alternatives: List[Dict[str, Any]] = field(default_factory=list)
    selected_resource_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def unresolved(self) -> bool:
        return self.selected_resource_id is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "day_of_week": self.date.weekday(),
            "primary_available": self.primary_available,
            "conflict_with": self.conflict_with,
            "alternatives": self.alternatives,
            "selected_resource_id": self.selected_resource_id,
            "unresolved": self.unresolved,
            "error": self.error,
        }


@dataclass
class RecurringRefundEstimate:
    amount: Decimal
    paid_occurrences: int
    policy: str
    action: str


@dataclass
class RecurringCancellationResult:
    group: RecurringBookingGroup
    cancelled_bookings: List[Booking]
    refund_estimate: RecurringRefundEstimate


class RecurringBookingService(BaseService):
    """Service layer for recurring booking series."""

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        event_publisher: Optional[EventPublisher] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock=clock)
        self.repository = RepositoryFactory.create_recurring_booking_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=clock)
        self.event_publisher = event_publisher or EventPublisher()
        self.cash_register_service = CashRegisterService(db, clock=clock)
        self.booking_service = BookingService(
            db,
            conflict_checker=self.conflict_checker,
            event_publisher=self.event_publisher,
            cash_register_service=self.cash_register_service,
            clock=clock,
        )

    def _get_resource(self, resource_id: str) -> Resource:
        resource = self.resource_repository.get_with_establishment(resource_id)
        if not resource or not resource.is_active:
            raise NotFoundException("Resource not found", details={"resource_id": resource_id})
        return resource

    def _get_group(self, group_id: str) -> RecurringBookingGroup:
        group = self.repository.get_by_id(group_id)
        if not group:
            raise NotFoundException("Recurring group not found", details={"group_id": group_id})
        return group

    def _free_interval(
        self, resource: Resource, occurrence_date: date, start_time: time, duration_minutes: int
    ) -> Tuple[PlannedInterval, List[Dict[str, Any]]]:
        """Planned interval and its conflicts; raises PolicyViolation outside opening hours."""
        interval = self.booking_service.plan_interval(
            resource, occurrence_date, start_time, duration_minutes
        )
        conflicts = self.conflict_checker.check_booking_conflicts(
            resource.id,
            occurrence_date,
            interval.start_minutes,
            interval.end_minutes,
            window=interval.window,
        )
        return interval, conflicts

    # Availability

    def _plan_date(
        self,
        resource: Resource,
        alternatives: List[Resource],
        occurrence_date: date,
        start_time: time,
        duration_minutes: int,
    ) -> OccurrencePlan:
        plan = OccurrencePlan(date=occurrence_date)
        try:
            _, conflicts = self._free_interval(resource, occurrence_date, start_time, duration_minutes)
            plan.conflict_with = conflicts
            plan.primary_available = not conflicts
        except PolicyViolationException as e:
            plan.error = e.message

        if plan.primary_available:
            plan.selected_resource_id = resource.id
            return plan

        for alternative in alternatives:
            try:
                _, conflicts = self._free_interval(
                    alternative, occurrence_date, start_time, duration_minutes
                )
                available = not conflicts
            except PolicyViolationException:
                available = False
            plan.alternatives.append(
                {"resource_id": alternative.id, "name": alternative.name, "available": available}
            )
            if available and plan.selected_resource_id is None:
                plan.selected_resource_id = alternative.id
        return plan

    def _plan_dates(
        self,
        resource: Resource,
        dates: List[date],
        start_time: time,
        duration_minutes: int,
        sport: Optional[str],
    ) -> List[OccurrencePlan]:
        alternatives = self.resource_repository.get_alternatives(resource, sport)
        plans = []
        for occurrence_date in dates:
            try:
                plans.append(
                    self._plan_date(resource, alternatives, occurrence_date, start_time, duration_minutes)
                )
            except RepositoryException as e:
                self.logger.error(f"Availability check failed for {occurrence_date}: {str(e)}")
                plans.append(OccurrencePlan(date=occurrence_date, error=str(e)))
        return plans

    @BaseService.measure_operation("check_recurring_availability")
    def check_availability(
        self,
        resource_id: str,
        dates: List[date],
        start_time: time,
        duration_minutes: int,
        sport: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Per-date availability of a weekly slot on a resource.

        Conflicting dates list the alternatives of the same sport at the same
        establishment; the first free one is selected. Dates with no free
        resource, or whose check failed, are flagged unresolved.
        """
        resource = self._get_resource(resource_id)
        plans = self._plan_dates(resource, list(dates), start_time, duration_minutes, sport)

        summary = {
            "total": len(plans),
            "available": sum(1 for p in plans if p.primary_available),
            "needs_alternative": sum(
                1 for p in plans if not p.primary_available and not p.unresolved
            ),
            "unavailable": sum(1 for p in plans if p.unresolved),
        }
        return {"dates": [p.to_dict() for p in plans], "summary": summary}

    # Creation

    def _validate_weeks(self, resource: Resource, total_weeks: int) -> None:
        establishment = resource.establishment
        min_weeks = establishment.recurring_min_weeks
        max_weeks = establishment.recurring_max_weeks
        if total_weeks < min_weeks or total_weeks > max_weeks:
            raise PolicyViolationException(
                f"Recurring bookings must span between {min_weeks} and {max_weeks} weeks",
                code="RECURRING_WEEKS_OUT_OF_RANGE",
                details={"total_weeks": total_weeks, "min_weeks": min_weeks, "max_weeks": max_weeks},
            )

    def _resolve_assignments(
        self, resource: Resource, data: RecurringGroupCreate
    ) -> List[Tuple[date, Resource, PlannedInterval]]:
        """Resource and interval for each occurrence that will be created, in date order."""
        dates = generate_occurrence_dates(data.start_date, data.total_weeks)
        configurations: Dict[date, DateConfiguration] = {c.date: c for c in data.date_configurations}

        unknown = sorted(set(configurations) - set(dates))
        if unknown:
            raise ValidationException(
                "Date configurations must refer to planned dates",
                details={"dates": [d.isoformat() for d in unknown]},
            )

        candidate_dates = [
            d for d in dates
            if d not in configurations
            or not (configurations[d].skip or configurations[d].resource_id)
        ]
        plans = {
            p.date: p
            for p in self._plan_dates(
                resource, candidate_dates, data.start_time, data.duration_minutes, data.sport
            )
        }

        assignments: List[Tuple[date, Resource, PlannedInterval]] = []
        resources: Dict[str, Resource] = {resource.id: resource}
        for occurrence_date in dates:
            configuration = configurations.get(occurrence_date)
            if configuration is not None and configuration.skip:
                continue

            if configuration is not None and configuration.resource_id:
                target = resources.get(configuration.resource_id) or self._get_resource(
                    configuration.resource_id
                )
                if target.establishment_id != resource.establishment_id:
                    raise ValidationException(
                        "Override resource belongs to another establishment",
                        details={"resource_id": target.id, "date": occurrence_date.isoformat()},
                    )
                interval, conflicts = self._free_interval(
                    target, occurrence_date, data.start_time, data.duration_minutes
                )
                if conflicts:
                    prometheus_metrics.inc_booking_conflict("overlap")
                    raise BookingConflictException(
                        message=GENERIC_CONFLICT_MESSAGE,
                        details={
                            "resource_id": target.id,
                            "date": occurrence_date.isoformat(),
                            "conflicts": conflicts,
                        },
                    )
            else:
                plan = plans[occurrence_date]
                if plan.unresolved:
                    if data.skip_unresolved:
                        self.logger.info(f"Skipping unresolved date {occurrence_date}")
                        continue
                    raise BookingConflictException(
                        message="No resource is available on one of the planned dates",
                        details={"date": occurrence_date.isoformat(), "error": plan.error},
                    )
                target = resources.get(plan.selected_resource_id) or self._get_resource(
                    plan.selected_resource_id
                )
                interval = self.booking_service.plan_interval(
                    target, occurrence_date, data.start_time, data.duration_minutes
                )

            resources[target.id] = target
            assignments.append((occurrence_date, target, interval))
        return assignments

    @BaseService.measure_operation("create_recurring_group")
    def create_group(
        self, actor: Actor, data: RecurringGroupCreate
    ) -> Tuple[RecurringBookingGroup, List[Booking]]:
        """
        Create a recurring group with one confirmed booking per planned date.

        The group and every occurrence are created in a single transaction;
        if any insert fails nothing is kept.

        Raises:
            PolicyViolationException: series length outside the establishment limits
            ValidationException: no date left to book, or a bad initial payment
            BookingConflictException: an override date is taken, or a slot was
                taken between the check and the insert
        """
        resource = self._get_resource(data.resource_id)
        self._validate_weeks(resource, data.total_weeks)

        assignments = self._resolve_assignments(resource, data)
        if not assignments:
            raise ValidationException("No valid dates for booking")

        price = (
            Decimal(data.price_per_booking)
            if data.price_per_booking is not None
            else resource.price_for(data.duration_minutes)
        )
        initial_amount = Decimal(data.initial_payment.amount) if data.initial_payment else Decimal("0")
        if initial_amount > price:
            raise ValidationException(
                "Initial payment cannot exceed the price of one occurrence",
                details={"amount": str(initial_amount), "price_per_booking": str(price)},
            )

        now = self.now()
        start_minutes = to_minutes(data.start_time)
        bookings: List[Booking] = []
        try:
            with self.transaction():
                group = self.repository.create(
                    establishment_id=resource.establishment_id,
                    primary_resource_id=resource.id,
                    client_id=data.client_id,
                    client_name=data.client_name,
                    client_phone=data.client_phone,
                    client_email=data.client_email,
                    day_of_week=data.start_date.weekday(),
                    start_time=data.start_time,
                    end_time=minutes_to_time(start_minutes + data.duration_minutes),
                    duration_minutes=data.duration_minutes,
                    start_date=assignments[0][0],
                    end_date=assignments[-1][0],
                    sport=data.sport or resource.sport,
                    notes=data.notes,
                    total_occurrences=len(assignments),
                    price_per_booking=price,
                    created_by_id=actor.id,
                )

                for sequence, (occurrence_date, target, interval) in enumerate(assignments, start=1):
                    if self.conflict_checker.has_conflict(
                        target.id,
                        occurrence_date,
                        interval.start_minutes,
                        interval.end_minutes,
                        window=interval.window,
                    ):
                        prometheus_metrics.inc_booking_conflict("overlap")
                        raise BookingConflictException(
                            message="A planned date was booked while the series was being created",
                            details={"resource_id": target.id, "date": occurrence_date.isoformat()},
                        )
                    self.conflict_checker.purge_exact_cancelled_slot(
                        target.id, occurrence_date, interval.start_time
                    )
                    bookings.append(
                        self.booking_repository.create(
                            establishment_id=resource.establishment_id,
                            resource_id=target.id,
                            client_id=data.client_id,
                            client_name=data.client_name,
                            client_phone=data.client_phone,
                            client_email=data.client_email,
                            booking_date=occurrence_date,
                            start_time=interval.start_time,
                            end_time=interval.end_time,
                            duration_minutes=data.duration_minutes,
                            status=BookingStatus.CONFIRMED.value,
                            payment_status=PaymentStatus.PENDING.value,
                            total_amount=price,
                            deposit_amount=Decimal("0"),
                            initial_deposit=Decimal("0"),
                            confirmed_at=now,
                            is_recurring=True,
                            recurring_group_id=group.id,
                            recurring_sequence=sequence,
                            recurring_payment_status=RecurringPaymentStatus.PENDING.value,
                            check_in_code=generate_check_in_code(),
                            notes=data.notes,
                            created_by_id=actor.id,
                        )
                    )

                if initial_amount > 0:
                    first = bookings[0]
                    method = data.initial_payment.method.value
                    self._apply_payment(
                        actor,
                        first,
                        initial_amount,
                        method,
                        description=(
                            f"Recurring booking initial payment - {resource.name} "
                            f"(1/{group.total_occurrences})"
                        ),
                    )
                    first.initial_deposit = initial_amount
                    if initial_amount >= price:
                        first.recurring_payment_status = RecurringPaymentStatus.PAID.value

                self.repository.recompute_counters(group)
        except IntegrityError as exc:
            prometheus_metrics.inc_booking_conflict("constraint")
            raise BookingConflictException(
                message=integrity_conflict_message(exc),
                details={"resource_id": resource.id, "start_date": data.start_date.isoformat()},
            ) from exc

        self.log_operation(
            "create_recurring_group",
            group_id=group.id,
            resource_id=resource.id,
            occurrences=len(bookings),
        )
        self._publish(
            RecurringGroupCreated(
                group_id=group.id,
                establishment_id=group.establishment_id,
                resource_id=resource.id,
                booking_ids=[b.id for b in bookings],
                created_at=now,
            )
        )
        return group, bookings

    # Payments

    def _apply_payment(
        self,
        actor: Actor,
        booking: Booking,
        amount: Decimal,
        method: str,
        description: str,
    ) -> None:
        """Payment row, booking totals and ledger movement; runs inside the caller's transaction."""
        self.payment_repository.create(
            booking_id=booking.id,
            amount=amount,
            method=method,
            payment_type="recurring",
            registered_by_id=actor.id,
        )
        booking.deposit_amount = Decimal(booking.deposit_amount or 0) + amount
        booking.deposit_method = method
        if booking.deposit_amount >= Decimal(booking.total_amount):
            booking.payment_status = PaymentStatus.COMPLETED.value
            booking.paid_at = self.now()
        else:
            booking.payment_status = PaymentStatus.PARTIAL.value
        self.cash_register_service.record_sale(actor, booking, amount, method, description)

    @BaseService.measure_operation("pay_recurring_occurrence")
    def pay_next_occurrence(
        self, group_id: str, actor: Actor, payment: RecurringPaymentCreate
    ) -> Booking:
        """
        Pay an occurrence: the one given, or the earliest unpaid one.

        The amount defaults to the occurrence's outstanding balance. A smaller
        amount is recorded as a partial payment and leaves the occurrence
        pending until its balance is covered.

        Raises:
            NotFoundException: unknown group, or no pending occurrence left to pay
            ValidationException: amount not positive or above the outstanding balance
        """
        group = self._get_group(group_id)

        if payment.booking_id:
            booking = self.repository.get_occurrence(group.id, payment.booking_id)
            if booking is None or not self._is_payable(booking):
                raise NotFoundException(
                    "No pending occurrence to pay",
                    details={"group_id": group.id, "booking_id": payment.booking_id},
                )
        else:
            booking = self.repository.get_next_pending_occurrence(group.id)
            if booking is None:
                raise NotFoundException(
                    "No pending occurrence to pay", details={"group_id": group.id}
                )

        outstanding = booking.outstanding_balance
        amount = Decimal(payment.amount) if payment.amount is not None else outstanding
        if amount <= 0:
            raise ValidationException("Payment amount must be positive")
        if amount > outstanding:
            raise ValidationException(
                "Payment exceeds the outstanding balance",
                details={"amount": str(amount), "outstanding": str(outstanding)},
            )

        with self.transaction():
            self._apply_payment(
                actor,
                booking,
                amount,
                payment.method.value,
                description=(
                    f"Recurring booking payment - {booking.booking_date} "
                    f"({booking.recurring_sequence}/{group.total_occurrences})"
                ),
            )
            if booking.outstanding_balance <= 0:
                booking.recurring_payment_status = RecurringPaymentStatus.PAID.value
            self.repository.recompute_counters(group)

        self.log_operation(
            "pay_recurring_occurrence",
            group_id=group.id,
            booking_id=booking.id,
            amount=str(amount),
        )
        return booking

    @staticmethod
    def _is_payable(booking: Booking) -> bool:
        return (
            booking.recurring_payment_status == RecurringPaymentStatus.PENDING.value
            and booking.status in CANCELLABLE_BOOKING_STATUSES
        )

    # Cancellation

    def _cancellation_targets(
        self, group: RecurringBookingGroup, request: RecurringCancelRequest, today: date
    ) -> List[Booking]:
        mode = request.mode
        if mode == RecurringCancelMode.SINGLE:
            booking = self.repository.get_occurrence(group.id, request.booking_id)
            if booking is None:
                raise NotFoundException(
                    "Occurrence not found",
                    details={"group_id": group.id, "booking_id": request.booking_id},
                )
            if booking.status not in CANCELLABLE_BOOKING_STATUSES:
                raise BusinessRuleException(
                    "Occurrence can no longer be cancelled",
                    code="OCCURRENCE_NOT_CANCELLABLE",
                    details={"booking_id": booking.id, "status": booking.status},
                )
            return [booking]

        if mode == RecurringCancelMode.FROM_DATE:
            reference = request.reference
            if isinstance(reference, str):
                occurrence = self.repository.get_occurrence(group.id, reference)
                if occurrence is None:
                    raise NotFoundException(
                        "Occurrence not found",
                        details={"group_id": group.id, "booking_id": reference},
                    )
                reference = occurrence.booking_date
            if reference is None:
                raise ValidationException("from_date or booking_id is required for from_date mode")
            return self.repository.get_cancellable_occurrences(group.id, reference)

        return self.repository.get_cancellable_occurrences(group.id, today)

    @BaseService.measure_operation("cancel_recurring_group")
    def cancel_group(
        self, group_id: str, actor: Actor, request: RecurringCancelRequest
    ) -> RecurringCancellationResult:
        """
        Cancel occurrences of a series in ``single``, ``from_date`` or ``all_pending`` mode.

        The group itself becomes cancelled once no active occurrence remains
        from today on. The refund estimate is reported, not paid out.
        """
        group = self._get_group(group_id)
        if group.status == RecurringGroupStatus.CANCELLED.value:
            raise BusinessRuleException(
                "Recurring group is already cancelled",
                code="GROUP_ALREADY_CANCELLED",
                details={"group_id": group.id},
            )

        establishment = self.resource_repository.get_establishment(group.establishment_id)
        today = get_establishment_today(establishment, self.now())
        targets = self._cancellation_targets(group, request, today)
        paid_occurrences = sum(
            1 for b in targets if b.recurring_payment_status in PAID_RECURRING_STATUSES
        )

        now = self.now()
        with self.transaction():
            for booking in targets:
                booking.cancel(actor.id, request.reason, at=now)
            self.repository.recompute_counters(group)
            self.repository.close_if_exhausted(group, today, at=now, reason=request.reason)

        refund = self._refund_estimate(establishment, group, paid_occurrences)
        self.log_operation(
            "cancel_recurring_group",
            group_id=group.id,
            mode=request.mode.value,
            cancelled=len(targets),
            group_status=group.status,
        )
        for booking in targets:
            self._publish(
                BookingCancelled(
                    booking_id=booking.id,
                    establishment_id=booking.establishment_id,
                    cancelled_by=actor.id,
                    cancelled_at=now,
                    reason=request.reason,
                )
            )
        return RecurringCancellationResult(
            group=group, cancelled_bookings=targets, refund_estimate=refund
        )

    @staticmethod
    def _refund_estimate(establishment, group: RecurringBookingGroup, paid_occurrences: int) -> RecurringRefundEstimate:
        amount = (Decimal(group.price_per_booking) * paid_occurrences).quantize(Decimal("0.01"))
        policy = (
            establishment.recurring_cancellation_policy
            if establishment is not None
            else RecurringCancellationPolicy.CREDIT.value
        )
        if amount == 0:
            action = "Nothing was paid for the cancelled occurrences"
        elif policy == RecurringCancellationPolicy.CREDIT.value:
            action = f"Credit {amount} to the client account"
        elif policy == RecurringCancellationPolicy.REFUND_UNUSED.value:
            action = f"Refund {amount} for unused occurrences"
        else:
            action = "No refund applies"
        return RecurringRefundEstimate(
            amount=amount, paid_occurrences=paid_occurrences, policy=policy, action=action
        )

    # Queries

    def list_groups(
        self,
        establishment_id: str,
        status: Optional[RecurringGroupStatus] = None,
        client_id: Optional[str] = None,
    ) -> List[RecurringBookingGroup]:
        return self.repository.list_groups(
            establishment_id,
            status=RecurringGroupStatus(status).value if status else None,
            client_id=client_id,
        )

    def get_group(self, group_id: str) -> Tuple[RecurringBookingGroup, List[Booking]]:
        group = self._get_group(group_id)
        return group, self.repository.get_occurrences(group.id)

    def list_pending_occurrences(self, group_id: str) -> Dict[str, Any]:
        """Active occurrences from today on, with how many are still unpaid."""
        group = self._get_group(group_id)
        establishment = self.resource_repository.get_establishment(group.establishment_id)
        today = get_establishment_today(establishment, self.now())
        bookings = self.repository.get_cancellable_occurrences(group.id, today)

        paid = sum(1 for b in bookings if b.recurring_payment_status in PAID_RECURRING_STATUSES)
        unpaid = len(bookings) - paid
        return {
            "bookings": bookings,
            "summary": {
                "total": len(bookings),
                "paid": paid,
                "unpaid": unpaid,
                "unpaid_amount": Decimal(group.price_per_booking) * unpaid,
            },
        }

    def _publish(self, event) -> None:
        try:
            self.event_publisher.publish(event)
            prometheus_metrics.record_notification(type(event).__name__, "queued")
        except Exception as e:
            self.logger.error(f"Failed to publish {type(event).__name__}: {str(e)}")
