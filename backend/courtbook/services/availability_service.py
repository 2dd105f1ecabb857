# backend/courtbook/services/availability_service.py
"""
Availability Service for Courtbook

Combines the opening window of a resource, the slot grid and the active
bookings of a date into the list of slots a client can pick from.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import NotFoundException, ValidationException
from ..repositories import RepositoryFactory
from .base import BaseService, Clock
from .conflict_checker import ConflictChecker
from .slot_generator import generate_slots

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilitySlot:
    start: str
    end: str
    is_booked: bool
    next_day: bool
    price: Decimal


class AvailabilityService(BaseService):
    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, clock=clock)
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db, clock=clock)

    @BaseService.measure_operation("get_availability")
    def get_availability(
        self, resource_id: str, target_date: date, duration_minutes: int
    ) -> List[AvailabilitySlot]:
        """
        Ordered slots of ``duration_minutes`` for a resource on a date.

        Slots in the after-midnight part of the window carry ``next_day``.
        A closed day yields an empty list.
        """
        if duration_minutes <= 0:
            raise ValidationException(
                "Duration must be positive", details={"duration_minutes": duration_minutes}
            )

        resource = self.resource_repository.get_by_id(resource_id)
        if not resource or not resource.is_active:
            raise NotFoundException("Resource not found", details={"resource_id": resource_id})

        window = self.resource_repository.get_opening_window(resource, target_date.weekday())
        if window.is_closed:
            return []

        slots = generate_slots(
            window.open_time, window.close_time, settings.slot_step_minutes, duration_minutes
        )
        booked = self.conflict_checker.booked_intervals(resource_id, target_date, window=window)
        price = resource.price_for(duration_minutes)

        return [
            AvailabilitySlot(
                start=slot.start,
                end=slot.end,
                is_booked=any(b.overlaps(slot.start_minutes, slot.end_minutes) for b in booked),
                next_day=slot.rolls_over,
                price=price,
            )
            for slot in slots
        ]
