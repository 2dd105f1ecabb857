# backend/courtbook/repositories/booking_repository.py
"""
Booking Repository for Courtbook

Booking lookups used by the lifecycle service, plus the companion
consumption record opened on check-in.
"""

from datetime import date
import logging
from typing import List, Optional, Sequence, cast

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.enums import BookingStatus
from ..core.exceptions import RepositoryException
from ..core.ulid_helper import generate_ulid
from ..models.booking import Booking
from ..models.consumption import BookingConsumption
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_booking_with_details(self, booking_id: str) -> Optional[Booking]:
        try:
            return cast(
                Optional[Booking],
                self.db.query(Booking)
                .options(joinedload(Booking.resource), joinedload(Booking.establishment))
                .filter(Booking.id == booking_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")

    def get_unattended_bookings(self, booking_dates: Sequence[date]) -> List[Booking]:
        """Pending/confirmed bookings on the given dates, with their establishment."""
        query = (
            self._build_query()
            .options(joinedload(Booking.establishment), joinedload(Booking.resource))
            .filter(
                Booking.booking_date.in_(list(booking_dates)),
                Booking.status.in_(
                    [BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value]
                ),
            )
            .order_by(Booking.booking_date, Booking.start_time)
        )
        return self._execute_query(query)

    # Consumption records

    def get_consumption(self, booking_id: str) -> Optional[BookingConsumption]:
        try:
            return cast(
                Optional[BookingConsumption],
                self.db.query(BookingConsumption)
                .filter(BookingConsumption.booking_id == booking_id)
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading consumption for {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load consumption: {str(e)}")

    def create_consumption(self, booking: Booking, created_by_id: Optional[str]) -> BookingConsumption:
        """
        Open the consumption for a checked-in booking. Does not commit.

        The order number is derived from the row's ULID. A second consumption
        for the same booking raises IntegrityError.
        """
        consumption_id = generate_ulid()
        try:
            consumption = BookingConsumption(
                id=consumption_id,
                order_number=f"ORD-{consumption_id}",
                booking_id=booking.id,
                establishment_id=booking.establishment_id,
                subtotal=booking.total_amount,
                paid_amount=booking.deposit_amount,
                created_by_id=created_by_id,
            )
            self.db.add(consumption)
            self.db.flush()
            return consumption
        except IntegrityError as exc:
            self.logger.warning(f"Integrity error opening consumption for {booking.id}: {exc}")
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating consumption for {booking.id}: {str(e)}")
            raise RepositoryException(f"Failed to create consumption: {str(e)}")
