# backend/courtbook/repositories/payment_repository.py
"""
Payment Repository for Courtbook

Booking payments and the cash-register ledger rows written alongside them.
"""

import logging
from typing import Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import CashRegisterStatus
from ..core.exceptions import RepositoryException
from ..models.payment import BookingPayment, CashRegister, CashRegisterMovement
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[BookingPayment]):
    def __init__(self, db: Session):
        super().__init__(db, BookingPayment)

    def get_open_cash_register(
        self, establishment_id: str, user_id: Optional[str]
    ) -> Optional[CashRegister]:
        if not user_id:
            return None
        try:
            return cast(
                Optional[CashRegister],
                self.db.query(CashRegister)
                .filter(
                    CashRegister.establishment_id == establishment_id,
                    CashRegister.user_id == user_id,
                    CashRegister.status == CashRegisterStatus.OPEN.value,
                )
                .order_by(CashRegister.opened_at.desc())
                .first(),
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading open cash register: {str(e)}")
            raise RepositoryException(f"Failed to load cash register: {str(e)}")

    def add_movement(self, **kwargs) -> CashRegisterMovement:
        try:
            movement = CashRegisterMovement(**kwargs)
            self.db.add(movement)
            self.db.flush()
            return movement
        except SQLAlchemyError as e:
            self.logger.error(f"Error recording cash movement: {str(e)}")
            raise RepositoryException(f"Failed to record cash movement: {str(e)}")
