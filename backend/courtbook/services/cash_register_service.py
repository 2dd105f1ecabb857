# backend/courtbook/services/cash_register_service.py
"""
Cash-register ledger hook for payment-affecting booking mutations.

Runs inside the caller's transaction: the movement and the register totals
are flushed with the booking change and committed (or rolled back) with it.
"""

from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.actor import Actor
from ..core.enums import PaymentMethod
from ..models.booking import Booking
from ..models.payment import CashRegisterMovement
from ..repositories import RepositoryFactory
from .base import BaseService, Clock

logger = logging.getLogger(__name__)

_METHOD_TOTALS = {
    PaymentMethod.CASH.value: "total_cash",
    PaymentMethod.CARD.value: "total_card",
    PaymentMethod.CREDIT_CARD.value: "total_card",
    PaymentMethod.DEBIT_CARD.value: "total_card",
    PaymentMethod.TRANSFER.value: "total_transfer",
    PaymentMethod.MERCADOPAGO.value: "total_transfer",
}


class CashRegisterService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock=clock)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)

    def record_sale(
        self,
        actor: Actor,
        booking: Booking,
        amount: Decimal,
        method: str,
        description: str,
    ) -> Optional[CashRegisterMovement]:
        """
        Write a sale movement into the actor's open register.

        Returns None when the actor has no open register at the booking's
        establishment. Does not commit.
        """
        register = self.payment_repository.get_open_cash_register(
            booking.establishment_id, actor.id
        )
        if register is None:
            logger.debug(
                f"No open cash register for {actor.id} at {booking.establishment_id}; "
                "skipping ledger entry"
            )
            return None

        movement = self.payment_repository.add_movement(
            cash_register_id=register.id,
            establishment_id=booking.establishment_id,
            booking_id=booking.id,
            movement_type="sale",
            amount=amount,
            payment_method=method,
            description=description,
            registered_by_id=actor.id,
        )

        total_field = _METHOD_TOTALS.get(method, "total_other")
        register.total_sales = Decimal(register.total_sales or 0) + amount
        setattr(register, total_field, Decimal(getattr(register, total_field) or 0) + amount)
        self.db.flush()

        self.log_operation(
            "record_sale", booking_id=booking.id, amount=str(amount), payment_method=method
        )
        return movement
