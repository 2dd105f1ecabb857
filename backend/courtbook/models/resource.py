# backend/courtbook/models/resource.py
"""
Resource model: a bookable court or amenity owned by an establishment.
"""

from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import ResourceKind
from ..core.ulid_helper import generate_ulid
from ..database import Base

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class Resource(Base):
    """
    A court or amenity with duration-based price tiers.

    ``price_per_hour`` is mandatory; the 90 and 120 minute tiers are optional
    flat prices. Other durations are pro-rated from the hourly price.
    """

    __tablename__ = "resources"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    establishment_id = Column(
        String(26), ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind = Column(String(20), nullable=False, default=ResourceKind.COURT.value)
    name = Column(String(120), nullable=False)
    sport = Column(String(60), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    price_per_hour = Column(Numeric(10, 2), nullable=False, default=0)
    price_per_90 = Column(Numeric(10, 2), nullable=True)
    price_per_120 = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    establishment = relationship("Establishment", back_populates="resources")

    __table_args__ = (
        CheckConstraint("kind IN ('court', 'amenity')", name="ck_resources_kind"),
        CheckConstraint("price_per_hour >= 0", name="ck_resources_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Resource {self.id}: {self.kind} {self.name} ({self.sport})>"

    def price_for(self, duration_minutes: int) -> Decimal:
        """Price of a booking of ``duration_minutes`` on this resource."""
        tier: Optional[Decimal] = None
        if duration_minutes == 60:
            tier = self.price_per_hour
        elif duration_minutes == 90:
            tier = self.price_per_90
        elif duration_minutes == 120:
            tier = self.price_per_120

        if tier is not None:
            return Decimal(tier).quantize(CENTS)

        hourly = Decimal(self.price_per_hour or 0)
        return (hourly / Decimal(60) * Decimal(duration_minutes)).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )
