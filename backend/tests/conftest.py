"""
Shared fixtures for the Courtbook test suite.

Every test gets its own in-memory SQLite database (StaticPool keeps the single
connection alive across sessions), a fixed clock and an event publisher that
records events instead of queueing Celery tasks.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Tuple

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from courtbook.api.dependencies import (
    get_availability_service,
    get_booking_service,
    get_recurring_booking_service,
)
from courtbook.core.actor import Actor
from courtbook.core.enums import ActorRole, BookingStatus, ResourceKind
from courtbook.database import Base
from courtbook.events import EventPublisher
from courtbook.main import create_app

# Import models so Base.metadata is populated for create_all.
import courtbook.models  # noqa: F401
from courtbook.models.booking import Booking
from courtbook.models.establishment import Establishment, OpeningHours
from courtbook.models.payment import CashRegister
from courtbook.models.resource import Resource
from courtbook.services.availability_service import AvailabilityService
from courtbook.services.booking_service import BookingService
from courtbook.services.recurring_booking_service import RecurringBookingService

# Saturday 2025-03-01, 09:00 in Buenos Aires
FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2025, 3, 3)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def published() -> List[Tuple[str, Dict[str, Any]]]:
    return []


@pytest.fixture
def event_publisher(published) -> EventPublisher:
    return EventPublisher(enqueue=lambda event_type, payload: published.append((event_type, payload)))


@pytest.fixture
def client_actor() -> Actor:
    return Actor(id="01HCLIENT0000000000000000A", role=ActorRole.CLIENT)


@pytest.fixture
def staff_actor() -> Actor:
    return Actor(id="01HSTAFF00000000000000000A", role=ActorRole.STAFF)


@pytest.fixture
def establishment(db) -> Establishment:
    establishment = Establishment(
        name="Club Norte",
        timezone="America/Argentina/Buenos_Aires",
        min_advance_booking_hours=0,
        min_cancellation_notice_hours=2,
        cancellation_policy="partial_refund",
        refund_percentage=50,
        recurring_min_weeks=1,
        recurring_max_weeks=24,
        recurring_cancellation_policy="credit",
    )
    db.add(establishment)
    db.commit()
    return establishment


def _make_court(db: Session, establishment: Establishment, name: str, sport: str = "padel") -> Resource:
    court = Resource(
        establishment_id=establishment.id,
        kind=ResourceKind.COURT.value,
        name=name,
        sport=sport,
        is_active=True,
        price_per_hour=Decimal("10000"),
        price_per_90=Decimal("14000"),
        price_per_120=Decimal("18000"),
    )
    db.add(court)
    db.commit()
    return court


@pytest.fixture
def court(db, establishment) -> Resource:
    return _make_court(db, establishment, "Cancha 1")


@pytest.fixture
def second_court(db, establishment) -> Resource:
    return _make_court(db, establishment, "Cancha 2")


@pytest.fixture
def make_court(db, establishment) -> Callable[..., Resource]:
    def factory(name: str, sport: str = "padel") -> Resource:
        return _make_court(db, establishment, name, sport)

    return factory


@pytest.fixture
def set_hours(db, establishment) -> Callable[..., OpeningHours]:
    """Store opening hours for a weekday, establishment-wide or for one resource."""

    def factory(weekday: int, open_time: time, close_time: time, resource=None, is_closed=False):
        row = OpeningHours(
            establishment_id=establishment.id,
            resource_id=resource.id if resource is not None else None,
            weekday=weekday,
            open_time=open_time,
            close_time=close_time,
            is_closed=is_closed,
        )
        db.add(row)
        db.commit()
        return row

    return factory


@pytest.fixture
def make_booking(db, court) -> Callable[..., Booking]:
    """Insert a booking row directly, bypassing the service checks."""

    def factory(
        booking_date: date = MONDAY,
        start: time = time(18, 0),
        end: time = time(19, 0),
        status: str = BookingStatus.CONFIRMED.value,
        resource: Resource = None,
        **overrides: Any,
    ) -> Booking:
        target = resource or court
        start_dt = datetime.combine(booking_date, start)
        end_dt = datetime.combine(booking_date, end)
        duration = int((end_dt - start_dt).total_seconds() // 60) % (24 * 60) or 24 * 60
        booking = Booking(
            establishment_id=target.establishment_id,
            resource_id=target.id,
            booking_date=booking_date,
            start_time=start,
            end_time=end,
            duration_minutes=duration,
            status=status,
            total_amount=Decimal("10000"),
            **overrides,
        )
        db.add(booking)
        db.commit()
        return booking

    return factory


@pytest.fixture
def open_register(db, establishment, staff_actor) -> CashRegister:
    register = CashRegister(establishment_id=establishment.id, user_id=staff_actor.id)
    db.add(register)
    db.commit()
    return register


@pytest.fixture
def client(db, clock, event_publisher):
    """TestClient whose services share the test session, clock and publisher."""
    app = create_app()
    app.dependency_overrides[get_booking_service] = lambda: BookingService(
        db, event_publisher=event_publisher, clock=clock
    )
    app.dependency_overrides[get_recurring_booking_service] = lambda: RecurringBookingService(
        db, event_publisher=event_publisher, clock=clock
    )
    app.dependency_overrides[get_availability_service] = lambda: AvailabilityService(db, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
