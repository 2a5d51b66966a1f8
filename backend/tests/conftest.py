"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before shared.config.settings is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config.constants import Roles
from shared.infrastructure.db import get_db
from shared.infrastructure.events import Event, get_event_sink
from shared.security.auth import sign_jwt
from shared.security.rate_limit import limiter
from tableside.core.dependencies import build_services, get_otp_issuer
from tableside.main import app
from tableside.models import Base, Restaurant, RestaurantTable
from tableside.services import OrderLine, OtpIssuer
from tableside.services.permissions import Actor


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class RecordingSink:
    """In-memory event sink."""

    def __init__(self):
        self.events: list[Event] = []

    def publish(self, event: Event) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self.events if e.type == event_type]


class FakeClock:
    """Controllable UTC clock for OTP expiry."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def otp_issuer(clock):
    return OtpIssuer(clock=clock)


@pytest.fixture
def services(db_session, sink, otp_issuer):
    """Services wired exactly as a request would get them."""
    return build_services(db_session, events=sink, otp=otp_issuer)


@pytest.fixture(scope="function")
def client(db_session, sink, otp_issuer):
    """
    Create a test client with database, event sink and OTP issuer overrides.
    The lifespan is not run; tables come from db_session.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_sink] = lambda: sink
    app.dependency_overrides[get_otp_issuer] = lambda: otp_issuer
    limiter.reset()

    yield TestClient(app)

    app.dependency_overrides.clear()


# =============================================================================
# Tenants and tables
# =============================================================================


@pytest.fixture
def seed_restaurant(db_session):
    restaurant = Restaurant(id=1, name="Test Restaurant", slug="test")
    db_session.add(restaurant)
    db_session.commit()
    db_session.refresh(restaurant)
    return restaurant


@pytest.fixture
def other_restaurant(db_session):
    restaurant = Restaurant(id=2, name="Other Restaurant", slug="other")
    db_session.add(restaurant)
    db_session.commit()
    db_session.refresh(restaurant)
    return restaurant


def _make_table(db_session, tenant_id: int, number: int) -> RestaurantTable:
    table = RestaurantTable(
        tenant_id=tenant_id,
        table_number=number,
        qr_code=f"QR-{tenant_id}-{number}",
        capacity=4,
    )
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def seed_table(db_session, seed_restaurant):
    return _make_table(db_session, seed_restaurant.id, 1)


@pytest.fixture
def second_table(db_session, seed_restaurant):
    return _make_table(db_session, seed_restaurant.id, 2)


@pytest.fixture
def other_table(db_session, other_restaurant):
    return _make_table(db_session, other_restaurant.id, 1)


# =============================================================================
# Actors and tokens
# =============================================================================


@pytest.fixture
def owner():
    return Actor(role=Roles.OWNER, tenant_id=1, identity_id=1)


@pytest.fixture
def admin():
    return Actor(role=Roles.ADMIN, tenant_id=1, identity_id=2)


@pytest.fixture
def waiter():
    return Actor(role=Roles.WAITER, tenant_id=1, identity_id=3)


@pytest.fixture
def other_waiter():
    """Waiter of restaurant 2."""
    return Actor(role=Roles.WAITER, tenant_id=2, identity_id=4)


def bearer(actor: Actor) -> dict[str, str]:
    claims = {
        "sub": str(actor.identity_id),
        "tenant_id": actor.tenant_id,
        "role": actor.role,
    }
    if actor.session_id is not None:
        claims["session_id"] = actor.session_id
    return {"Authorization": f"Bearer {sign_jwt(claims)}"}


@pytest.fixture
def auth_headers():
    """Build Authorization headers for an Actor."""
    return bearer


# =============================================================================
# Sessions, customers, orders
# =============================================================================


@pytest.fixture
def active_session(services, seed_table, waiter):
    return services.sessions.open(seed_table.id, seed_table.tenant_id, waiter)


@pytest.fixture
def join_customer(services):
    """Join a customer to the active session on a table."""
    def _join(session, name: str = "Asha", contact: str = "9876543210"):
        return services.joins.join(session.otp, session.table_id, name, contact)
    return _join


@pytest.fixture
def place_order(services, waiter):
    """Place an order of (quantity, price_cents) lines."""
    def _place(lines, session_id=None, customer_id=None, actor=None, restaurant_id=1):
        return services.orders.place_order(
            restaurant_id,
            [OrderLine(menu_item_id=100 + i, quantity=q, price_cents=p) for i, (q, p) in enumerate(lines)],
            actor or waiter,
            session_id=session_id,
            customer_id=customer_id,
        )
    return _place
