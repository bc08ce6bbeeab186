# backend/tests/conftest.py
"""
Pytest configuration for the booking back-end.

Tests run against a file-backed SQLite database (override with
TEST_DATABASE_URL). Every test gets freshly created tables, and the
engine is configured exactly like the application engine so SQLite
transactions open with BEGIN IMMEDIATE.
"""

import os
import sys
import tempfile

# CRITICAL: Set testing mode BEFORE any app imports!
os.environ["is_testing"] = "true"
os.environ.setdefault(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), f'bookdesk_test_{os.getpid()}.db')}",
)

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from bookdesk.core.config import settings

settings.is_testing = True

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Callable, Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from bookdesk.api.dependencies.database import get_db
from bookdesk.auth import create_access_token
from bookdesk.core.enums import RoleName
from bookdesk.core.tenant import TenantContext
from bookdesk.core.timezone_utils import local_to_utc, to_local
from bookdesk.database import Base, _build_engine_kwargs, configure_engine
from bookdesk.main import app as asgi_app, fastapi_app
from bookdesk.models import Customer, Service, Staff, Vehicle
from bookdesk.services.business_hours_service import BusinessHoursService, WeekdayInterval
from bookdesk.services.organization_service import OrganizationService

# ============================================================================
# TEST DATABASE CONFIGURATION
# ============================================================================

ORG_TIMEZONE = "Australia/Adelaide"


def _validate_test_database_url(database_url: str) -> None:
    """Refuse to run against anything that does not look like a test database."""
    if not database_url:
        raise RuntimeError("No database URL configured for tests!")
    if database_url.startswith("sqlite"):
        return
    if "test" not in database_url.lower():
        raise RuntimeError(
            "TEST_DATABASE_URL must point at a database whose name contains 'test'; "
            "tables are dropped after every test."
        )


TEST_DATABASE_URL = settings.get_database_url()
_validate_test_database_url(TEST_DATABASE_URL)

test_engine = configure_engine(
    create_engine(TEST_DATABASE_URL, **_build_engine_kwargs(TEST_DATABASE_URL))
)

TestSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
)


# ============================================================================
# Helper Functions
# ============================================================================


def next_weekday(weekday: int, tz_name: str = ORG_TIMEZONE) -> date:
    """The next local date strictly after today that falls on ``weekday``."""
    today = to_local(datetime.now(timezone.utc), tz_name).date()
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def local_instant(day: date, hour: int, minute: int = 0, tz_name: str = ORG_TIMEZONE) -> datetime:
    """UTC instant for a wall-clock time on a local date."""
    return local_to_utc(day, time(hour, minute), tz_name)


# ============================================================================
# Core fixtures
# ============================================================================


@pytest.fixture(scope="function")
def db():
    """
    Create a new database session for each test.

    Tables are created before and dropped after each test so tests never
    see each other's rows.
    """
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    yield session

    # Cleanup
    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db: Session):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    fastapi_app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(asgi_app)
    yield test_client

    # Cleanup
    fastapi_app.dependency_overrides.clear()
    test_client.close()


# ============================================================================
# Organization and catalog fixtures
# ============================================================================


@pytest.fixture
def organization(db: Session):
    """
    Organization open Monday to Friday 09:00-17:00 in Adelaide.

    Slot grid 30 minutes, no lead time, 30-day horizon.
    """
    org = OrganizationService(db).create_organization("Test Garage", timezone=ORG_TIMEZONE)
    admin = TenantContext(organization_id=org.id, user_id="setup-admin", role=RoleName.ADMIN)
    hours = BusinessHoursService(db)
    hours.set_week(
        admin,
        [
            WeekdayInterval(weekday=day, open_time=time(9), close_time=time(17), is_closed=False)
            for day in range(5)
        ],
    )
    hours.update_settings(
        admin, {"slot_minutes": 30, "min_lead_minutes": 0, "max_horizon_days": 30}
    )
    return org


@pytest.fixture
def other_organization(db: Session):
    org = OrganizationService(db).create_organization("Other Salon", timezone=ORG_TIMEZONE)
    admin = TenantContext(organization_id=org.id, user_id="other-admin", role=RoleName.ADMIN)
    BusinessHoursService(db).set_week(
        admin,
        [
            WeekdayInterval(weekday=day, open_time=time(9), close_time=time(17), is_closed=False)
            for day in range(5)
        ],
    )
    return org


def _ctx_factory(org_id: str, role: RoleName, user_id: str) -> TenantContext:
    return TenantContext(organization_id=org_id, user_id=user_id, role=role)


@pytest.fixture
def admin_ctx(organization) -> TenantContext:
    return _ctx_factory(organization.id, RoleName.ADMIN, "user-admin")


@pytest.fixture
def manager_ctx(organization) -> TenantContext:
    return _ctx_factory(organization.id, RoleName.MANAGER, "user-manager")


@pytest.fixture
def viewer_ctx(organization) -> TenantContext:
    return _ctx_factory(organization.id, RoleName.VIEWER, "user-viewer")


@pytest.fixture
def catalog(db: Session, organization):
    """
    Catalog entities for the test organization.

    s1: 60-minute service at 85.00. s2: 30-minute service at 40.00 that
    requires a vehicle. v1 belongs to c1, v2 to c2.
    """
    org_id = organization.id
    c1 = Customer(organization_id=org_id, first_name="Alice", last_name="Nguyen", email="alice@example.com")
    c2 = Customer(organization_id=org_id, first_name="Bob", last_name="Smith", email="bob@example.com")
    st1 = Staff(organization_id=org_id, first_name="Sam", last_name="Mechanic")
    st2 = Staff(organization_id=org_id, first_name="Jo", last_name="Fitter")
    s1 = Service(organization_id=org_id, name="Logbook Service", duration_minutes=60, price=Decimal("85.00"))
    s2 = Service(
        organization_id=org_id,
        name="Tyre Rotation",
        duration_minutes=30,
        price=Decimal("40.00"),
        requires_vehicle=True,
    )
    db.add_all([c1, c2, st1, st2, s1, s2])
    db.flush()
    v1 = Vehicle(organization_id=org_id, customer_id=c1.id, make="Toyota", model="Corolla", license_plate="S123ABC")
    v2 = Vehicle(organization_id=org_id, customer_id=c2.id, make="Mazda", model="3", license_plate="S456DEF")
    db.add_all([v1, v2])
    db.commit()
    return SimpleNamespace(c1=c1, c2=c2, st1=st1, st2=st2, s1=s1, s2=s2, v1=v1, v2=v2)


@pytest.fixture
def monday() -> date:
    return next_weekday(0)


# ============================================================================
# Auth fixtures
# ============================================================================


@pytest.fixture
def auth_headers_for(organization) -> Callable[..., Dict[str, str]]:
    """Build bearer headers for a role in the test organization (or another one)."""

    def _headers(role: RoleName = RoleName.MANAGER, org_id: str = None, user_id: str = None) -> Dict[str, str]:
        token = create_access_token(
            {
                "sub": user_id or f"user-{role.value}",
                "org_id": org_id or organization.id,
                "role": role.value,
            }
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def auth_headers(auth_headers_for) -> Dict[str, str]:
    return auth_headers_for(RoleName.MANAGER)


@pytest.fixture
def admin_headers(auth_headers_for) -> Dict[str, str]:
    return auth_headers_for(RoleName.ADMIN)


# ============================================================================
# Request helpers
# ============================================================================


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant from a response body."""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture
def at(monday) -> Callable[..., datetime]:
    """UTC instant for a local wall-clock time on the test Monday."""

    def _at(hour: int, minute: int = 0, day: date = None) -> datetime:
        return local_instant(day or monday, hour, minute)

    return _at


@pytest.fixture
def booking_payload(catalog, at) -> Callable[..., Dict]:
    """
    JSON body for POST /bookings.

    Defaults to customer c1, service s1 and staff st1; keyword arguments
    override or add fields. ``None`` sends an explicit null and ``...``
    drops the field.
    """

    def _payload(hour: int = 10, minute: int = 0, **overrides) -> Dict:
        body = {
            "customer_id": catalog.c1.id,
            "service_ids": [catalog.s1.id],
            "staff_id": catalog.st1.id,
            "start_time": at(hour, minute).isoformat(),
        }
        body.update(overrides)
        return {key: value for key, value in body.items() if value is not ...}

    return _payload
