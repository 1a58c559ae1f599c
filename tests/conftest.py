"""
Shared test fixtures.

Sets up an isolated SQLite test database so tests never touch
the real database. Tables are created fresh for every test.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hospital_ledger.api.deps import get_clock
from hospital_ledger.clock import FixedClock
from hospital_ledger.main import app
from hospital_ledger.models import (
    Base,
    Appointment,
    AppointmentService,
    AppointmentStatus,
    Department,
    DepartmentService,
)
from hospital_ledger.models.base import enable_sqlite_savepoints, get_db
from hospital_ledger.services.record_service import RecordService


# SQLite for tests: no external database needed.
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
# The ledger isolates bookkeeping failures with SAVEPOINTs
enable_sqlite_savepoints(engine)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

# Friday afternoon; every test starts from the same moment
NOW = datetime(2025, 3, 14, 15, 0, 0)
# Earlier the same day, inside the live [midnight, now) window
BOOKED_AT = datetime(2025, 3, 14, 10, 0, 0)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def records(db_session, clock):
    """RecordService wired to the test clock."""
    return RecordService(db_session, clock=clock)


@pytest.fixture
def client(db_session, clock):
    """
    Provide a test client with the test database and clock.

    get_db and get_clock are overridden so the app shares the
    test session and sees the frozen time.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- Builders ---

@pytest.fixture
def departments(db_session):
    """A general department and the Laboratory, each with one service."""
    general = Department(name="Cardiology")
    lab = Department(name="Laboratory")
    db_session.add_all([general, lab])
    db_session.flush()

    ecg = DepartmentService(
        department_id=general.id, name="ECG", price=Decimal("50.00")
    )
    blood = DepartmentService(
        department_id=lab.id, name="Blood Panel", price=Decimal("40.00")
    )
    db_session.add_all([ecg, blood])
    db_session.flush()
    return {"general": general, "lab": lab, "ecg": ecg, "blood": blood}


@pytest.fixture
def make_appointment(records):
    """Factory for appointments booked this morning unless told otherwise."""
    def _make(fee="100.00", discount="0.00",
              status=AppointmentStatus.SCHEDULED, department=None,
              when=BOOKED_AT, number=None):
        return records.create(Appointment(
            appointment_number=number,
            patient_name="Jane Doe",
            department_id=department.id if department else None,
            status=status,
            fee=Decimal(fee),
            discount=Decimal(discount),
            appointment_date=when,
            created_at=when,
        ))
    return _make


@pytest.fixture
def attach_service(records):
    """Factory for services attached to an existing appointment."""
    def _attach(appointment, department_service, cost="50.00", when=BOOKED_AT):
        return records.create(AppointmentService(
            appointment_id=appointment.id,
            department_service_id=department_service.id,
            final_cost=Decimal(cost),
            created_at=when,
        ))
    return _attach
