import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from clinicflow.core.timezones import to_absolute
from clinicflow.database import get_db, to_async_url
from clinicflow.dependencies import get_booking_locks, get_clock
from clinicflow.domain.availability import DoctorAvailability
from clinicflow.main import app
from clinicflow.models import (
    clinics,
    doctors,
    metadata,
    organizations,
    patients,
    units,
)
from clinicflow.repositories.availability_repository import AvailabilityRepository
from clinicflow.services.booking_locks import BookingLocks
from clinicflow.services.rescheduling_queue_service import ReschedulingQueueService
from clinicflow.services.scheduling_service import SchedulingService

# SQLite file per test unless TEST_DATABASE_URL points at a scratch PostgreSQL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

CLINIC_TZ = "America/Mexico_City"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a fresh schema for each test."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'clinicflow_test.db'}"
    engine = create_async_engine(to_async_url(url), echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 2, 20, 12, 0, tzinfo=UTC))


@pytest.fixture
def locks() -> BookingLocks:
    return BookingLocks()


@pytest.fixture
def scheduling(db_session, clock, locks) -> SchedulingService:
    return SchedulingService(db_session, clock, locks, strict_transitions=False)


@pytest.fixture
def queue(db_session, clock, locks) -> ReschedulingQueueService:
    return ReschedulingQueueService(db_session, clock, locks, strict_transitions=False)


@pytest_asyncio.fixture
async def client(db_session, clock, locks) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_booking_locks] = lambda: locks

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def local(value: str, zone: str = CLINIC_TZ) -> datetime:
    """Absolute instant for a clinic wall-clock ISO string."""
    return to_absolute(datetime.fromisoformat(value), zone)


async def add_doctor(db_session, organization_id, name: str = "Dr. Ana Ruiz"):
    doctor_id = uuid4()
    await db_session.execute(
        insert(doctors).values(
            id=doctor_id,
            organization_id=organization_id,
            name=name,
            specialty="Physiotherapy",
        )
    )
    return doctor_id


async def add_availability(db_session, doctor_id, start: datetime, end: datetime, available=True):
    return await AvailabilityRepository(db_session).create(
        DoctorAvailability(
            doctor_id=doctor_id,
            start_time=start,
            end_time=end,
            is_available=available,
        )
    )


async def add_patient(db_session, first_name: str, last_name: str, phone: str, email: str):
    patient_id = uuid4()
    await db_session.execute(
        insert(patients).values(
            id=patient_id,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            email=email,
        )
    )
    return patient_id


@pytest.fixture
async def org_setup(db_session) -> dict:
    """
    Two organizations with one clinic each.

    The main clinic runs on Mexico City time and has two units, a doctor
    available all week from 2024-03-01 and a patient.
    """
    org_id = uuid4()
    other_org_id = uuid4()
    clinic_id = uuid4()
    other_clinic_id = uuid4()
    unit_id = uuid4()
    second_unit_id = uuid4()
    other_unit_id = uuid4()

    await db_session.execute(
        insert(organizations).values(
            [
                {"id": org_id, "name": "Fisio Norte"},
                {"id": other_org_id, "name": "Otra Clinica"},
            ]
        )
    )
    await db_session.execute(
        insert(clinics).values(
            [
                {
                    "id": clinic_id,
                    "organization_id": org_id,
                    "name": "Fisio Norte Centro",
                    "timezone": CLINIC_TZ,
                },
                {
                    "id": other_clinic_id,
                    "organization_id": other_org_id,
                    "name": "Otra Clinica Sur",
                    "timezone": "",
                },
            ]
        )
    )
    await db_session.execute(
        insert(units).values(
            [
                {"id": unit_id, "clinic_id": clinic_id, "name": "Cabina 1"},
                {"id": second_unit_id, "clinic_id": clinic_id, "name": "Cabina 2"},
                {"id": other_unit_id, "clinic_id": other_clinic_id, "name": "Sala A"},
            ]
        )
    )

    doctor_id = await add_doctor(db_session, org_id)
    await add_availability(
        db_session,
        doctor_id,
        local("2024-03-01T08:00:00"),
        local("2024-03-08T20:00:00"),
    )
    patient_id = await add_patient(db_session, "Lucia", "Mendez", "5512345678", "lucia@example.com")
    await db_session.commit()

    return {
        "organization_id": org_id,
        "other_organization_id": other_org_id,
        "clinic_id": clinic_id,
        "other_clinic_id": other_clinic_id,
        "unit_id": unit_id,
        "second_unit_id": second_unit_id,
        "other_unit_id": other_unit_id,
        "doctor_id": doctor_id,
        "patient_id": patient_id,
    }


@pytest.fixture
def booking_data(org_setup) -> dict:
    """Request body for a 09:00-09:30 clinic-local booking on 2024-03-01."""
    return {
        "patient_id": str(org_setup["patient_id"]),
        "doctor_id": str(org_setup["doctor_id"]),
        "unit_id": str(org_setup["unit_id"]),
        "service_id": "PHYSIO-30",
        "start_time": "2024-03-01T09:00:00",
        "end_time": "2024-03-01T09:30:00",
    }


@pytest.fixture
def make_doctor(db_session, org_setup):
    """Factory for extra doctors of the main organization with their own windows."""

    async def factory(windows=(), available: bool = True, name: str = "Dr. Pablo Soto"):
        doctor_id = await add_doctor(db_session, org_setup["organization_id"], name)
        for start, end in windows:
            await add_availability(db_session, doctor_id, start, end, available)
        await db_session.commit()
        return doctor_id

    return factory


@pytest.fixture
def make_patient(db_session):
    async def factory(first_name: str, last_name: str, phone: str, email: str):
        patient_id = await add_patient(db_session, first_name, last_name, phone, email)
        await db_session.commit()
        return patient_id

    return factory
