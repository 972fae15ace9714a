"""Tests for overlap and availability checks."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from clinicflow.core.exceptions import (
    AppointmentConflictError,
    DoctorNotAvailableError,
    InvalidTimeOrderError,
)
from clinicflow.domain.appointments import Appointment, AppointmentStatus
from clinicflow.repositories.appointment_repository import AppointmentRepository
from clinicflow.repositories.availability_repository import AvailabilityRepository
from clinicflow.services.conflict_detector import ConflictDetector

# 2024-03-01 09:00 in Mexico City
NINE = datetime(2024, 3, 1, 15, 0, tzinfo=UTC)


def at(minutes: int) -> datetime:
    return NINE + timedelta(minutes=minutes)


@pytest.fixture
def detector(db_session) -> ConflictDetector:
    return ConflictDetector(AppointmentRepository(db_session), AvailabilityRepository(db_session))


@pytest.fixture
async def booked(db_session, org_setup) -> Appointment:
    """Appointment A: 09:00-10:00 for the doctor in unit 1."""
    appointment = Appointment(
        start_time=at(0),
        end_time=at(60),
        patient_id=org_setup["patient_id"],
        doctor_id=org_setup["doctor_id"],
        unit_id=org_setup["unit_id"],
    )
    await AppointmentRepository(db_session).create(appointment)
    await db_session.commit()
    return appointment


def candidate(org_setup, start: int, end: int, **kwargs) -> Appointment:
    values = {
        "start_time": at(start),
        "end_time": at(end),
        "patient_id": org_setup["patient_id"],
        "doctor_id": org_setup["doctor_id"],
        "unit_id": org_setup["unit_id"],
    }
    values.update(kwargs)
    return Appointment(**values)


@pytest.mark.asyncio
async def test_touching_appointment_does_not_conflict(detector, org_setup, booked) -> None:
    """B [10:00, 11:00) right after A [09:00, 10:00)."""
    await detector.check_for_conflicts(candidate(org_setup, 60, 120))


@pytest.mark.asyncio
async def test_overlapping_appointment_conflicts(detector, org_setup, booked) -> None:
    """C [09:30, 10:30) overlaps A."""
    with pytest.raises(AppointmentConflictError):
        await detector.check_for_conflicts(candidate(org_setup, 30, 90))


@pytest.mark.asyncio
async def test_overlap_is_symmetric(detector, org_setup, booked) -> None:
    """An earlier candidate ending inside A conflicts as well."""
    with pytest.raises(AppointmentConflictError):
        await detector.check_for_conflicts(candidate(org_setup, -30, 30))


@pytest.mark.asyncio
async def test_same_unit_other_doctor_conflicts(
    detector, make_doctor, org_setup, booked
) -> None:
    other_doctor = await make_doctor()
    with pytest.raises(AppointmentConflictError):
        await detector.check_for_conflicts(candidate(org_setup, 15, 45, doctor_id=other_doctor))


@pytest.mark.asyncio
async def test_same_doctor_other_unit_conflicts(detector, org_setup, booked) -> None:
    with pytest.raises(AppointmentConflictError):
        await detector.check_for_conflicts(
            candidate(org_setup, 15, 45, unit_id=org_setup["second_unit_id"])
        )


@pytest.mark.asyncio
async def test_inactive_appointments_are_ignored(
    detector, db_session, org_setup, booked
) -> None:
    booked.cancel(datetime.now(UTC))
    await AppointmentRepository(db_session).update(booked)
    await db_session.commit()

    await detector.check_for_conflicts(candidate(org_setup, 0, 60))


@pytest.mark.asyncio
async def test_candidate_never_conflicts_with_itself(detector, org_setup, booked) -> None:
    moved = candidate(org_setup, 15, 75, id=booked.id)
    await detector.check_for_conflicts(moved)


@pytest.mark.asyncio
async def test_time_order_is_checked_first(detector, org_setup, booked) -> None:
    overlapping = candidate(org_setup, 0, 60)
    overlapping.end_time = overlapping.start_time
    with pytest.raises(InvalidTimeOrderError):
        await detector.check_for_conflicts(overlapping)


@pytest.mark.asyncio
async def test_doctor_outside_availability(detector, org_setup) -> None:
    """The doctor's window starts on 2024-03-01 at 08:00 local."""
    early = candidate(org_setup, -120, -90)
    with pytest.raises(DoctorNotAvailableError):
        await detector.check_for_conflicts(early)


@pytest.mark.asyncio
async def test_window_must_cover_whole_interval(detector, make_doctor, org_setup) -> None:
    doctor_id = await make_doctor(windows=[(at(0), at(60))])
    await detector.check_for_conflicts(candidate(org_setup, 0, 60, doctor_id=doctor_id))
    with pytest.raises(DoctorNotAvailableError):
        await detector.check_for_conflicts(candidate(org_setup, 30, 90, doctor_id=doctor_id))


@pytest.mark.asyncio
async def test_unavailable_window_does_not_count(detector, make_doctor, org_setup) -> None:
    doctor_id = await make_doctor(windows=[(at(0), at(60))], available=False)
    with pytest.raises(DoctorNotAvailableError):
        await detector.check_for_conflicts(candidate(org_setup, 0, 30, doctor_id=doctor_id))


@pytest.mark.asyncio
async def test_overlap_check_needs_doctor_and_unit(detector, org_setup, booked) -> None:
    """Without a unit only availability is checked."""
    await detector.check_for_conflicts(candidate(org_setup, 0, 60, unit_id=None))


@pytest.mark.asyncio
async def test_get_conflicting_appointments(detector, db_session, org_setup, booked) -> None:
    later = Appointment(
        start_time=at(60),
        end_time=at(120),
        patient_id=org_setup["patient_id"],
        doctor_id=org_setup["doctor_id"],
        unit_id=org_setup["second_unit_id"],
    )
    queued = Appointment(
        start_time=at(30),
        end_time=at(90),
        patient_id=org_setup["patient_id"],
        doctor_id=org_setup["doctor_id"],
        unit_id=org_setup["unit_id"],
        status=AppointmentStatus.NEEDS_RESCHEDULING,
    )
    repository = AppointmentRepository(db_session)
    await repository.create(later)
    await repository.create(queued)
    await db_session.commit()

    conflicts = await detector.get_conflicting_appointments(
        org_setup["doctor_id"], org_setup["unit_id"], at(30), at(90)
    )
    assert [a.id for a in conflicts] == [booked.id, later.id]

    excluding = await detector.get_conflicting_appointments(
        org_setup["doctor_id"], None, at(30), at(90), exclude_id=booked.id
    )
    assert [a.id for a in excluding] == [later.id]

    assert await detector.get_conflicting_appointments(uuid4(), uuid4(), at(30), at(90)) == []
