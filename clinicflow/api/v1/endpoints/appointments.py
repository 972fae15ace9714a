"""Appointment endpoints."""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinicflow.dependencies import CurrentClock, CurrentOrganizationId, DatabaseSession, Locks
from clinicflow.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentUpdate,
    AvailableSlotsResponse,
    ConflictListResponse,
)
from clinicflow.services.scheduling_service import ConflictPolicy, SchedulingService

router = APIRouter()


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    db: DatabaseSession,
    clock: CurrentClock,
    locks: Locks,
    conflict_policy: ConflictPolicy | None = Query(None),
) -> AppointmentResponse:
    """
    Create a new appointment.

    Start and end are wall-clock times in the zone of the unit's clinic.

    Args:
        data: Appointment creation data
        db: Database session
        clock: Clock used for timestamps
        locks: Booking lock registry
        conflict_policy: ``check`` to reject overlapping bookings, ``defer``
            to accept them and resolve through the rescheduling queue

    Returns:
        Created appointment
    """
    service = SchedulingService(db, clock, locks)
    return await service.create_appointment(data, conflict_policy)


@router.get(
    "",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    organization_id: CurrentOrganizationId,
    db: DatabaseSession,
    clock: CurrentClock,
    from_time: datetime | None = Query(None),
    to_time: datetime | None = Query(None),
    clinic_id: UUID | None = Query(None),
    doctor_id: UUID | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List the organization's appointments with filtering.

    Args:
        organization_id: Calling organization
        db: Database session
        clock: Clock used for timestamps
        from_time: Earliest start, clinic wall clock when clinic_id is given
        to_time: Latest start (exclusive)
        clinic_id: Filter by clinic ID
        doctor_id: Filter by doctor ID
        status_filter: Filter by status
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    service = SchedulingService(db, clock)
    return await service.list_appointments(
        organization_id,
        from_time=from_time,
        to_time=to_time,
        clinic_id=clinic_id,
        doctor_id=doctor_id,
        status=status_filter,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/available-slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="Free slots of a doctor on a day",
)
async def get_available_slots(
    db: DatabaseSession,
    clock: CurrentClock,
    doctor_id: UUID = Query(...),
    day: date = Query(..., alias="date"),
    slot_minutes: int | None = Query(None, ge=1, le=480),
    clinic_id: UUID | None = Query(None),
) -> AvailableSlotsResponse:
    service = SchedulingService(db, clock)
    return await service.get_available_slots(doctor_id, day, slot_minutes, clinic_id)


@router.get(
    "/conflicts",
    response_model=ConflictListResponse,
    status_code=status.HTTP_200_OK,
    summary="Appointments overlapping a window",
)
async def get_conflicts(
    db: DatabaseSession,
    clock: CurrentClock,
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    doctor_id: UUID | None = Query(None),
    unit_id: UUID | None = Query(None),
    exclude_id: UUID | None = Query(None),
) -> ConflictListResponse:
    """
    Active appointments of the doctor or unit that overlap the window.

    Times are wall clock in the unit's clinic zone (UTC without a unit).
    """
    service = SchedulingService(db, clock)
    return await service.get_conflicts(start_time, end_time, doctor_id, unit_id, exclude_id)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
    clock: CurrentClock,
) -> AppointmentResponse:
    service = SchedulingService(db, clock)
    return await service.get_appointment(appointment_id)


@router.patch(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    db: DatabaseSession,
    clock: CurrentClock,
) -> AppointmentResponse:
    """
    Partially update an appointment.

    Changing the time without sending a status marks it as rescheduled.

    Args:
        appointment_id: Appointment ID
        data: Fields to change
        db: Database session
        clock: Clock used for timestamps

    Returns:
        Updated appointment
    """
    service = SchedulingService(db, clock)
    return await service.update_appointment(appointment_id, data)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
    clock: CurrentClock,
) -> None:
    service = SchedulingService(db, clock)
    await service.delete_appointment(appointment_id)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Move appointment to a new time",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    db: DatabaseSession,
    clock: CurrentClock,
    locks: Locks,
) -> AppointmentResponse:
    """
    Move an appointment after checking for conflicts.

    Args:
        appointment_id: Appointment ID
        data: New start and end, clinic wall clock
        db: Database session
        clock: Clock used for timestamps
        locks: Booking lock registry

    Returns:
        Rescheduled appointment
    """
    service = SchedulingService(db, clock, locks)
    return await service.reschedule_appointment(appointment_id, data)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
    clock: CurrentClock,
    data: AppointmentCancel | None = None,
) -> AppointmentResponse:
    service = SchedulingService(db, clock)
    return await service.cancel_appointment(appointment_id, data.reason if data else None)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
    clock: CurrentClock,
) -> AppointmentResponse:
    service = SchedulingService(db, clock)
    return await service.complete_appointment(appointment_id)


@router.post(
    "/{appointment_id}/needs-rescheduling",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Move appointment to the rescheduling queue",
)
async def move_to_needs_rescheduling(
    appointment_id: UUID,
    db: DatabaseSession,
    clock: CurrentClock,
) -> AppointmentResponse:
    service = SchedulingService(db, clock)
    return await service.move_to_needs_rescheduling(appointment_id)
