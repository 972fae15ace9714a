"""Rescheduling queue endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from clinicflow.dependencies import CurrentClock, CurrentOrganizationId, DatabaseSession, Locks
from clinicflow.schemas.appointments import AppointmentResponse
from clinicflow.schemas.rescheduling_queue import (
    QueueCancelRequest,
    QueueRescheduleRequest,
    QueueRescheduleResponse,
    QueueSnoozeRequest,
    QueueSort,
    ReschedulingQueueResponse,
)
from clinicflow.services.rescheduling_queue_service import ReschedulingQueueService

router = APIRouter()


@router.get(
    "/rescheduling-queue",
    response_model=ReschedulingQueueResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments needing rescheduling",
)
async def get_rescheduling_queue(
    organization_id: CurrentOrganizationId,
    db: DatabaseSession,
    clock: CurrentClock,
    clinic_id: UUID | None = Query(None),
    doctor_id: UUID | None = Query(None),
    search: str | None = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sort: QueueSort = Query(QueueSort.OLDEST),
) -> ReschedulingQueueResponse:
    """
    List the organization's rescheduling queue.

    Args:
        organization_id: Calling organization
        db: Database session
        clock: Clock used for snooze visibility and queue age
        clinic_id: Filter by clinic
        doctor_id: Filter by doctor
        search: Substring of patient name, phone or email
        page: Page number
        limit: Items per page, capped at QUEUE_MAX_PAGE_SIZE
        sort: ``oldest`` or ``newest`` first

    Returns:
        Paginated queue rows
    """
    service = ReschedulingQueueService(db, clock)
    return await service.get_queue(
        organization_id,
        clinic_id=clinic_id,
        doctor_id=doctor_id,
        search=search,
        page=page,
        limit=limit,
        sort=sort,
    )


@router.post(
    "/{appointment_id}/queue/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel a queued appointment",
)
async def cancel_from_queue(
    appointment_id: UUID,
    data: QueueCancelRequest,
    organization_id: CurrentOrganizationId,
    db: DatabaseSession,
    clock: CurrentClock,
) -> AppointmentResponse:
    service = ReschedulingQueueService(db, clock)
    return await service.cancel_from_queue(appointment_id, organization_id, data)


@router.post(
    "/{appointment_id}/queue/reschedule",
    response_model=QueueRescheduleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a replacement for a queued appointment",
)
async def reschedule_from_queue(
    appointment_id: UUID,
    data: QueueRescheduleRequest,
    organization_id: CurrentOrganizationId,
    db: DatabaseSession,
    clock: CurrentClock,
    locks: Locks,
) -> QueueRescheduleResponse:
    """
    Create a new appointment for the queued one and link the two.

    Args:
        appointment_id: Queued appointment ID
        data: New doctor, unit and clinic wall-clock window
        organization_id: Calling organization
        db: Database session
        clock: Clock used for timestamps
        locks: Booking lock registry

    Returns:
        The original appointment ID and the new appointment
    """
    service = ReschedulingQueueService(db, clock, locks)
    return await service.reschedule_from_queue(appointment_id, organization_id, data)


@router.post(
    "/{appointment_id}/queue/snooze",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Hide a queued appointment for a while",
)
async def snooze_queued_appointment(
    appointment_id: UUID,
    data: QueueSnoozeRequest,
    organization_id: CurrentOrganizationId,
    db: DatabaseSession,
    clock: CurrentClock,
) -> AppointmentResponse:
    service = ReschedulingQueueService(db, clock)
    return await service.snooze(appointment_id, organization_id, data)
