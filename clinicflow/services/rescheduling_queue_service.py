"""Rescheduling queue: appointments that lost their slot and await a new one."""

import math
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.config import settings
from clinicflow.core.clock import Clock, system_clock
from clinicflow.core.exceptions import (
    DoctorNotFoundError,
    InvalidTimeOrderError,
    NotInQueueError,
    OwnershipMismatchError,
)
from clinicflow.core.timezones import to_absolute, to_display
from clinicflow.domain.appointments import Appointment, AppointmentStatus
from clinicflow.repositories.appointment_repository import AppointmentDetails, QueueFilters
from clinicflow.repositories.reference_repository import UnitWithClinic
from clinicflow.schemas.appointments import AppointmentResponse
from clinicflow.schemas.rescheduling_queue import (
    QueueCancelRequest,
    QueuePatient,
    QueueRescheduleRequest,
    QueueRescheduleResponse,
    QueueSnoozeRequest,
    QueueSort,
    ReschedulingQueueItem,
    ReschedulingQueueResponse,
)
from clinicflow.services.booking_locks import BookingLocks, booking_locks
from clinicflow.services.scheduling_service import SchedulingService

logger = structlog.get_logger(__name__)

_SECONDS_PER_DAY = 24 * 60 * 60


def days_in_queue(queued_at: datetime | None, now: datetime) -> int:
    """Whole days elapsed since an appointment entered the queue."""
    if queued_at is None:
        return 0
    return max(int((now - queued_at).total_seconds() // _SECONDS_PER_DAY), 0)


def combine_reason(reason: str, notes: str | None) -> str:
    if notes:
        return f"{reason} - {notes}"
    return reason


def _to_item(details: AppointmentDetails, now: datetime) -> ReschedulingQueueItem:
    appointment = details.appointment
    patient = None
    if appointment.patient_id is not None and details.patient_first_name is not None:
        patient = QueuePatient(
            id=appointment.patient_id,
            first_name=details.patient_first_name,
            last_name=details.patient_last_name,
            phone=details.patient_phone,
            email=details.patient_email,
        )
    return ReschedulingQueueItem(
        appointment_id=appointment.id,
        status=appointment.status.value,
        patient=patient,
        doctor_id=appointment.doctor_id,
        doctor_name=details.doctor_name,
        clinic_id=details.clinic_id,
        clinic_name=details.clinic_name,
        unit_id=appointment.unit_id,
        unit_name=details.unit_name,
        service_id=appointment.service_id,
        notes=appointment.notes,
        original_start_time=to_display(appointment.start_time, details.timezone),
        original_end_time=to_display(appointment.end_time, details.timezone),
        timezone=details.timezone,
        moved_to_needs_rescheduling_at=appointment.moved_to_needs_rescheduling_at,
        days_in_queue=days_in_queue(appointment.moved_to_needs_rescheduling_at, now),
        last_action_timestamp=appointment.updated_at,
    )


class ReschedulingQueueService:
    """Service for working the rescheduling queue of an organization."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = system_clock,
        locks: BookingLocks = booking_locks,
        strict_transitions: bool | None = None,
    ):
        self.db = db
        self.clock = clock
        self.scheduling = SchedulingService(db, clock, locks, strict_transitions)
        self.appointments = self.scheduling.appointments
        self.references = self.scheduling.references

    async def _load_queued(
        self,
        appointment_id: UUID,
        organization_id: UUID,
    ) -> tuple[Appointment, UnitWithClinic | None]:
        """
        Load a queued appointment owned by ``organization_id``.

        Ownership is resolved through the appointment's unit; appointments
        without a unit are not checked.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            NotInQueueError: If its status is not needs-rescheduling
            OwnershipMismatchError: If its clinic belongs to another organization
        """
        appointment = await self.scheduling.get_entity(appointment_id)
        if not appointment.is_in_queue:
            raise NotInQueueError()

        unit = None
        if appointment.unit_id is not None:
            unit = await self.scheduling.resolve_unit(appointment.unit_id)
            if unit.organization_id != organization_id:
                raise OwnershipMismatchError()
        return appointment, unit

    async def get_queue(
        self,
        organization_id: UUID,
        clinic_id: UUID | None = None,
        doctor_id: UUID | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int | None = None,
        sort: QueueSort = QueueSort.OLDEST,
    ) -> ReschedulingQueueResponse:
        """
        List queued appointments of an organization.

        Entries snoozed into the future are hidden. Rows are ordered by the
        time they entered the queue.
        """
        page = max(page, 1)
        if not limit or limit < 1:
            limit = settings.queue_default_page_size
        limit = min(limit, settings.queue_max_page_size)

        now = self.clock.now()
        filters = QueueFilters(
            organization_id=organization_id,
            clinic_id=clinic_id,
            doctor_id=doctor_id,
            search=search.strip() if search and search.strip() else None,
            page=page,
            limit=limit,
            newest_first=sort == QueueSort.NEWEST,
        )
        rows, total = await self.appointments.get_rescheduling_queue(filters, now)

        return ReschedulingQueueResponse(
            items=[_to_item(row, now) for row in rows],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )

    async def cancel_from_queue(
        self,
        appointment_id: UUID,
        organization_id: UUID,
        data: QueueCancelRequest,
    ) -> AppointmentResponse:
        """
        Cancel a queued appointment, storing "reason - notes" as the reason.

        Raises:
            AppointmentNotFoundError, NotInQueueError, OwnershipMismatchError
        """
        appointment, _ = await self._load_queued(appointment_id, organization_id)
        self.scheduling.check_transition(appointment, AppointmentStatus.CANCELLED)

        appointment.cancel_with_reason(combine_reason(data.reason, data.notes), self.clock.now())
        await self.appointments.cancel_with_reason(appointment)
        await self.db.commit()

        logger.info(
            "queued_appointment_cancelled",
            appointment_id=str(appointment.id),
            organization_id=str(organization_id),
            reason=data.reason,
        )
        return await self.scheduling.present(appointment.id)

    async def reschedule_from_queue(
        self,
        appointment_id: UUID,
        organization_id: UUID,
        data: QueueRescheduleRequest,
    ) -> QueueRescheduleResponse:
        """
        Replace a queued appointment with a new booking.

        A new scheduled appointment for the same patient is created after a
        full conflict check, and the original is linked to it. Both writes
        commit together.

        Raises:
            AppointmentNotFoundError, NotInQueueError, OwnershipMismatchError
            DoctorNotFoundError, UnitNotFoundError: For the new doctor or unit
            InvalidTimeOrderError: If end is not after start
            AppointmentConflictError, DoctorNotAvailableError
        """
        original, _ = await self._load_queued(appointment_id, organization_id)

        if not await self.references.doctor_exists(data.doctor_id):
            raise DoctorNotFoundError()
        unit = await self.scheduling.resolve_unit(data.unit_id)
        if unit.organization_id != organization_id:
            raise OwnershipMismatchError()

        start = to_absolute(data.start_time, unit.timezone)
        end = to_absolute(data.end_time, unit.timezone)
        if end <= start:
            raise InvalidTimeOrderError()
        self.scheduling.check_transition(original, AppointmentStatus.RESCHEDULED)

        now = self.clock.now()
        replacement = Appointment(
            start_time=start,
            end_time=end,
            patient_id=original.patient_id,
            doctor_id=data.doctor_id,
            unit_id=data.unit_id,
            service_id=data.service_id if data.service_id is not None else original.service_id,
            notes=data.notes if data.notes is not None else original.notes,
            created_at=now,
            updated_at=now,
        )

        async with self.scheduling.booking(replacement.doctor_id, replacement.unit_id):
            await self.scheduling.detector.check_for_conflicts(replacement)
            await self.appointments.create(replacement)
            original.link_to_rescheduled_appointment(replacement.id, now)
            await self.appointments.update(original)

        logger.info(
            "queued_appointment_rescheduled",
            original_appointment_id=str(original.id),
            appointment_id=str(replacement.id),
            organization_id=str(organization_id),
        )
        return QueueRescheduleResponse(
            original_appointment_id=original.id,
            appointment=await self.scheduling.present(replacement.id),
        )

    async def snooze(
        self,
        appointment_id: UUID,
        organization_id: UUID,
        data: QueueSnoozeRequest,
    ) -> AppointmentResponse:
        """Hide a queued appointment until the given clinic-local time."""
        appointment, unit = await self._load_queued(appointment_id, organization_id)
        until = to_absolute(data.until, unit.timezone if unit else "")

        appointment.snooze(until, self.clock.now())
        await self.appointments.snooze(appointment)
        await self.db.commit()

        logger.info(
            "queued_appointment_snoozed",
            appointment_id=str(appointment.id),
            snoozed_until=until.isoformat(),
        )
        return await self.scheduling.present(appointment.id)
