"""Scheduling service: creation, updates and slot search for appointments."""

import dataclasses
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from enum import Enum
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.config import settings
from clinicflow.core.clock import Clock, system_clock
from clinicflow.core.exceptions import (
    AppointmentNotFoundError,
    ClinicNotFoundError,
    DoctorNotFoundError,
    InvalidStatusTransitionError,
    InvalidTimeOrderError,
    PatientNotFoundError,
    UnitNotFoundError,
    ValidationException,
)
from clinicflow.core.timezones import local_day_bounds, to_absolute, to_display
from clinicflow.domain.appointments import Appointment, AppointmentStatus
from clinicflow.repositories.appointment_repository import (
    AppointmentDetails,
    AppointmentListFilters,
    AppointmentRepository,
)
from clinicflow.repositories.availability_repository import AvailabilityRepository
from clinicflow.repositories.reference_repository import ReferenceRepository, UnitWithClinic
from clinicflow.schemas.appointments import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentUpdate,
    AvailableSlot,
    AvailableSlotsResponse,
    ConflictListResponse,
)
from clinicflow.services.booking_locks import BookingLocks, booking_locks
from clinicflow.services.conflict_detector import ConflictDetector

logger = structlog.get_logger(__name__)


class ConflictPolicy(str, Enum):
    """How appointment creation treats overlapping bookings."""

    # Run the conflict detector before insert
    CHECK = "check"
    # Insert without checking; double bookings surface through the queue
    DEFER = "defer"


def build_response(details: AppointmentDetails) -> AppointmentResponse:
    """Render an appointment with clinic wall-clock times."""
    appointment = details.appointment
    zone = details.timezone
    return AppointmentResponse(
        id=appointment.id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        unit_id=appointment.unit_id,
        clinic_id=details.clinic_id,
        service_id=appointment.service_id,
        status=appointment.status.value,
        start_time=to_display(appointment.start_time, zone),
        end_time=to_display(appointment.end_time, zone),
        timezone=zone,
        start_time_utc=appointment.start_time,
        end_time_utc=appointment.end_time,
        notes=appointment.notes,
        cancellation_reason=appointment.cancellation_reason,
        moved_to_needs_rescheduling_at=appointment.moved_to_needs_rescheduling_at,
        rescheduled_to_appointment_id=appointment.rescheduled_to_appointment_id,
        snoozed_until=appointment.snoozed_until,
        patient_name=details.patient_name,
        doctor_name=details.doctor_name,
        unit_name=details.unit_name,
        clinic_name=details.clinic_name,
        is_first_visit=details.is_first_visit,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


class SchedulingService:
    """Service orchestrating appointment writes and lookups."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = system_clock,
        locks: BookingLocks = booking_locks,
        strict_transitions: bool | None = None,
    ):
        self.db = db
        self.clock = clock
        self.locks = locks
        self.appointments = AppointmentRepository(db)
        self.availability = AvailabilityRepository(db)
        self.references = ReferenceRepository(db)
        self.detector = ConflictDetector(self.appointments, self.availability)
        if strict_transitions is None:
            strict_transitions = settings.strict_status_transitions
        self.strict_transitions = strict_transitions

    # ------------------------------------------------------------------
    # Shared helpers (also used by the rescheduling queue)
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def booking(self, *resource_ids: UUID | None) -> AsyncIterator[None]:
        """
        Serialize a check-then-write flow on the given doctor and unit.

        The block's writes are committed before the locks are released and
        rolled back if the block raises.
        """
        async with self.locks.hold(*resource_ids):
            try:
                await self.appointments.lock_resources(*resource_ids)
                yield
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def resolve_unit(self, unit_id: UUID) -> UnitWithClinic:
        unit = await self.references.get_unit_with_clinic(unit_id)
        if unit is None:
            raise UnitNotFoundError()
        return unit

    async def zone_for_unit(self, unit_id: UUID | None) -> str:
        if unit_id is None:
            return ""
        return (await self.resolve_unit(unit_id)).timezone

    async def get_entity(self, appointment_id: UUID) -> Appointment:
        appointment = await self.appointments.get_by_id(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError()
        return appointment

    async def require_doctor(self, doctor_id: UUID) -> None:
        if not await self.references.doctor_exists(doctor_id):
            raise DoctorNotFoundError()

    async def require_patient(self, patient_id: UUID) -> None:
        if not await self.references.patient_exists(patient_id):
            raise PatientNotFoundError()

    def check_transition(self, appointment: Appointment, target: AppointmentStatus) -> None:
        """
        Enforce the transition table when strict transitions are enabled.

        Raises:
            InvalidStatusTransitionError: If ``target`` is not reachable
        """
        if self.strict_transitions and not appointment.can_transition_to(target):
            raise InvalidStatusTransitionError(
                f"Cannot change appointment status from "
                f"{appointment.status.value!r} to {target.value!r}"
            )

    async def present(self, appointment_id: UUID) -> AppointmentResponse:
        details = await self.appointments.get_details(appointment_id)
        if details is None:
            raise AppointmentNotFoundError()
        return build_response(details)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_appointment(
        self,
        data: AppointmentCreate,
        policy: ConflictPolicy | None = None,
    ) -> AppointmentResponse:
        """
        Create a new appointment.

        Naive start/end times are read as wall-clock time in the zone of
        the clinic that owns the unit.

        Args:
            data: Appointment creation data
            policy: Conflict handling; defaults to DEFAULT_CONFLICT_POLICY

        Returns:
            Created appointment

        Raises:
            PatientNotFoundError, DoctorNotFoundError, UnitNotFoundError:
                If a referenced record does not exist
            InvalidTimeOrderError: If end is not after start
            AppointmentConflictError, DoctorNotAvailableError:
                With ``ConflictPolicy.CHECK`` only
        """
        policy = ConflictPolicy(policy or settings.default_conflict_policy)

        await self.require_patient(data.patient_id)
        await self.require_doctor(data.doctor_id)
        unit = await self.resolve_unit(data.unit_id)

        now = self.clock.now()
        appointment = Appointment(
            start_time=to_absolute(data.start_time, unit.timezone),
            end_time=to_absolute(data.end_time, unit.timezone),
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            unit_id=data.unit_id,
            service_id=data.service_id,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )

        if policy is ConflictPolicy.CHECK:
            async with self.booking(appointment.doctor_id, appointment.unit_id):
                await self.detector.check_for_conflicts(appointment)
                await self.appointments.create(appointment)
        else:
            await self.appointments.create(appointment)
            await self.db.commit()

        logger.info(
            "appointment_created",
            appointment_id=str(appointment.id),
            doctor_id=str(appointment.doctor_id),
            unit_id=str(appointment.unit_id),
            conflict_policy=policy.value,
        )

        await self._record_patient_visit(appointment, unit.organization_id)
        return await self.present(appointment.id)

    async def _record_patient_visit(self, appointment: Appointment, organization_id: UUID) -> None:
        # Neither step may fail the booking
        try:
            await self.references.add_patient_to_organization(
                appointment.patient_id, organization_id
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "failed_to_link_patient_to_organization",
                patient_id=str(appointment.patient_id),
                organization_id=str(organization_id),
                error=str(e),
            )

        try:
            await self.references.update_first_appointment_if_unset(
                appointment.patient_id, appointment.id
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(
                "failed_to_set_first_appointment",
                patient_id=str(appointment.patient_id),
                appointment_id=str(appointment.id),
                error=str(e),
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        return await self.present(appointment_id)

    async def list_appointments(
        self,
        organization_id: UUID,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        clinic_id: UUID | None = None,
        doctor_id: UUID | None = None,
        status: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> AppointmentListResponse:
        """
        List an organization's appointments ordered by start time.

        ``from_time``/``to_time`` are wall-clock bounds in the clinic's zone
        when ``clinic_id`` is given, UTC otherwise.
        """
        zone = ""
        if clinic_id is not None:
            clinic = await self.references.get_clinic(clinic_id)
            if clinic is None:
                raise ClinicNotFoundError()
            zone = clinic["timezone"]

        filters = AppointmentListFilters(
            organization_id=organization_id,
            from_time=to_absolute(from_time, zone) if from_time else None,
            to_time=to_absolute(to_time, zone) if to_time else None,
            clinic_id=clinic_id,
            doctor_id=doctor_id,
            status=AppointmentStatus.parse(status) if status else None,
            page=page,
            page_size=page_size,
        )
        rows, total = await self.appointments.list_for_organization(filters)
        return AppointmentListResponse(
            total=total,
            page=page,
            page_size=page_size,
            items=[build_response(row) for row in rows],
        )

    async def get_conflicts(
        self,
        start_time: datetime,
        end_time: datetime,
        doctor_id: UUID | None = None,
        unit_id: UUID | None = None,
        exclude_id: UUID | None = None,
    ) -> ConflictListResponse:
        """Active appointments that a booking of the given window would collide with."""
        if doctor_id is None and unit_id is None:
            raise ValidationException("doctor_id or unit_id is required")
        zone = await self.zone_for_unit(unit_id)
        conflicts = await self.detector.get_conflicting_appointments(
            doctor_id,
            unit_id,
            to_absolute(start_time, zone),
            to_absolute(end_time, zone),
            exclude_id,
        )
        items = [
            build_response(AppointmentDetails(appointment=appointment, timezone=zone))
            for appointment in conflicts
        ]
        return ConflictListResponse(total=len(items), items=items)

    async def get_available_slots(
        self,
        doctor_id: UUID,
        day: date,
        slot_minutes: int | None = None,
        clinic_id: UUID | None = None,
    ) -> AvailableSlotsResponse:
        """
        Free slots for a doctor on one calendar day.

        Slots of ``slot_minutes`` are laid out from the start of every open
        availability window, clipped to the day, and dropped when they
        overlap an active appointment of the doctor. The day is taken in
        the clinic's zone when ``clinic_id`` is given, UTC otherwise.
        """
        slot_minutes = slot_minutes or settings.default_slot_minutes
        if slot_minutes <= 0:
            raise ValidationException("Slot duration must be positive")

        await self.require_doctor(doctor_id)
        zone = ""
        if clinic_id is not None:
            clinic = await self.references.get_clinic(clinic_id)
            if clinic is None:
                raise ClinicNotFoundError()
            zone = clinic["timezone"]

        day_start, day_end = local_day_bounds(day, zone)
        duration = timedelta(minutes=slot_minutes)
        windows = await self.availability.get_for_doctor_between(doctor_id, day_start, day_end)
        booked = await self.appointments.get_active_for_doctor_between(
            doctor_id, day_start, day_end
        )

        starts: set[datetime] = set()
        for window in windows:
            if not window.is_available:
                continue
            bounds = window.clipped_to(day_start, day_end)
            if bounds is None:
                continue
            current, window_end = bounds
            while current + duration <= window_end:
                slot_end = current + duration
                if not any(appointment.overlaps(current, slot_end) for appointment in booked):
                    starts.add(current)
                current = slot_end

        slots = [
            AvailableSlot(
                start_time=to_display(start, zone),
                end_time=to_display(start + duration, zone),
                start_time_utc=start,
                end_time_utc=start + duration,
            )
            for start in sorted(starts)
        ]
        return AvailableSlotsResponse(
            doctor_id=doctor_id,
            date=day,
            slot_minutes=slot_minutes,
            timezone=zone,
            slots=slots,
        )

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def _apply_status(
        self,
        appointment: Appointment,
        status: AppointmentStatus,
        now: datetime,
    ) -> None:
        self.check_transition(appointment, status)
        if status == AppointmentStatus.NEEDS_RESCHEDULING and not appointment.is_in_queue:
            appointment.move_to_needs_rescheduling(now)
        elif status == AppointmentStatus.CANCELLED:
            appointment.cancel(now)
        elif status == AppointmentStatus.COMPLETED:
            appointment.complete(now)
        elif status == AppointmentStatus.RESCHEDULED:
            appointment.reschedule(now)
        else:
            appointment.status = status
            appointment.touch(now)

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Apply a partial update.

        Only supplied references are checked for existence. Supplied times
        are converted through the zone of the (possibly new) unit's clinic.
        A time change without an explicit status marks the appointment as
        rescheduled.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            InvalidStatusError: If the status is not a recognized tag
            InvalidTimeOrderError: If the resulting end is not after start
        """
        appointment = await self.get_entity(appointment_id)
        fields = data.model_dump(exclude_unset=True)

        target_status = None
        if fields.get("status") is not None:
            target_status = AppointmentStatus.parse(fields["status"])

        if fields.get("patient_id") is not None:
            await self.require_patient(data.patient_id)
            appointment.patient_id = data.patient_id
        if fields.get("doctor_id") is not None:
            await self.require_doctor(data.doctor_id)
            appointment.doctor_id = data.doctor_id
        if fields.get("unit_id") is not None:
            await self.resolve_unit(data.unit_id)
            appointment.unit_id = data.unit_id
        if "service_id" in fields:
            appointment.service_id = data.service_id
        if "notes" in fields:
            appointment.notes = data.notes

        time_changed = False
        if data.start_time is not None or data.end_time is not None:
            zone = await self.zone_for_unit(appointment.unit_id)
            start = appointment.start_time
            end = appointment.end_time
            if data.start_time is not None:
                start = to_absolute(data.start_time, zone)
            if data.end_time is not None:
                end = to_absolute(data.end_time, zone)
            if end <= start:
                raise InvalidTimeOrderError()
            time_changed = start != appointment.start_time or end != appointment.end_time
            appointment.start_time = start
            appointment.end_time = end

        now = self.clock.now()
        if target_status is not None:
            self._apply_status(appointment, target_status, now)
        elif time_changed:
            self._apply_status(appointment, AppointmentStatus.RESCHEDULED, now)
        appointment.touch(now)
        appointment.validate()

        await self.appointments.update(appointment)
        await self.db.commit()

        logger.info(
            "appointment_updated",
            appointment_id=str(appointment.id),
            status=appointment.status.value,
            time_changed=time_changed,
        )
        return await self.present(appointment.id)

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new window after a conflict check.

        The appointment's own record never counts as a conflict. Status is
        left unchanged.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            InvalidTimeOrderError: If end is not after start
            AppointmentConflictError: If another active appointment overlaps
            DoctorNotAvailableError: If the doctor has no covering window
        """
        appointment = await self.get_entity(appointment_id)
        zone = await self.zone_for_unit(appointment.unit_id)

        start = to_absolute(data.start_time, zone)
        end = to_absolute(data.end_time, zone)
        if end <= start:
            raise InvalidTimeOrderError()
        moved = dataclasses.replace(appointment, start_time=start, end_time=end)

        async with self.booking(moved.doctor_id, moved.unit_id):
            await self.detector.check_for_conflicts(moved)
            moved.touch(self.clock.now())
            await self.appointments.update(moved)

        logger.info("appointment_rescheduled", appointment_id=str(moved.id))
        return await self.present(moved.id)

    async def cancel_appointment(
        self,
        appointment_id: UUID,
        reason: str | None = None,
    ) -> AppointmentResponse:
        appointment = await self.get_entity(appointment_id)
        self.check_transition(appointment, AppointmentStatus.CANCELLED)
        now = self.clock.now()
        if reason:
            appointment.cancel_with_reason(reason, now)
        else:
            appointment.cancel(now)
        await self.appointments.update(appointment)
        await self.db.commit()
        logger.info("appointment_cancelled", appointment_id=str(appointment.id))
        return await self.present(appointment.id)

    async def complete_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        appointment = await self.get_entity(appointment_id)
        self.check_transition(appointment, AppointmentStatus.COMPLETED)
        appointment.complete(self.clock.now())
        await self.appointments.update(appointment)
        await self.db.commit()
        logger.info("appointment_completed", appointment_id=str(appointment.id))
        return await self.present(appointment.id)

    async def move_to_needs_rescheduling(self, appointment_id: UUID) -> AppointmentResponse:
        """Put an appointment into the rescheduling queue."""
        appointment = await self.get_entity(appointment_id)
        self.check_transition(appointment, AppointmentStatus.NEEDS_RESCHEDULING)
        appointment.move_to_needs_rescheduling(self.clock.now())
        await self.appointments.update(appointment)
        await self.db.commit()
        logger.info("appointment_queued_for_rescheduling", appointment_id=str(appointment.id))
        return await self.present(appointment.id)

    async def delete_appointment(self, appointment_id: UUID) -> None:
        """Permanently delete an appointment."""
        deleted = await self.appointments.delete(appointment_id)
        if not deleted:
            raise AppointmentNotFoundError()
        await self.db.commit()
        logger.info("appointment_deleted", appointment_id=str(appointment_id))
