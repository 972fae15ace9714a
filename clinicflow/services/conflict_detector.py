"""Overlap and availability checks for candidate appointments."""

from datetime import datetime
from uuid import UUID

import structlog

from clinicflow.core.exceptions import (
    AppointmentConflictError,
    DoctorNotAvailableError,
    InvalidTimeOrderError,
)
from clinicflow.domain.appointments import Appointment
from clinicflow.repositories.appointment_repository import AppointmentRepository
from clinicflow.repositories.availability_repository import AvailabilityRepository

logger = structlog.get_logger(__name__)


class ConflictDetector:
    """Read-only guard run before an appointment is written."""

    def __init__(
        self,
        appointments: AppointmentRepository,
        availability: AvailabilityRepository,
    ):
        self.appointments = appointments
        self.availability = availability

    async def check_for_conflicts(self, candidate: Appointment) -> None:
        """
        Validate a candidate appointment against existing bookings.

        Checks run in order: time order, then overlap with active
        appointments of the same doctor or unit (only when both are set,
        the candidate itself excluded), then doctor availability (only
        when a doctor is set).

        Args:
            candidate: Appointment about to be created or moved

        Raises:
            InvalidTimeOrderError: If end is not after start
            AppointmentConflictError: If an active appointment overlaps
            DoctorNotAvailableError: If no open window covers the interval
        """
        if candidate.end_time <= candidate.start_time:
            raise InvalidTimeOrderError()

        if candidate.doctor_id is not None and candidate.unit_id is not None:
            has_conflict = await self.appointments.check_conflict(
                candidate.doctor_id,
                candidate.unit_id,
                candidate.start_time,
                candidate.end_time,
                exclude_id=candidate.id,
            )
            if has_conflict:
                logger.info(
                    "appointment_conflict_detected",
                    appointment_id=str(candidate.id),
                    doctor_id=str(candidate.doctor_id),
                    unit_id=str(candidate.unit_id),
                )
                raise AppointmentConflictError()

        if candidate.doctor_id is not None:
            available = await self.availability.is_available(
                candidate.doctor_id,
                candidate.start_time,
                candidate.end_time,
            )
            if not available:
                logger.info(
                    "doctor_not_available",
                    appointment_id=str(candidate.id),
                    doctor_id=str(candidate.doctor_id),
                )
                raise DoctorNotAvailableError()

    async def get_conflicting_appointments(
        self,
        doctor_id: UUID | None,
        unit_id: UUID | None,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> list[Appointment]:
        """Active appointments overlapping ``[start, end)`` for the doctor or the unit."""
        if end <= start:
            raise InvalidTimeOrderError()
        return await self.appointments.get_conflicting_appointments(
            doctor_id, unit_id, start, end, exclude_id
        )
