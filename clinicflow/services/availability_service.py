"""Doctor availability lookups."""

from datetime import date
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.exceptions import (
    ClinicNotFoundError,
    DoctorNotFoundError,
    InvalidDateRangeError,
)
from clinicflow.core.timezones import local_day_bounds, to_display
from clinicflow.domain.availability import DoctorAvailability
from clinicflow.repositories.availability_repository import AvailabilityRepository
from clinicflow.repositories.reference_repository import ReferenceRepository
from clinicflow.schemas.availability import AvailabilityWindow, DoctorAvailabilityResponse

logger = structlog.get_logger(__name__)

MAX_RANGE_DAYS = 365


def _to_window(availability: DoctorAvailability, zone: str) -> AvailabilityWindow:
    return AvailabilityWindow(
        id=availability.id,
        doctor_id=availability.doctor_id,
        start_time=to_display(availability.start_time, zone),
        end_time=to_display(availability.end_time, zone),
        start_time_utc=availability.start_time,
        end_time_utc=availability.end_time,
        recurrence_rule=availability.recurrence_rule,
        is_available=availability.is_available,
    )


class AvailabilityService:
    """Service for reading a doctor's availability calendar."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.availability = AvailabilityRepository(db)
        self.references = ReferenceRepository(db)

    async def get_doctor_availability(
        self,
        doctor_id: UUID,
        organization_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        clinic_id: UUID | None = None,
    ) -> DoctorAvailabilityResponse:
        """
        List a doctor's availability windows.

        With a date range, only windows overlapping the days from
        ``start_date`` through ``end_date`` (inclusive) are returned. Days
        are taken in the clinic's zone when ``clinic_id`` is given, UTC
        otherwise.

        Args:
            doctor_id: Doctor ID
            organization_id: Calling organization
            start_date: First day of the range
            end_date: Last day of the range
            clinic_id: Clinic whose zone is used for days and display times

        Returns:
            The doctor's windows ordered by start

        Raises:
            DoctorNotFoundError: If the doctor does not exist or belongs to
                another organization
            InvalidDateRangeError: If only one date is given, the end is
                before the start, or the range exceeds 365 days
        """
        doctor = await self.references.get_doctor(doctor_id)
        # A doctor of another organization is reported as missing
        if doctor is None or doctor["organization_id"] != organization_id:
            raise DoctorNotFoundError()

        zone = ""
        if clinic_id is not None:
            clinic = await self.references.get_clinic(clinic_id)
            if clinic is None:
                raise ClinicNotFoundError()
            zone = clinic["timezone"]

        if (start_date is None) != (end_date is None):
            raise InvalidDateRangeError("Both start_date and end_date must be provided, or neither")

        if start_date is None:
            windows = await self.availability.get_for_doctor(doctor_id)
        else:
            if end_date < start_date:
                raise InvalidDateRangeError("end_date cannot be before start_date")
            if (end_date - start_date).days > MAX_RANGE_DAYS:
                raise InvalidDateRangeError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")
            range_start, _ = local_day_bounds(start_date, zone)
            _, range_end = local_day_bounds(end_date, zone)
            windows = await self.availability.get_for_doctor_between(
                doctor_id, range_start, range_end
            )

        logger.debug(
            "doctor_availability_listed",
            doctor_id=str(doctor_id),
            windows=len(windows),
        )
        return DoctorAvailabilityResponse(
            doctor_id=doctor_id,
            timezone=zone,
            availabilities=[_to_window(window, zone) for window in windows],
        )
