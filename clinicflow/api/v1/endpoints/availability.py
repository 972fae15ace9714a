"""Doctor availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinicflow.dependencies import CurrentOrganizationId, DatabaseSession
from clinicflow.schemas.availability import DoctorAvailabilityResponse
from clinicflow.services.availability_service import AvailabilityService

router = APIRouter()


@router.get(
    "/{doctor_id}",
    response_model=DoctorAvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Get doctor availability",
)
async def get_doctor_availability(
    doctor_id: UUID,
    organization_id: CurrentOrganizationId,
    db: DatabaseSession,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    clinic_id: UUID | None = Query(None),
) -> DoctorAvailabilityResponse:
    """
    List a doctor's availability windows.

    Args:
        doctor_id: Doctor ID
        organization_id: Calling organization
        db: Database session
        start_date: First day (YYYY-MM-DD); requires end_date
        end_date: Last day, inclusive; at most 365 days after start_date
        clinic_id: Clinic whose zone is used for days and display times

    Returns:
        Availability windows ordered by start
    """
    service = AvailabilityService(db)
    return await service.get_doctor_availability(
        doctor_id,
        organization_id,
        start_date=start_date,
        end_date=end_date,
        clinic_id=clinic_id,
    )
