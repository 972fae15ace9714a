"""Doctor availability schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class AvailabilityWindow(BaseModel):
    """One availability window of a doctor."""

    id: UUID
    doctor_id: UUID
    # Wall-clock times in the requested clinic's zone (UTC without one)
    start_time: datetime
    end_time: datetime
    start_time_utc: datetime
    end_time_utc: datetime
    recurrence_rule: str | None = None
    is_available: bool


class DoctorAvailabilityResponse(BaseModel):
    doctor_id: UUID
    timezone: str = ""
    availabilities: list[AvailabilityWindow]
