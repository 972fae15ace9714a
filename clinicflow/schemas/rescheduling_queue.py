"""Rescheduling queue schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from clinicflow.schemas.appointments import AppointmentResponse, WallClockDateTime


class QueueSort(str, Enum):
    OLDEST = "oldest"
    NEWEST = "newest"


class QueuePatient(BaseModel):
    id: UUID
    first_name: str
    last_name: str | None = None
    phone: str | None = None
    email: str | None = None


class ReschedulingQueueItem(BaseModel):
    """One appointment waiting for a new slot."""

    appointment_id: UUID
    status: str
    patient: QueuePatient | None = None
    doctor_id: UUID | None = None
    doctor_name: str | None = None
    clinic_id: UUID | None = None
    clinic_name: str | None = None
    unit_id: UUID | None = None
    unit_name: str | None = None
    service_id: str | None = None
    notes: str | None = None

    # Original slot, clinic wall clock
    original_start_time: datetime
    original_end_time: datetime
    timezone: str = ""

    moved_to_needs_rescheduling_at: datetime | None = None
    days_in_queue: int = 0
    last_action_timestamp: datetime


class ReschedulingQueueResponse(BaseModel):
    """Paginated rescheduling queue."""

    items: list[ReschedulingQueueItem]
    total: int
    page: int
    limit: int
    total_pages: int


class QueueCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200)
    notes: str | None = Field(None, max_length=1000)


class QueueRescheduleRequest(BaseModel):
    """New booking that replaces a queued appointment."""

    doctor_id: UUID
    unit_id: UUID
    start_time: WallClockDateTime
    end_time: WallClockDateTime
    service_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=2000)


class QueueRescheduleResponse(BaseModel):
    original_appointment_id: UUID
    appointment: AppointmentResponse


class QueueSnoozeRequest(BaseModel):
    until: WallClockDateTime
