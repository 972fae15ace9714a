"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field


def _drop_offset(value: datetime) -> datetime:
    # Clinic-local wall clock; any offset sent by the caller is ignored
    return value.replace(tzinfo=None)


WallClockDateTime = Annotated[datetime, AfterValidator(_drop_offset)]


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment."""

    patient_id: UUID
    doctor_id: UUID
    unit_id: UUID
    service_id: str | None = Field(None, max_length=100)
    start_time: WallClockDateTime
    end_time: WallClockDateTime
    notes: str | None = Field(None, max_length=2000)


class AppointmentUpdate(BaseModel):
    """Schema for a partial appointment update."""

    patient_id: UUID | None = None
    doctor_id: UUID | None = None
    unit_id: UUID | None = None
    service_id: str | None = Field(None, max_length=100)
    start_time: WallClockDateTime | None = None
    end_time: WallClockDateTime | None = None
    # Free-form so that unknown tags surface as INVALID_STATUS
    status: str | None = None
    notes: str | None = Field(None, max_length=2000)


class AppointmentReschedule(BaseModel):
    """New window for an existing appointment."""

    start_time: WallClockDateTime
    end_time: WallClockDateTime


class AppointmentCancel(BaseModel):
    reason: str | None = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID | None = None
    doctor_id: UUID | None = None
    unit_id: UUID | None = None
    clinic_id: UUID | None = None
    service_id: str | None = None
    status: str

    # Wall-clock times in the clinic's zone
    start_time: datetime
    end_time: datetime
    timezone: str = ""
    start_time_utc: datetime
    end_time_utc: datetime

    notes: str | None = None
    cancellation_reason: str | None = None
    moved_to_needs_rescheduling_at: datetime | None = None
    rescheduled_to_appointment_id: UUID | None = None
    snoozed_until: datetime | None = None

    patient_name: str | None = None
    doctor_name: str | None = None
    unit_name: str | None = None
    clinic_name: str | None = None
    is_first_visit: bool | None = None

    created_at: datetime
    updated_at: datetime


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AvailableSlot(BaseModel):
    start_time: datetime
    end_time: datetime
    start_time_utc: datetime
    end_time_utc: datetime


class AvailableSlotsResponse(BaseModel):
    """Free slots of one doctor on one local calendar day."""

    doctor_id: UUID
    date: date
    slot_minutes: int
    timezone: str = ""
    slots: list[AvailableSlot]


class ConflictListResponse(BaseModel):
    total: int
    items: list[AppointmentResponse]
