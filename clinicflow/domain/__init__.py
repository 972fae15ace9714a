"""Domain entities for the scheduling core."""

from clinicflow.domain.appointments import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    Appointment,
    AppointmentStatus,
)
from clinicflow.domain.availability import DoctorAvailability

__all__ = [
    "ACTIVE_STATUSES",
    "ALLOWED_TRANSITIONS",
    "Appointment",
    "AppointmentStatus",
    "DoctorAvailability",
]
