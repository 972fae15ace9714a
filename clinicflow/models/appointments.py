"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from clinicflow.domain.appointments import AppointmentStatus
from clinicflow.models.base import UTCDateTime, metadata

_STATUS_VALUES = ", ".join(f"'{status.value}'" for status in AppointmentStatus)

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True),
    # Associations (nullable while an appointment is being assembled)
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="SET NULL"), nullable=True),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True),
    Column("unit_id", Uuid, ForeignKey("units.id", ondelete="SET NULL"), nullable=True),
    # Free-form service code
    Column("service_id", String(100), nullable=True),
    # Appointment window (absolute instants)
    Column("start_time", UTCDateTime, nullable=False),
    Column("end_time", UTCDateTime, nullable=False),
    # Status management
    Column("status", String(32), nullable=False, server_default=text("'scheduled'")),
    Column("notes", Text, nullable=True),
    # Rescheduling queue tracking
    Column("moved_to_needs_rescheduling_at", UTCDateTime, nullable=True),
    Column(
        "rescheduled_to_appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("cancellation_reason", Text, nullable=True),
    Column("snoozed_until", UTCDateTime, nullable=True),
    # Audit fields
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(f"status IN ({_STATUS_VALUES})", name="appointments_status_check"),
    CheckConstraint("end_time > start_time", name="appointments_time_order_check"),
)

# Indexes for conflict lookups and the rescheduling queue
Index("idx_appointments_doctor_time", appointments.c.doctor_id, appointments.c.start_time)
Index("idx_appointments_unit_time", appointments.c.unit_id, appointments.c.start_time)
Index("idx_appointments_patient_id", appointments.c.patient_id)
Index(
    "idx_appointments_rescheduling_queue",
    appointments.c.status,
    appointments.c.moved_to_needs_rescheduling_at,
)
