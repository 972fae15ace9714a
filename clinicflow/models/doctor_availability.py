"""Doctor availability table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from clinicflow.models.base import UTCDateTime, metadata

doctor_availability = Table(
    "doctor_availability",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("start_time", UTCDateTime, nullable=False),
    Column("end_time", UTCDateTime, nullable=False),
    # Opaque recurrence rule, stored but not expanded
    Column("recurrence_rule", Text, nullable=True),
    Column("is_available", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
    CheckConstraint("end_time > start_time", name="doctor_availability_time_order_check"),
)

Index(
    "idx_doctor_availability_doctor_time",
    doctor_availability.c.doctor_id,
    doctor_availability.c.start_time,
    doctor_availability.c.end_time,
)
