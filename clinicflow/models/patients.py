"""Patient model definitions using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, String, Table, Uuid, func

from clinicflow.models.base import UTCDateTime, metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255)),
    Column("phone", String(20), index=True),
    Column("email", String(255), index=True),
    # Set once, by the first appointment ever booked for the patient
    Column("first_appointment_id", Uuid, nullable=True),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
)

patient_organizations = Table(
    "patient_organizations",
    metadata,
    Column(
        "patient_id",
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "organization_id",
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
)
