"""Clinic model definition using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, String, Table, Text, Uuid, func, text

from clinicflow.models.base import UTCDateTime, metadata

clinics = Table(
    "clinics",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "organization_id",
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("name", String(255), nullable=False),
    Column("address", Text),
    Column("phone", String(20)),
    Column("email", String(255)),
    # IANA zone name; empty means times are already UTC
    Column("timezone", String(64), nullable=False, server_default=text("''")),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
)
