"""Treatment unit model definition using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, String, Table, Text, Uuid, func

from clinicflow.models.base import UTCDateTime, metadata

units = Table(
    "units",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "clinic_id",
        Uuid,
        ForeignKey("clinics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("name", String(255), nullable=False),
    Column("description", Text),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
)
