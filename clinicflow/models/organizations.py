"""Organization model definition using SQLAlchemy Core."""

from sqlalchemy import Column, String, Table, Uuid, func

from clinicflow.models.base import UTCDateTime, metadata

organizations = Table(
    "organizations",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("created_at", UTCDateTime, nullable=False, server_default=func.now()),
    Column("updated_at", UTCDateTime, nullable=False, server_default=func.now()),
)
