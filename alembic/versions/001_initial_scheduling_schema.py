"""Create scheduling schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPOINTMENT_STATUSES = (
    "scheduled",
    "confirmed",
    "completed",
    "cancelled",
    "rescheduled",
    "needs-rescheduling",
    "no-show",
    "with-error",
)


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create reference, appointment and availability tables."""
    op.create_table(
        "organizations",
        _uuid("id", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "clinics",
        _uuid("id", nullable=False),
        _uuid("organization_id", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("timezone", sa.String(length=64), server_default=sa.text("''"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clinics_organization_id", "clinics", ["organization_id"])

    op.create_table(
        "units",
        _uuid("id", nullable=False),
        _uuid("clinic_id", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["clinic_id"], ["clinics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_units_clinic_id", "units", ["clinic_id"])

    op.create_table(
        "doctors",
        _uuid("id", nullable=False),
        _uuid("organization_id", nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("specialty", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_doctors_organization_id", "doctors", ["organization_id"])

    op.create_table(
        "patients",
        _uuid("id", nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        _uuid("first_appointment_id", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_patients_phone", "patients", ["phone"])
    op.create_index("ix_patients_email", "patients", ["email"])

    op.create_table(
        "patient_organizations",
        _uuid("patient_id", nullable=False),
        _uuid("organization_id", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("patient_id", "organization_id"),
    )

    statuses = ", ".join(f"'{status}'" for status in APPOINTMENT_STATUSES)
    op.create_table(
        "appointments",
        _uuid("id", nullable=False),
        _uuid("patient_id", nullable=True),
        _uuid("doctor_id", nullable=True),
        _uuid("unit_id", nullable=True),
        sa.Column("service_id", sa.String(length=100), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status",
            sa.String(length=32),
            server_default=sa.text("'scheduled'"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("moved_to_needs_rescheduling_at", sa.DateTime(timezone=True), nullable=True),
        _uuid("rescheduled_to_appointment_id", nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("snoozed_until", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(f"status IN ({statuses})", name="appointments_status_check"),
        sa.CheckConstraint("end_time > start_time", name="appointments_time_order_check"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(
            ["rescheduled_to_appointment_id"],
            ["appointments.id"],
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_appointments_doctor_time", "appointments", ["doctor_id", "start_time"])
    op.create_index("idx_appointments_unit_time", "appointments", ["unit_id", "start_time"])
    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index(
        "idx_appointments_rescheduling_queue",
        "appointments",
        ["status", "moved_to_needs_rescheduling_at"],
    )

    op.create_table(
        "doctor_availability",
        _uuid("id", nullable=False),
        _uuid("doctor_id", nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recurrence_rule", sa.Text(), nullable=True),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("end_time > start_time", name="doctor_availability_time_order_check"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_doctor_availability_doctor_time",
        "doctor_availability",
        ["doctor_id", "start_time", "end_time"],
    )


def downgrade() -> None:
    """Drop the scheduling schema."""
    op.drop_index("idx_doctor_availability_doctor_time", table_name="doctor_availability")
    op.drop_table("doctor_availability")

    op.drop_index("idx_appointments_rescheduling_queue", table_name="appointments")
    op.drop_index("idx_appointments_patient_id", table_name="appointments")
    op.drop_index("idx_appointments_unit_time", table_name="appointments")
    op.drop_index("idx_appointments_doctor_time", table_name="appointments")
    op.drop_table("appointments")

    op.drop_table("patient_organizations")
    op.drop_index("ix_patients_email", table_name="patients")
    op.drop_index("ix_patients_phone", table_name="patients")
    op.drop_table("patients")
    op.drop_index("ix_doctors_organization_id", table_name="doctors")
    op.drop_table("doctors")
    op.drop_index("ix_units_clinic_id", table_name="units")
    op.drop_table("units")
    op.drop_index("ix_clinics_organization_id", table_name="clinics")
    op.drop_table("clinics")
    op.drop_table("organizations")
