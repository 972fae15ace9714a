"""Read access to the reference records the scheduling core depends on."""

from dataclasses import dataclass
from uuid import UUID

import structlog
from sqlalchemy import and_, exists, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.models.clinics import clinics
from clinicflow.models.doctors import doctors
from clinicflow.models.patients import patient_organizations, patients
from clinicflow.models.units import units

logger = structlog.get_logger()


@dataclass(frozen=True)
class UnitWithClinic:
    """A treatment unit together with the clinic that owns it."""

    unit_id: UUID
    unit_name: str
    clinic_id: UUID
    clinic_name: str
    organization_id: UUID
    timezone: str


class ReferenceRepository:
    """Existence checks and lookups for patients, doctors, units and clinics."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _exists(self, condition) -> bool:
        result = await self.db.execute(select(exists().where(condition)))
        return bool(result.scalar())

    async def patient_exists(self, patient_id: UUID) -> bool:
        return await self._exists(patients.c.id == patient_id)

    async def doctor_exists(self, doctor_id: UUID) -> bool:
        return await self._exists(doctors.c.id == doctor_id)

    async def get_unit_with_clinic(self, unit_id: UUID) -> UnitWithClinic | None:
        """Return the unit and its clinic, or None if either is missing."""
        query = (
            select(
                units.c.id.label("unit_id"),
                units.c.name.label("unit_name"),
                clinics.c.id.label("clinic_id"),
                clinics.c.name.label("clinic_name"),
                clinics.c.organization_id,
                clinics.c.timezone,
            )
            .select_from(units.join(clinics, units.c.clinic_id == clinics.c.id))
            .where(units.c.id == unit_id)
        )
        result = await self.db.execute(query)
        row = result.mappings().first()
        if not row:
            return None
        return UnitWithClinic(
            unit_id=row["unit_id"],
            unit_name=row["unit_name"],
            clinic_id=row["clinic_id"],
            clinic_name=row["clinic_name"],
            organization_id=row["organization_id"],
            timezone=row["timezone"] or "",
        )

    async def get_clinic(self, clinic_id: UUID) -> dict | None:
        result = await self.db.execute(select(clinics).where(clinics.c.id == clinic_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def get_doctor(self, doctor_id: UUID) -> dict | None:
        result = await self.db.execute(select(doctors).where(doctors.c.id == doctor_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def add_patient_to_organization(self, patient_id: UUID, organization_id: UUID) -> None:
        """Link a patient to an organization; an existing link is left as is."""
        already_linked = await self._exists(
            and_(
                patient_organizations.c.patient_id == patient_id,
                patient_organizations.c.organization_id == organization_id,
            )
        )
        if already_linked:
            return
        await self.db.execute(
            insert(patient_organizations).values(
                patient_id=patient_id,
                organization_id=organization_id,
            )
        )

    async def update_first_appointment_if_unset(
        self,
        patient_id: UUID,
        appointment_id: UUID,
    ) -> bool:
        """Record the patient's first appointment unless one is already set."""
        result = await self.db.execute(
            update(patients)
            .where(
                and_(
                    patients.c.id == patient_id,
                    patients.c.first_appointment_id.is_(None),
                )
            )
            .values(first_appointment_id=appointment_id)
        )
        updated = result.rowcount > 0
        if updated:
            logger.debug(
                "patient_first_appointment_set",
                patient_id=str(patient_id),
                appointment_id=str(appointment_id),
            )
        return updated
