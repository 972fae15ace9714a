"""Doctor availability calendar queries."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.domain.availability import DoctorAvailability
from clinicflow.models.doctor_availability import doctor_availability


class AvailabilityRepository:
    """Read-mostly adapter over the ``doctor_availability`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _to_entity(row) -> DoctorAvailability:
        return DoctorAvailability(
            id=row["id"],
            doctor_id=row["doctor_id"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            recurrence_rule=row["recurrence_rule"],
            is_available=row["is_available"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def create(self, availability: DoctorAvailability) -> DoctorAvailability:
        await self.db.execute(
            insert(doctor_availability).values(
                id=availability.id,
                doctor_id=availability.doctor_id,
                start_time=availability.start_time,
                end_time=availability.end_time,
                recurrence_rule=availability.recurrence_rule,
                is_available=availability.is_available,
                created_at=availability.created_at,
                updated_at=availability.updated_at,
            )
        )
        return availability

    async def is_available(self, doctor_id: UUID, start: datetime, end: datetime) -> bool:
        """True if an open window fully covers ``[start, end)``."""
        query = (
            select(doctor_availability.c.id)
            .where(
                and_(
                    doctor_availability.c.doctor_id == doctor_id,
                    doctor_availability.c.is_available.is_(True),
                    doctor_availability.c.start_time <= start,
                    doctor_availability.c.end_time >= end,
                )
            )
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.first() is not None

    async def get_for_doctor(self, doctor_id: UUID) -> list[DoctorAvailability]:
        query = (
            select(doctor_availability)
            .where(doctor_availability.c.doctor_id == doctor_id)
            .order_by(doctor_availability.c.start_time)
        )
        result = await self.db.execute(query)
        return [self._to_entity(row) for row in result.mappings().all()]

    async def get_for_doctor_between(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
    ) -> list[DoctorAvailability]:
        """Windows for ``doctor_id`` that overlap ``[start, end)``, ordered by start."""
        query = (
            select(doctor_availability)
            .where(
                and_(
                    doctor_availability.c.doctor_id == doctor_id,
                    doctor_availability.c.start_time < end,
                    doctor_availability.c.end_time > start,
                )
            )
            .order_by(doctor_availability.c.start_time)
        )
        result = await self.db.execute(query)
        return [self._to_entity(row) for row in result.mappings().all()]
