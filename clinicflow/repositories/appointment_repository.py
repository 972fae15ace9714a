"""Appointment persistence using SQLAlchemy Core."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, delete, false, func, insert, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.exceptions import AppointmentNotFoundError, NotInQueueError
from clinicflow.domain.appointments import Appointment, AppointmentStatus
from clinicflow.models.appointments import appointments
from clinicflow.models.clinics import clinics
from clinicflow.models.doctors import doctors
from clinicflow.models.patients import patients
from clinicflow.models.units import units

_ENTITY_COLUMNS = (
    "id",
    "patient_id",
    "doctor_id",
    "unit_id",
    "service_id",
    "start_time",
    "end_time",
    "status",
    "notes",
    "moved_to_needs_rescheduling_at",
    "rescheduled_to_appointment_id",
    "cancellation_reason",
    "snoozed_until",
    "created_at",
    "updated_at",
)


@dataclass
class AppointmentDetails:
    """An appointment joined with the reference rows it points at."""

    appointment: Appointment
    patient_first_name: str | None = None
    patient_last_name: str | None = None
    patient_phone: str | None = None
    patient_email: str | None = None
    patient_first_appointment_id: UUID | None = None
    doctor_name: str | None = None
    unit_name: str | None = None
    clinic_id: UUID | None = None
    clinic_name: str | None = None
    organization_id: UUID | None = None
    timezone: str = ""

    @property
    def patient_name(self) -> str | None:
        if self.patient_first_name is None:
            return None
        return " ".join(part for part in (self.patient_first_name, self.patient_last_name) if part)

    @property
    def is_first_visit(self) -> bool | None:
        if self.appointment.patient_id is None:
            return None
        return self.patient_first_appointment_id == self.appointment.id


@dataclass
class QueueFilters:
    """Filters and paging for the rescheduling queue listing."""

    organization_id: UUID
    clinic_id: UUID | None = None
    doctor_id: UUID | None = None
    search: str | None = None
    page: int = 1
    limit: int = 20
    newest_first: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class AppointmentListFilters:
    """Filters and paging for listing an organization's appointments."""

    organization_id: UUID
    from_time: datetime | None = None
    to_time: datetime | None = None
    clinic_id: UUID | None = None
    doctor_id: UUID | None = None
    status: AppointmentStatus | None = None
    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def to_entity(row: Any) -> Appointment:
    """Build an ``Appointment`` from a mapping row."""
    return Appointment(**{name: row[name] for name in _ENTITY_COLUMNS})


def to_values(appointment: Appointment) -> dict[str, Any]:
    """Column values for an ``Appointment``."""
    values = {name: getattr(appointment, name) for name in _ENTITY_COLUMNS}
    values["status"] = appointment.status.value
    return values


def _details_query():
    joined = (
        appointments.outerjoin(patients, appointments.c.patient_id == patients.c.id)
        .outerjoin(doctors, appointments.c.doctor_id == doctors.c.id)
        .outerjoin(units, appointments.c.unit_id == units.c.id)
        .outerjoin(clinics, units.c.clinic_id == clinics.c.id)
    )
    columns = [
        appointments,
        patients.c.first_name.label("patient_first_name"),
        patients.c.last_name.label("patient_last_name"),
        patients.c.phone.label("patient_phone"),
        patients.c.email.label("patient_email"),
        patients.c.first_appointment_id.label("patient_first_appointment_id"),
        doctors.c.name.label("doctor_name"),
        units.c.name.label("unit_name"),
        clinics.c.id.label("clinic_id"),
        clinics.c.name.label("clinic_name"),
        clinics.c.organization_id.label("organization_id"),
        clinics.c.timezone.label("clinic_timezone"),
    ]
    return select(*columns).select_from(joined), joined


def _to_details(row: Any) -> AppointmentDetails:
    return AppointmentDetails(
        appointment=to_entity(row),
        patient_first_name=row["patient_first_name"],
        patient_last_name=row["patient_last_name"],
        patient_phone=row["patient_phone"],
        patient_email=row["patient_email"],
        patient_first_appointment_id=row["patient_first_appointment_id"],
        doctor_name=row["doctor_name"],
        unit_name=row["unit_name"],
        clinic_id=row["clinic_id"],
        clinic_name=row["clinic_name"],
        organization_id=row["organization_id"],
        timezone=row["clinic_timezone"] or "",
    )


def _overlap_conditions(
    doctor_id: UUID | None,
    unit_id: UUID | None,
    start: datetime,
    end: datetime,
    exclude_id: UUID | None,
) -> list:
    resources = []
    if doctor_id is not None:
        resources.append(appointments.c.doctor_id == doctor_id)
    if unit_id is not None:
        resources.append(appointments.c.unit_id == unit_id)
    conditions = [
        appointments.c.status == AppointmentStatus.SCHEDULED.value,
        or_(false(), *resources),
        appointments.c.start_time < end,
        appointments.c.end_time > start,
    ]
    if exclude_id is not None:
        conditions.append(appointments.c.id != exclude_id)
    return conditions


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so ``term`` matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def advisory_lock_key(resource_id: UUID) -> int:
    """Signed 64-bit key for ``pg_advisory_xact_lock``."""
    return int.from_bytes(resource_id.bytes[:8], "big", signed=True)


class AppointmentRepository:
    """Reads and writes appointment rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, appointment_id: UUID) -> Appointment | None:
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()
        return to_entity(row) if row else None

    async def get_details(self, appointment_id: UUID) -> AppointmentDetails | None:
        query, _ = _details_query()
        result = await self.db.execute(query.where(appointments.c.id == appointment_id))
        row = result.mappings().first()
        return _to_details(row) if row else None

    async def create(self, appointment: Appointment) -> Appointment:
        await self.db.execute(insert(appointments).values(**to_values(appointment)))
        return appointment

    async def update(self, appointment: Appointment) -> Appointment:
        """
        Persist every mutable field of ``appointment``.

        Raises:
            AppointmentNotFoundError: If no row has the appointment's id
        """
        values = to_values(appointment)
        values.pop("id")
        values.pop("created_at")
        result = await self.db.execute(
            update(appointments).where(appointments.c.id == appointment.id).values(**values)
        )
        if result.rowcount == 0:
            raise AppointmentNotFoundError()
        return appointment

    async def delete(self, appointment_id: UUID) -> bool:
        result = await self.db.execute(
            delete(appointments).where(appointments.c.id == appointment_id)
        )
        return result.rowcount > 0

    async def check_conflict(
        self,
        doctor_id: UUID | None,
        unit_id: UUID | None,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        """True if an active appointment for the doctor or the unit overlaps ``[start, end)``."""
        query = (
            select(appointments.c.id)
            .where(and_(*_overlap_conditions(doctor_id, unit_id, start, end, exclude_id)))
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.first() is not None

    async def get_conflicting_appointments(
        self,
        doctor_id: UUID | None,
        unit_id: UUID | None,
        start: datetime,
        end: datetime,
        exclude_id: UUID | None = None,
    ) -> list[Appointment]:
        query = (
            select(appointments)
            .where(and_(*_overlap_conditions(doctor_id, unit_id, start, end, exclude_id)))
            .order_by(appointments.c.start_time, appointments.c.id)
        )
        result = await self.db.execute(query)
        return [to_entity(row) for row in result.mappings().all()]

    async def get_active_for_doctor_between(
        self,
        doctor_id: UUID,
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        """Scheduled appointments of ``doctor_id`` overlapping ``[start, end)``."""
        query = (
            select(appointments)
            .where(
                and_(
                    appointments.c.doctor_id == doctor_id,
                    appointments.c.status == AppointmentStatus.SCHEDULED.value,
                    appointments.c.start_time < end,
                    appointments.c.end_time > start,
                )
            )
            .order_by(appointments.c.start_time)
        )
        result = await self.db.execute(query)
        return [to_entity(row) for row in result.mappings().all()]

    async def list_for_organization(
        self,
        filters: AppointmentListFilters,
    ) -> tuple[list[AppointmentDetails], int]:
        query, joined = _details_query()
        conditions = [clinics.c.organization_id == filters.organization_id]

        if filters.from_time:
            conditions.append(appointments.c.start_time >= filters.from_time)
        if filters.to_time:
            conditions.append(appointments.c.start_time < filters.to_time)
        if filters.clinic_id:
            conditions.append(clinics.c.id == filters.clinic_id)
        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)
        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        count_stmt = select(func.count()).select_from(joined).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            query.where(and_(*conditions))
            .order_by(appointments.c.start_time, appointments.c.id)
            .limit(filters.page_size)
            .offset(filters.offset)
        )
        result = await self.db.execute(stmt)
        return [_to_details(row) for row in result.mappings().all()], total

    async def get_rescheduling_queue(
        self,
        filters: QueueFilters,
        now: datetime,
    ) -> tuple[list[AppointmentDetails], int]:
        """
        Appointments waiting in the rescheduling queue for one organization.

        Snoozed entries stay hidden until ``snoozed_until`` has passed ``now``.
        """
        query, joined = _details_query()
        conditions = [
            appointments.c.status == AppointmentStatus.NEEDS_RESCHEDULING.value,
            clinics.c.organization_id == filters.organization_id,
            or_(appointments.c.snoozed_until.is_(None), appointments.c.snoozed_until < now),
        ]

        if filters.clinic_id:
            conditions.append(clinics.c.id == filters.clinic_id)
        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)
        if filters.search:
            pattern = f"%{escape_like(filters.search.lower())}%"
            full_name = patients.c.first_name + " " + func.coalesce(patients.c.last_name, "")
            conditions.append(
                or_(
                    func.lower(full_name).like(pattern, escape="\\"),
                    func.lower(patients.c.phone).like(pattern, escape="\\"),
                    func.lower(patients.c.email).like(pattern, escape="\\"),
                )
            )

        count_stmt = select(func.count()).select_from(joined).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        queued_at = appointments.c.moved_to_needs_rescheduling_at
        order = queued_at.desc().nulls_last() if filters.newest_first else queued_at.asc().nulls_last()
        stmt = (
            query.where(and_(*conditions))
            .order_by(order, appointments.c.id)
            .limit(filters.limit)
            .offset(filters.offset)
        )
        result = await self.db.execute(stmt)
        return [_to_details(row) for row in result.mappings().all()], total

    async def cancel_with_reason(self, appointment: Appointment) -> None:
        """
        Persist the cancellation of a queued appointment.

        The update only matches rows still in ``needs-rescheduling``.

        Raises:
            NotInQueueError: If the appointment left the queue in the meantime
        """
        result = await self.db.execute(
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment.id,
                    appointments.c.status == AppointmentStatus.NEEDS_RESCHEDULING.value,
                )
            )
            .values(
                status=appointment.status.value,
                cancellation_reason=appointment.cancellation_reason,
                updated_at=appointment.updated_at,
            )
        )
        if result.rowcount == 0:
            raise NotInQueueError()

    async def snooze(self, appointment: Appointment) -> None:
        """
        Persist the snooze of a queued appointment.

        Raises:
            NotInQueueError: If the appointment is not in the queue
        """
        result = await self.db.execute(
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment.id,
                    appointments.c.status == AppointmentStatus.NEEDS_RESCHEDULING.value,
                )
            )
            .values(
                snoozed_until=appointment.snoozed_until,
                updated_at=appointment.updated_at,
            )
        )
        if result.rowcount == 0:
            raise NotInQueueError()

    async def lock_resources(self, *resource_ids: UUID | None) -> None:
        """
        Take transaction-scoped advisory locks on the given resources.

        Only PostgreSQL supports these; on other backends this is a no-op.
        Keys are locked in sorted order.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        keys = sorted({advisory_lock_key(rid) for rid in resource_ids if rid is not None})
        for key in keys:
            await self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})
