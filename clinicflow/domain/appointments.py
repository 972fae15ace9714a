"""
Appointment entity and its lifecycle rules.

The entity validates its own invariants (time order, recognized status) and
exposes the status transitions used by the scheduling and queue services.
Transitions are permissive; ``ALLOWED_TRANSITIONS`` describes the stricter
graph that services enforce when ``STRICT_STATUS_TRANSITIONS`` is enabled.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from clinicflow.core.exceptions import InvalidStatusError, InvalidTimeOrderError


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NEEDS_RESCHEDULING = "needs-rescheduling"
    NO_SHOW = "no-show"
    WITH_ERROR = "with-error"

    @classmethod
    def parse(cls, value: "str | AppointmentStatus") -> "AppointmentStatus":
        """Return the status for ``value`` or raise ``InvalidStatusError``."""
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidStatusError(f"Invalid appointment status: {value!r}") from e


# Statuses considered for overlap and availability checks
ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED})

_S = AppointmentStatus

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    _S.SCHEDULED: frozenset(
        {
            _S.CONFIRMED,
            _S.COMPLETED,
            _S.CANCELLED,
            _S.RESCHEDULED,
            _S.NEEDS_RESCHEDULING,
            _S.NO_SHOW,
            _S.WITH_ERROR,
        }
    ),
    _S.CONFIRMED: frozenset(
        {
            _S.SCHEDULED,
            _S.COMPLETED,
            _S.CANCELLED,
            _S.RESCHEDULED,
            _S.NEEDS_RESCHEDULING,
            _S.NO_SHOW,
            _S.WITH_ERROR,
        }
    ),
    _S.NEEDS_RESCHEDULING: frozenset({_S.CANCELLED, _S.RESCHEDULED, _S.SCHEDULED}),
    _S.WITH_ERROR: frozenset({_S.SCHEDULED, _S.CANCELLED, _S.NEEDS_RESCHEDULING}),
    _S.NO_SHOW: frozenset({_S.NEEDS_RESCHEDULING, _S.CANCELLED}),
    _S.RESCHEDULED: frozenset({_S.SCHEDULED, _S.CANCELLED}),
    _S.COMPLETED: frozenset(),
    _S.CANCELLED: frozenset(),
}


def _require_aware(name: str, value: datetime) -> None:
    if value.tzinfo is None:
        raise ValueError(f"{name} must be timezone-aware")


@dataclass
class Appointment:
    """A booking of a patient with a doctor in a treatment unit."""

    start_time: datetime
    end_time: datetime
    patient_id: UUID | None = None
    doctor_id: UUID | None = None
    unit_id: UUID | None = None
    service_id: str | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: str | None = None

    # Rescheduling queue tracking
    moved_to_needs_rescheduling_at: datetime | None = None
    rescheduled_to_appointment_id: UUID | None = None
    cancellation_reason: str | None = None
    snoozed_until: datetime | None = None

    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        self.status = AppointmentStatus.parse(self.status)
        self.validate()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check the entity invariants.

        Raises:
            InvalidTimeOrderError: If a time is missing or end is not after start
            InvalidStatusError: If status is not a recognized tag
        """
        if self.start_time is None or self.end_time is None:
            raise InvalidTimeOrderError("Appointment start and end times are required")
        _require_aware("start_time", self.start_time)
        _require_aware("end_time", self.end_time)
        if self.end_time <= self.start_time:
            raise InvalidTimeOrderError()
        if not isinstance(self.status, AppointmentStatus):
            AppointmentStatus.parse(self.status)

    @property
    def duration(self):
        return self.end_time - self.start_time

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_in_queue(self) -> bool:
        return self.status == AppointmentStatus.NEEDS_RESCHEDULING

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open overlap of ``[start_time, end_time)`` with ``[start, end)``."""
        return self.start_time < end and start < self.end_time

    def can_transition_to(self, status: AppointmentStatus) -> bool:
        if status == self.status:
            return True
        return status in ALLOWED_TRANSITIONS.get(self.status, frozenset())

    def is_visible_in_queue(self, now: datetime) -> bool:
        """Queued and not snoozed past ``now``."""
        if not self.is_in_queue:
            return False
        return self.snoozed_until is None or self.snoozed_until < now

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def touch(self, now: datetime) -> None:
        """Advance ``updated_at`` to ``now`` without ever moving it backwards."""
        if now > self.updated_at:
            self.updated_at = now

    def cancel(self, now: datetime) -> None:
        self.status = AppointmentStatus.CANCELLED
        self.touch(now)

    def cancel_with_reason(self, reason: str, now: datetime) -> None:
        self.cancellation_reason = reason
        self.cancel(now)

    def complete(self, now: datetime) -> None:
        self.status = AppointmentStatus.COMPLETED
        self.touch(now)

    def reschedule(self, now: datetime) -> None:
        """Mark as rescheduled without re-anchoring to a new record."""
        self.status = AppointmentStatus.RESCHEDULED
        self.touch(now)

    def move_to_needs_rescheduling(self, now: datetime) -> None:
        self.status = AppointmentStatus.NEEDS_RESCHEDULING
        self.moved_to_needs_rescheduling_at = now
        self.snoozed_until = None
        self.touch(now)

    def link_to_rescheduled_appointment(self, new_appointment_id: UUID, now: datetime) -> None:
        self.status = AppointmentStatus.RESCHEDULED
        self.rescheduled_to_appointment_id = new_appointment_id
        self.touch(now)

    def snooze(self, until: datetime, now: datetime) -> None:
        _require_aware("until", until)
        self.snoozed_until = until
        self.touch(now)
