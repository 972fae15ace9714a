"""Doctor availability window."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from clinicflow.core.exceptions import ValidationException


@dataclass
class DoctorAvailability:
    """A window during which a doctor accepts bookings."""

    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    # Stored verbatim; recurrence is not expanded here
    recurrence_rule: str | None = None
    is_available: bool = True
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise ValidationException("Availability end time must be after start time")

    def covers(self, start: datetime, end: datetime) -> bool:
        """True if this open window fully contains ``[start, end)``."""
        return self.is_available and self.start_time <= start and self.end_time >= end

    def clipped_to(self, start: datetime, end: datetime) -> tuple[datetime, datetime] | None:
        """Intersection with ``[start, end)``, or None when they do not overlap."""
        lower = max(self.start_time, start)
        upper = min(self.end_time, end)
        if lower >= upper:
            return None
        return lower, upper
