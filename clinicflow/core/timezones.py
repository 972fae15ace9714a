"""
Timezone normalization between clinic wall-clock time and absolute instants.

Callers send naive wall-clock values that are implicitly local to the clinic
owning the unit. The calendar date and clock components are taken literally
in that zone; they are never reinterpreted from UTC.
"""

from datetime import UTC, date, datetime, timedelta, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from clinicflow.core.exceptions import InvalidTimezoneError


@lru_cache(maxsize=256)
def resolve_zone(name: str | None) -> tzinfo:
    """
    Resolve an IANA zone name.

    An empty or missing name resolves to UTC (times are already absolute).

    Raises:
        InvalidTimezoneError: If the name is not a known IANA zone
    """
    if not name:
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidTimezoneError(f"Invalid clinic timezone {name!r}") from e


def to_absolute(wall_clock: datetime, zone_name: str | None) -> datetime:
    """
    Interpret ``wall_clock`` as local time in ``zone_name`` and return UTC.

    Any tzinfo carried by ``wall_clock`` is discarded; only its date and
    clock components are used.
    """
    zone = resolve_zone(zone_name)
    local = wall_clock.replace(tzinfo=zone)
    return local.astimezone(UTC)


def to_display(instant: datetime, zone_name: str | None) -> datetime:
    """Convert an absolute instant to naive wall-clock time in ``zone_name``."""
    zone = resolve_zone(zone_name)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(zone).replace(tzinfo=None)


def local_day_bounds(day: date, zone_name: str | None) -> tuple[datetime, datetime]:
    """Return the UTC instants bounding the local calendar ``day`` in ``zone_name``."""
    zone = resolve_zone(zone_name)
    start = datetime(day.year, day.month, day.day, tzinfo=zone)
    following = day + timedelta(days=1)
    next_day = datetime(following.year, following.month, following.day, tzinfo=zone)
    return start.astimezone(UTC), next_day.astimezone(UTC)
