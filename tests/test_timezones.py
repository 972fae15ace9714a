"""Tests for clinic wall-clock / absolute time conversion."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from clinicflow.core.exceptions import InvalidTimezoneError
from clinicflow.core.timezones import local_day_bounds, resolve_zone, to_absolute, to_display


def test_mexico_city_wall_clock_to_utc() -> None:
    """09:00 in Mexico City on 2024-03-01 is 15:00 UTC."""
    result = to_absolute(datetime(2024, 3, 1, 9, 0), "America/Mexico_City")
    assert result == datetime(2024, 3, 1, 15, 0, tzinfo=UTC)
    assert result.tzinfo is UTC


def test_empty_zone_is_utc_passthrough() -> None:
    naive = datetime(2024, 3, 1, 9, 0)
    assert to_absolute(naive, "") == datetime(2024, 3, 1, 9, 0, tzinfo=UTC)
    assert to_absolute(naive, None) == datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def test_offset_sent_by_caller_is_ignored() -> None:
    """Only the date and clock components matter."""
    with_offset = datetime(2024, 3, 1, 9, 0, tzinfo=timezone(timedelta(hours=5)))
    assert to_absolute(with_offset, "America/Mexico_City") == datetime(
        2024, 3, 1, 15, 0, tzinfo=UTC
    )


@pytest.mark.parametrize(
    "zone",
    ["Mars/Olympus_Mons", "America", "Europe", "UTC+5", " "],
)
def test_unknown_zone_is_rejected(zone: str) -> None:
    """Area directories such as ``America`` are not zones either."""
    with pytest.raises(InvalidTimezoneError):
        to_absolute(datetime(2024, 3, 1, 9, 0), zone)
    with pytest.raises(InvalidTimezoneError):
        to_display(datetime(2024, 3, 1, 15, 0, tzinfo=UTC), zone)


def test_resolve_zone_rejects_malformed_name() -> None:
    with pytest.raises(InvalidTimezoneError):
        resolve_zone("../etc/passwd")


@pytest.mark.parametrize(
    "zone",
    ["America/Mexico_City", "Europe/Madrid", "Asia/Kolkata", "Australia/Sydney", ""],
)
@pytest.mark.parametrize(
    "wall_clock",
    [
        datetime(2024, 1, 15, 0, 0),
        datetime(2024, 3, 1, 9, 0),
        datetime(2024, 7, 4, 23, 45, 30),
    ],
)
def test_display_round_trip(zone: str, wall_clock: datetime) -> None:
    assert to_display(to_absolute(wall_clock, zone), zone) == wall_clock


def test_display_is_naive_local_time() -> None:
    shown = to_display(datetime(2024, 3, 1, 15, 0, tzinfo=UTC), "America/Mexico_City")
    assert shown == datetime(2024, 3, 1, 9, 0)
    assert shown.tzinfo is None


def test_dst_is_applied_per_date() -> None:
    """Madrid is UTC+1 in winter and UTC+2 in summer."""
    winter = to_absolute(datetime(2024, 1, 10, 10, 0), "Europe/Madrid")
    summer = to_absolute(datetime(2024, 7, 10, 10, 0), "Europe/Madrid")
    assert winter.hour == 9
    assert summer.hour == 8


def test_local_day_bounds() -> None:
    start, end = local_day_bounds(date(2024, 3, 1), "America/Mexico_City")
    assert start == datetime(2024, 3, 1, 6, 0, tzinfo=UTC)
    assert end == datetime(2024, 3, 2, 6, 0, tzinfo=UTC)


def test_local_day_bounds_utc() -> None:
    start, end = local_day_bounds(date(2024, 3, 1), "")
    assert start == datetime(2024, 3, 1, tzinfo=UTC)
    assert end - start == timedelta(days=1)
