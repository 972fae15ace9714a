"""Tests for doctor availability lookups."""

from datetime import UTC, date, datetime
from uuid import uuid4

import pytest
from httpx import AsyncClient

from clinicflow.core.exceptions import DoctorNotFoundError, InvalidDateRangeError
from clinicflow.core.timezones import to_absolute
from clinicflow.services.availability_service import AvailabilityService

MEXICO_CITY = "America/Mexico_City"


def local(value: str) -> datetime:
    return to_absolute(datetime.fromisoformat(value), MEXICO_CITY)


@pytest.fixture
def availability(db_session) -> AvailabilityService:
    return AvailabilityService(db_session)


@pytest.fixture
async def calendar_doctor(make_doctor):
    """Doctor with windows on 2024-03-01, late on 2024-03-05 and on 2024-03-20."""
    return await make_doctor(
        windows=[
            (local("2024-03-20T09:00:00"), local("2024-03-20T13:00:00")),
            (local("2024-03-01T09:00:00"), local("2024-03-01T13:00:00")),
            (local("2024-03-05T22:00:00"), local("2024-03-05T23:30:00")),
        ]
    )


@pytest.mark.asyncio
async def test_lists_all_windows_without_range(availability, org_setup, calendar_doctor) -> None:
    result = await availability.get_doctor_availability(
        calendar_doctor, org_setup["organization_id"]
    )

    assert result.doctor_id == calendar_doctor
    assert result.timezone == ""
    assert [window.start_time_utc for window in result.availabilities] == [
        local("2024-03-01T09:00:00"),
        local("2024-03-05T22:00:00"),
        local("2024-03-20T09:00:00"),
    ]
    assert all(window.is_available for window in result.availabilities)


@pytest.mark.asyncio
async def test_range_includes_whole_end_day_in_clinic_zone(
    availability, org_setup, calendar_doctor
) -> None:
    result = await availability.get_doctor_availability(
        calendar_doctor,
        org_setup["organization_id"],
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 5),
        clinic_id=org_setup["clinic_id"],
    )

    assert result.timezone == MEXICO_CITY
    assert [(w.start_time, w.end_time) for w in result.availabilities] == [
        (datetime(2024, 3, 1, 9, 0), datetime(2024, 3, 1, 13, 0)),
        (datetime(2024, 3, 5, 22, 0), datetime(2024, 3, 5, 23, 30)),
    ]


@pytest.mark.asyncio
async def test_range_days_default_to_utc(availability, org_setup, calendar_doctor) -> None:
    """22:00 Mexico City on 2024-03-05 is already 2024-03-06 in UTC."""
    result = await availability.get_doctor_availability(
        calendar_doctor,
        org_setup["organization_id"],
        start_date=date(2024, 3, 6),
        end_date=date(2024, 3, 6),
    )

    assert [w.start_time_utc for w in result.availabilities] == [
        datetime(2024, 3, 6, 4, 0, tzinfo=UTC)
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("start_date", "end_date"),
    [
        (date(2024, 3, 1), None),
        (None, date(2024, 3, 1)),
        (date(2024, 3, 5), date(2024, 3, 1)),
        (date(2024, 1, 1), date(2025, 1, 1)),
    ],
)
async def test_invalid_ranges_are_rejected(
    availability, org_setup, start_date, end_date
) -> None:
    with pytest.raises(InvalidDateRangeError):
        await availability.get_doctor_availability(
            org_setup["doctor_id"],
            org_setup["organization_id"],
            start_date=start_date,
            end_date=end_date,
        )


@pytest.mark.asyncio
async def test_range_of_365_days_is_accepted(availability, org_setup) -> None:
    result = await availability.get_doctor_availability(
        org_setup["doctor_id"],
        org_setup["organization_id"],
        start_date=date(2024, 3, 1),
        end_date=date(2025, 3, 1),
    )
    assert len(result.availabilities) == 1


@pytest.mark.asyncio
async def test_doctor_of_another_organization_is_not_found(availability, org_setup) -> None:
    with pytest.raises(DoctorNotFoundError):
        await availability.get_doctor_availability(
            org_setup["doctor_id"], org_setup["other_organization_id"]
        )
    with pytest.raises(DoctorNotFoundError):
        await availability.get_doctor_availability(uuid4(), org_setup["organization_id"])


class TestAvailabilityEndpoints:
    """Tests for the availability endpoint."""

    @pytest.mark.asyncio
    async def test_get_availability(
        self, client: AsyncClient, org_setup: dict, calendar_doctor
    ) -> None:
        response = await client.get(
            f"/api/v1/availability/{calendar_doctor}",
            headers={"X-Organization-ID": str(org_setup["organization_id"])},
            params={
                "start_date": "2024-03-01",
                "end_date": "2024-03-01",
                "clinic_id": str(org_setup["clinic_id"]),
            },
        )

        assert response.status_code == 200
        windows = response.json()["availabilities"]
        assert len(windows) == 1
        assert windows[0]["start_time"] == "2024-03-01T09:00:00"
        assert windows[0]["start_time_utc"].startswith("2024-03-01T15:00:00")

    @pytest.mark.asyncio
    async def test_incomplete_range(self, client: AsyncClient, org_setup: dict) -> None:
        response = await client.get(
            f"/api/v1/availability/{org_setup['doctor_id']}",
            headers={"X-Organization-ID": str(org_setup["organization_id"])},
            params={"start_date": "2024-03-01"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_DATE_RANGE"

    @pytest.mark.asyncio
    async def test_other_organization(self, client: AsyncClient, org_setup: dict) -> None:
        response = await client.get(
            f"/api/v1/availability/{org_setup['doctor_id']}",
            headers={"X-Organization-ID": str(org_setup["other_organization_id"])},
        )

        assert response.status_code == 404
        assert response.json()["code"] == "DOCTOR_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_requires_organization_header(self, client: AsyncClient, org_setup: dict) -> None:
        response = await client.get(f"/api/v1/availability/{org_setup['doctor_id']}")
        assert response.status_code == 422
