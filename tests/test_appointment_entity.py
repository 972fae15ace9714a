"""Tests for the appointment entity and its state machine."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from clinicflow.core.exceptions import InvalidStatusError, InvalidTimeOrderError
from clinicflow.domain.appointments import ALLOWED_TRANSITIONS, Appointment, AppointmentStatus

T0 = datetime(2024, 3, 1, 15, 0, tzinfo=UTC)


def make_appointment(**kwargs) -> Appointment:
    values = {
        "start_time": T0,
        "end_time": T0 + timedelta(minutes=30),
        "patient_id": uuid4(),
        "doctor_id": uuid4(),
        "unit_id": uuid4(),
        "created_at": T0 - timedelta(days=1),
        "updated_at": T0 - timedelta(days=1),
    }
    values.update(kwargs)
    return Appointment(**values)


def test_new_appointment_is_scheduled() -> None:
    appointment = make_appointment()
    assert appointment.status == AppointmentStatus.SCHEDULED
    assert appointment.is_active
    assert appointment.duration == timedelta(minutes=30)


@pytest.mark.parametrize("minutes", [0, -15])
def test_end_not_after_start_is_rejected(minutes: int) -> None:
    with pytest.raises(InvalidTimeOrderError):
        make_appointment(end_time=T0 + timedelta(minutes=minutes))


def test_validate_catches_times_changed_after_construction() -> None:
    appointment = make_appointment()
    appointment.end_time = appointment.start_time
    with pytest.raises(InvalidTimeOrderError):
        appointment.validate()


def test_unknown_status_is_rejected() -> None:
    with pytest.raises(InvalidStatusError):
        make_appointment(status="postponed")


def test_status_accepts_tag_strings() -> None:
    appointment = make_appointment(status="needs-rescheduling")
    assert appointment.status is AppointmentStatus.NEEDS_RESCHEDULING


def test_naive_times_are_rejected() -> None:
    with pytest.raises(ValueError):
        make_appointment(start_time=datetime(2024, 3, 1, 9), end_time=datetime(2024, 3, 1, 10))


def test_overlap_is_half_open() -> None:
    appointment = make_appointment(end_time=T0 + timedelta(hours=1))
    # Touching intervals do not overlap
    assert not appointment.overlaps(T0 + timedelta(hours=1), T0 + timedelta(hours=2))
    assert not appointment.overlaps(T0 - timedelta(hours=1), T0)
    assert appointment.overlaps(T0 + timedelta(minutes=30), T0 + timedelta(minutes=90))
    assert appointment.overlaps(T0 - timedelta(minutes=1), T0 + timedelta(minutes=1))


def test_cancel_twice_is_idempotent_and_advances_updated_at() -> None:
    appointment = make_appointment()
    first = T0 + timedelta(hours=1)
    second = T0 + timedelta(hours=2)

    appointment.cancel(first)
    assert appointment.status == AppointmentStatus.CANCELLED
    assert appointment.updated_at == first

    appointment.cancel(second)
    assert appointment.status == AppointmentStatus.CANCELLED
    assert appointment.updated_at == second


def test_updated_at_never_moves_backwards() -> None:
    appointment = make_appointment()
    later = T0 + timedelta(hours=3)
    appointment.complete(later)
    appointment.cancel(T0)
    assert appointment.updated_at == later


def test_cancel_with_reason() -> None:
    appointment = make_appointment()
    appointment.cancel_with_reason("patient_request - moved abroad", T0)
    assert appointment.status == AppointmentStatus.CANCELLED
    assert appointment.cancellation_reason == "patient_request - moved abroad"


def test_move_to_needs_rescheduling_stamps_queue_time() -> None:
    appointment = make_appointment(snoozed_until=T0)
    now = T0 + timedelta(minutes=5)
    appointment.move_to_needs_rescheduling(now)
    assert appointment.is_in_queue
    assert appointment.moved_to_needs_rescheduling_at == now
    assert appointment.snoozed_until is None


def test_link_to_rescheduled_appointment() -> None:
    appointment = make_appointment(status=AppointmentStatus.NEEDS_RESCHEDULING)
    new_id = uuid4()
    appointment.link_to_rescheduled_appointment(new_id, T0)
    assert appointment.status == AppointmentStatus.RESCHEDULED
    assert appointment.rescheduled_to_appointment_id == new_id


def test_queue_visibility_follows_snooze() -> None:
    appointment = make_appointment()
    appointment.move_to_needs_rescheduling(T0)
    assert appointment.is_visible_in_queue(T0)

    appointment.snooze(T0 + timedelta(days=1), T0)
    assert not appointment.is_visible_in_queue(T0 + timedelta(hours=23))
    assert appointment.is_visible_in_queue(T0 + timedelta(days=1, seconds=1))


def test_scheduled_appointment_is_never_visible_in_queue() -> None:
    assert not make_appointment().is_visible_in_queue(T0)


def test_transition_table_covers_every_status() -> None:
    assert set(ALLOWED_TRANSITIONS) == set(AppointmentStatus)


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (AppointmentStatus.SCHEDULED, AppointmentStatus.NEEDS_RESCHEDULING, True),
        (AppointmentStatus.NEEDS_RESCHEDULING, AppointmentStatus.RESCHEDULED, True),
        (AppointmentStatus.CANCELLED, AppointmentStatus.SCHEDULED, False),
        (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, False),
        (AppointmentStatus.CANCELLED, AppointmentStatus.CANCELLED, True),
    ],
)
def test_can_transition_to(current, target, allowed) -> None:
    assert make_appointment(status=current).can_transition_to(target) is allowed
