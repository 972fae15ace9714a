"""Tests for the per-resource booking lock registry."""

import asyncio
from uuid import uuid4

import pytest

from clinicflow.services.booking_locks import BookingLocks


@pytest.mark.asyncio
async def test_same_resource_is_serialized() -> None:
    locks = BookingLocks()
    doctor_id = uuid4()
    events: list[str] = []

    async def book(name: str) -> None:
        async with locks.hold(doctor_id, None):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(book("a"), book("b"))
    assert events in (
        ["a-in", "a-out", "b-in", "b-out"],
        ["b-in", "b-out", "a-in", "a-out"],
    )


@pytest.mark.asyncio
async def test_different_resources_do_not_block() -> None:
    locks = BookingLocks()
    first_inside = asyncio.Event()
    release_first = asyncio.Event()

    async def first() -> None:
        async with locks.hold(uuid4()):
            first_inside.set()
            await release_first.wait()

    task = asyncio.create_task(first())
    await first_inside.wait()
    async with locks.hold(uuid4()):
        release_first.set()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_opposite_argument_order_does_not_deadlock() -> None:
    locks = BookingLocks()
    doctor_id, unit_id = uuid4(), uuid4()

    async def book(*ids) -> None:
        async with locks.hold(*ids):
            await asyncio.sleep(0.01)

    await asyncio.wait_for(
        asyncio.gather(book(doctor_id, unit_id), book(unit_id, doctor_id)),
        timeout=1,
    )


@pytest.mark.asyncio
async def test_locks_are_released_on_error() -> None:
    locks = BookingLocks()
    unit_id = uuid4()

    with pytest.raises(RuntimeError):
        async with locks.hold(unit_id):
            raise RuntimeError("boom")

    async with asyncio.timeout(1):
        async with locks.hold(unit_id):
            pass
