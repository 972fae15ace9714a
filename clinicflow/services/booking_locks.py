"""In-process serialization of check-then-write booking flows."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID
from weakref import WeakValueDictionary


class BookingLocks:
    """
    Registry of per-resource locks keyed by doctor or unit id.

    Locks are acquired in sorted id order so two flows touching the same
    pair of resources cannot deadlock. Entries disappear once no flow holds
    or waits on them.
    """

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[UUID, asyncio.Lock] = WeakValueDictionary()

    def _lock_for(self, resource_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(resource_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[resource_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *resource_ids: UUID | None) -> AsyncIterator[None]:
        """Hold the locks of every non-empty resource id for the duration of the block."""
        ordered = sorted({rid for rid in resource_ids if rid is not None}, key=str)
        locks = [self._lock_for(rid) for rid in ordered]
        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


# Shared by every request handled by this process
booking_locks = BookingLocks()
