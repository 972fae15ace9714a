"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from clinicflow.core.clock import Clock, system_clock
from clinicflow.database import get_db
from clinicflow.services.booking_locks import BookingLocks, booking_locks


def get_clock() -> Clock:
    """Clock used to timestamp every state change."""
    return system_clock


def get_booking_locks() -> BookingLocks:
    return booking_locks


async def get_organization_id(
    x_organization_id: Annotated[UUID, Header(alias="X-Organization-ID")],
) -> UUID:
    """
    Organization the caller acts for.

    Authentication happens upstream; the gateway forwards the resolved
    organization in the ``X-Organization-ID`` header.
    """
    return x_organization_id


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentClock = Annotated[Clock, Depends(get_clock)]
Locks = Annotated[BookingLocks, Depends(get_booking_locks)]
CurrentOrganizationId = Annotated[UUID, Depends(get_organization_id)]
