"""API v1 router configuration."""

from fastapi import APIRouter

from clinicflow.api.v1.endpoints import appointments, availability, health, rescheduling_queue

api_router = APIRouter()

# Include routers; the queue's fixed paths must precede /appointments/{appointment_id}
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(
    rescheduling_queue.router,
    prefix="/appointments",
    tags=["Rescheduling Queue"],
)
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(availability.router, prefix="/availability", tags=["Availability"])
