"""Health check endpoint."""

from fastapi import APIRouter, Request

from services.planner.clock import to_iso
from services.planner.routers._deps import envelope

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict:
    store = request.app.state.trip_service.store
    return envelope(request, {
        "status": "healthy",
        "version": request.app.state.settings.app_version,
        "trips": len(store.trips),
        "lastSync": to_iso(store.last_sync),
    })
