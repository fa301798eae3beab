"""
Travel Time Routes
==================

Driving time between two addresses. Provider failures come back as data
(``duration_minutes`` null plus ``error``), not as an HTTP error.
"""

from fastapi import APIRouter, Depends

from app.core.authz import Actor
from app.core.dependencies.auth import get_current_actor
from app.core.envelope import ok
from app.schemas import ErrorResponse
from app.schemas.travel_time import TravelTimeRequest
from app.services.travel_time import TravelTimeService, get_travel_time_service

router = APIRouter(
    prefix="/api/travel-time",
    tags=["Travel Time"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        429: {"model": ErrorResponse, "description": "Rate limited"},
    },
)


@router.post("", summary="Look up driving time")
async def travel_time_route(
    body: TravelTimeRequest,
    actor: Actor = Depends(get_current_actor),
    service: TravelTimeService = Depends(get_travel_time_service),
) -> dict:
    result = await service.lookup(body.origin, body.destination)
    return ok(result.to_dict())
