"""
Offering availability with Redis caching.
"""

from fastapi import APIRouter, Depends

from app.api.dependencies import get_container
from app.schemas.offering import AvailabilityResponse, SessionAvailabilityResponse
from app.services.container import ServiceContainer

router = APIRouter(prefix="/offerings", tags=["Offerings"])


@router.get("/{offering_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    offering_id: int,
    container: ServiceContainer = Depends(get_container),
):
    """
    Free spots per scheduled session.

    Served from cache when possible. Checkout never trusts these numbers;
    it always reserves against the store.
    """
    cached = await container.cache.get(offering_id)
    if cached is not None:
        return AvailabilityResponse(
            offering_id=offering_id,
            sessions=[SessionAvailabilityResponse(**item) for item in cached],
            cached=True,
        )

    sessions = [
        SessionAvailabilityResponse.model_validate(item)
        for item in await container.capacity.availability(offering_id)
    ]
    await container.cache.set(offering_id, [s.model_dump(mode="json") for s in sessions])
    return AvailabilityResponse(offering_id=offering_id, sessions=sessions)
