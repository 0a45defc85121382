"""
Location endpoints
==================

GET /api/v1/locations/suggestions?q=... -- autocomplete for pickup / dropoff
"""

from fastapi import APIRouter, Depends, Query, Request

from rideshare.api.dependencies import get_location_service
from rideshare.api.middleware import RATE_LIMIT, limiter
from rideshare.api.schemas import LocationSuggestionResponse
from rideshare.infrastructure.locations import LocationSuggestionService

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get(
    "/suggestions",
    response_model=list[LocationSuggestionResponse],
    summary="Suggest known places for a partial address",
)
@limiter.limit(RATE_LIMIT)
async def suggestions(
    request: Request,
    q: str = Query("", max_length=200),
    locations: LocationSuggestionService = Depends(get_location_service),
):
    return [
        LocationSuggestionResponse.model_validate(place)
        for place in locations.suggest(q)
    ]
