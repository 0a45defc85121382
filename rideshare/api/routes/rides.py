"""
Ride endpoints
==============

POST /api/v1/rides                      -- request an immediate ride
POST /api/v1/rides/schedule             -- book a ride at least an hour ahead
GET  /api/v1/rides                      -- the caller's rides
GET  /api/v1/rides/active               -- the caller's current ride, if any
GET  /api/v1/rides/available            -- open requests with no driver
GET  /api/v1/rides/nearby               -- open requests around a point
GET  /api/v1/rides/shared               -- shared rides matching a trip
GET  /api/v1/rides/{ride_id}            -- ride details and price
POST /api/v1/rides/{ride_id}/accept     -- driver takes the ride
POST /api/v1/rides/{ride_id}/start      -- driver picks the passenger up
POST /api/v1/rides/{ride_id}/complete   -- driver drops the passenger off
POST /api/v1/rides/{ride_id}/cancel     -- any participant cancels
POST /api/v1/rides/{ride_id}/join       -- second passenger joins a shared ride
POST /api/v1/rides/{ride_id}/rate-driver
POST /api/v1/rides/{ride_id}/rate-passenger
POST /api/v1/rides/{ride_id}/payment    -- create a payment intent
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from rideshare.api.dependencies import (
    get_actor,
    get_location_service,
    get_ride_service,
)
from rideshare.api.middleware import RATE_LIMIT, limiter
from rideshare.api.schemas import (
    CancelRequest,
    ErrorResponse,
    PaymentResponse,
    RatingRequest,
    RideCreateRequest,
    RideResponse,
)
from rideshare.config import settings
from rideshare.domain.entities import Actor, Location
from rideshare.infrastructure.locations import LocationSuggestionService
from rideshare.services.ride_service import RideService

router = APIRouter(
    prefix="/rides",
    tags=["rides"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


def _request_from_body(body: RideCreateRequest, locations: LocationSuggestionService):
    pickup = body.pickup_coordinates.to_location() if body.pickup_coordinates else None
    dropoff = (
        body.dropoff_coordinates.to_location() if body.dropoff_coordinates else None
    )
    if body.resolve_coordinates:
        pickup = pickup or locations.resolve(body.pickup_location)
        dropoff = dropoff or locations.resolve(body.dropoff_location)
    return body.to_domain(pickup, dropoff)


# ── Creation ──────────────────────────────────────────────────────────


@router.post(
    "",
    status_code=201,
    response_model=RideResponse,
    summary="Request an immediate ride",
)
@limiter.limit(RATE_LIMIT)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
    locations: LocationSuggestionService = Depends(get_location_service),
):
    ride = await service.request_ride(actor, _request_from_body(body, locations))
    return RideResponse.from_entity(ride)


@router.post(
    "/schedule",
    status_code=201,
    response_model=RideResponse,
    summary="Schedule a ride in advance",
)
@limiter.limit(RATE_LIMIT)
async def schedule_ride(
    request: Request,
    body: RideCreateRequest,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
    locations: LocationSuggestionService = Depends(get_location_service),
):
    ride = await service.schedule_ride(actor, _request_from_body(body, locations))
    return RideResponse.from_entity(ride)


# ── Queries ───────────────────────────────────────────────────────────


@router.get("", response_model=list[RideResponse], summary="List the caller's rides")
@limiter.limit(RATE_LIMIT)
async def list_rides(
    request: Request,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    rides = await service.rides_for_user(actor)
    return [RideResponse.from_entity(r) for r in rides]


@router.get(
    "/active",
    response_model=Optional[RideResponse],
    summary="The caller's ride currently in play",
)
@limiter.limit(RATE_LIMIT)
async def active_ride(
    request: Request,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    ride = await service.active_ride_for(actor)
    return RideResponse.from_entity(ride) if ride else None


@router.get(
    "/available",
    response_model=list[RideResponse],
    summary="Requested rides no driver has taken yet",
)
@limiter.limit(RATE_LIMIT)
async def available_rides(
    request: Request,
    service: RideService = Depends(get_ride_service),
):
    rides = await service.available_rides()
    return [RideResponse.from_entity(r) for r in rides]


@router.get(
    "/nearby",
    response_model=list[RideResponse],
    summary="Requested rides with a pickup near a point",
)
@limiter.limit(RATE_LIMIT)
async def nearby_rides(
    request: Request,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    radius: float = Query(settings.nearby_default_radius_km, gt=0),
    service: RideService = Depends(get_ride_service),
):
    rides = await service.find_nearby_rides(latitude, longitude, radius)
    return [RideResponse.from_entity(r) for r in rides]


@router.get(
    "/shared",
    response_model=list[RideResponse],
    summary="Shared rides whose endpoints match a trip",
)
@limiter.limit(RATE_LIMIT)
async def shared_rides(
    request: Request,
    pickup_lat: Optional[float] = Query(None, ge=-90, le=90),
    pickup_lng: Optional[float] = Query(None, ge=-180, le=180),
    dropoff_lat: Optional[float] = Query(None, ge=-90, le=90),
    dropoff_lng: Optional[float] = Query(None, ge=-180, le=180),
    service: RideService = Depends(get_ride_service),
):
    pickup = (
        Location(pickup_lat, pickup_lng)
        if pickup_lat is not None and pickup_lng is not None
        else None
    )
    dropoff = (
        Location(dropoff_lat, dropoff_lng)
        if dropoff_lat is not None and dropoff_lng is not None
        else None
    )
    rides = await service.find_shared_rides(pickup, dropoff)
    return [RideResponse.from_entity(r) for r in rides]


@router.get("/{ride_id}", response_model=RideResponse, summary="Get a ride")
@limiter.limit(RATE_LIMIT)
async def get_ride(
    request: Request,
    ride_id: int,
    service: RideService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.get_ride(ride_id))


# ── Lifecycle ─────────────────────────────────────────────────────────


@router.post("/{ride_id}/accept", response_model=RideResponse, summary="Accept a ride")
@limiter.limit(RATE_LIMIT)
async def accept_ride(
    request: Request,
    ride_id: int,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.accept_ride(ride_id, actor))


@router.post("/{ride_id}/start", response_model=RideResponse, summary="Start a ride")
@limiter.limit(RATE_LIMIT)
async def start_ride(
    request: Request,
    ride_id: int,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.start_ride(ride_id, actor))


@router.post(
    "/{ride_id}/complete", response_model=RideResponse, summary="Complete a ride"
)
@limiter.limit(RATE_LIMIT)
async def complete_ride(
    request: Request,
    ride_id: int,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.complete_ride(ride_id, actor))


@router.post(
    "/{ride_id}/cancel",
    response_model=RideResponse,
    summary="Cancel a ride",
    description="Any participant may cancel a ride that has not finished.",
)
@limiter.limit(RATE_LIMIT)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: Optional[CancelRequest] = None,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    reason = body.reason if body else None
    return RideResponse.from_entity(await service.cancel_ride(ride_id, actor, reason))


@router.post(
    "/{ride_id}/join", response_model=RideResponse, summary="Join a shared ride"
)
@limiter.limit(RATE_LIMIT)
async def join_ride(
    request: Request,
    ride_id: int,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    return RideResponse.from_entity(await service.join_shared_ride(ride_id, actor))


# ── Ratings ───────────────────────────────────────────────────────────


@router.post(
    "/{ride_id}/rate-driver",
    response_model=RideResponse,
    summary="Passenger rates the driver",
)
@limiter.limit(RATE_LIMIT)
async def rate_driver(
    request: Request,
    ride_id: int,
    body: RatingRequest,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    ride = await service.rate_driver(ride_id, actor, body.rating, body.review)
    return RideResponse.from_entity(ride)


@router.post(
    "/{ride_id}/rate-passenger",
    response_model=RideResponse,
    summary="Driver rates the passenger",
)
@limiter.limit(RATE_LIMIT)
async def rate_passenger(
    request: Request,
    ride_id: int,
    body: RatingRequest,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    ride = await service.rate_passenger(ride_id, actor, body.rating, body.review)
    return RideResponse.from_entity(ride)


# ── Payments ──────────────────────────────────────────────────────────


@router.post(
    "/{ride_id}/payment",
    response_model=PaymentResponse,
    summary="Create a payment intent for the ride price",
    responses={502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def create_payment(
    request: Request,
    ride_id: int,
    actor: Actor = Depends(get_actor),
    service: RideService = Depends(get_ride_service),
):
    if service.payments is None:
        raise HTTPException(status_code=503, detail="Payments are not configured")
    intent_id = await service.create_payment(ride_id, actor)
    return PaymentResponse(
        payment_intent_id=intent_id,
        publishable_key=settings.stripe_publishable_key,
    )
