"""
Ride lifecycle guards and side effects.

Each function validates *all* of its guards against the ride first and only
then writes fields, so a raised error always leaves the entity untouched.
Persistence and locking are the orchestrator's job; nothing here does I/O.

    (new)        --request-->   REQUESTED
    (new)        --schedule-->  SCHEDULED
    REQUESTED |
    SCHEDULED    --accept-->    ACCEPTED      driver bound
    ACCEPTED     --start-->     IN_PROGRESS   start time recorded
    IN_PROGRESS  --complete-->  COMPLETED     end time recorded
    non-terminal --cancel-->    CANCELLED     reason recorded
    COMPLETED    --rate-->      COMPLETED     rating stored once per side
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from .entities import Actor, Ride, RideRequest
from .enums import RideStatus, UserRole
from .errors import (
    AlreadyAssignedError,
    AlreadyRatedError,
    ForbiddenError,
    InvalidStateTransition,
    RideValidationError,
)
from .matching import ensure_joinable
from .rating import validate_rating

ACCEPTABLE_STATUSES = (RideStatus.REQUESTED, RideStatus.SCHEDULED)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ── Creation ──────────────────────────────────────────────────────────


def validate_request(
    request: RideRequest, now: datetime, min_lead: timedelta
) -> None:
    if not request.pickup_address or not request.pickup_address.strip():
        raise RideValidationError("Pickup location is required")
    if not request.dropoff_address or not request.dropoff_address.strip():
        raise RideValidationError("Dropoff location is required")
    if request.seats < 1:
        raise RideValidationError("At least one seat is required")
    if request.ride_time is None:
        raise RideValidationError("Ride time is required")
    if as_utc(request.ride_time) < as_utc(now) + min_lead:
        minutes = int(min_lead.total_seconds() // 60)
        raise RideValidationError(
            f"Ride time must be at least {minutes} minutes in the future"
        )


def ensure_passenger(actor: Actor) -> None:
    if actor.role is not UserRole.PASSENGER:
        raise ForbiddenError("Only passengers can book rides")


# ── Driver transitions ────────────────────────────────────────────────


def accept(ride: Ride, actor: Actor) -> None:
    if actor.role is not UserRole.DRIVER:
        raise ForbiddenError("Only drivers can accept rides")
    if ride.status not in ACCEPTABLE_STATUSES:
        raise InvalidStateTransition("Ride is not available for acceptance")
    if ride.has_driver and ride.driver_id != actor.user_id:
        raise AlreadyAssignedError("Ride already accepted by another driver")

    ride.transition_to(RideStatus.ACCEPTED)
    ride.driver_id = actor.user_id


def start(ride: Ride, actor: Actor, now: datetime) -> None:
    if not ride.is_driver(actor.user_id):
        raise ForbiddenError("Only the assigned driver can start this ride")
    if ride.status != RideStatus.ACCEPTED:
        raise InvalidStateTransition("Ride must be in ACCEPTED state to start")

    ride.transition_to(RideStatus.IN_PROGRESS)
    ride.start_time = now


def complete(ride: Ride, actor: Actor, now: datetime) -> None:
    if not ride.is_driver(actor.user_id):
        raise ForbiddenError("Only the assigned driver can complete this ride")
    if ride.status != RideStatus.IN_PROGRESS:
        raise InvalidStateTransition(
            "Ride must be in IN_PROGRESS state to complete"
        )

    ride.transition_to(RideStatus.COMPLETED)
    ride.end_time = now


# ── Cancellation ──────────────────────────────────────────────────────


def ensure_can_cancel(ride: Ride, actor: Actor) -> None:
    if not (ride.is_passenger(actor.user_id) or ride.is_driver(actor.user_id)):
        raise ForbiddenError("You don't have permission to cancel this ride")
    if ride.is_terminal:
        raise InvalidStateTransition("This ride cannot be cancelled")


def cancel(ride: Ride, actor: Actor, reason: Optional[str]) -> None:
    ensure_can_cancel(ride, actor)
    ride.transition_to(RideStatus.CANCELLED)
    ride.cancellation_reason = reason


# ── Shared rides ──────────────────────────────────────────────────────


def join(ride: Ride, actor: Actor, discounted_price: Decimal) -> None:
    ensure_passenger(actor)
    ensure_joinable(ride)
    if actor.user_id == ride.passenger_id:
        raise ForbiddenError("You cannot join your own ride")

    ride.second_passenger_id = actor.user_id
    ride.price = discounted_price


# ── Ratings ───────────────────────────────────────────────────────────


def _ensure_ratable(ride: Ride, existing: Optional[float], who: str) -> None:
    if ride.status != RideStatus.COMPLETED:
        raise InvalidStateTransition("Only completed rides can be rated")
    if existing is not None:
        raise AlreadyRatedError(f"{who} has already been rated for this ride")


def rate_driver(
    ride: Ride, actor: Actor, value: float, review: Optional[str]
) -> None:
    if actor.user_id != ride.passenger_id:
        raise ForbiddenError("Only the passenger can rate the driver")
    _ensure_ratable(ride, ride.driver_rating, "Driver")
    validate_rating(value)

    ride.driver_rating = float(value)
    ride.driver_review = review


def rate_passenger(
    ride: Ride, actor: Actor, value: float, review: Optional[str]
) -> None:
    if not ride.is_driver(actor.user_id):
        raise ForbiddenError("Only the driver can rate the passenger")
    _ensure_ratable(ride, ride.passenger_rating, "Passenger")
    validate_rating(value)

    ride.passenger_rating = float(value)
    ride.passenger_review = review
