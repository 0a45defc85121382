"""
Proximity Matching
==================

Two read-only queries over rides already fetched from storage:

1. **Nearby available rides** -- REQUESTED rides with a known pickup whose
   pickup lies within ``radius_km`` of the driver.
2. **Shared-ride candidates** -- shared rides that are REQUESTED or
   ACCEPTED, with both ends known, whose pickup *and* dropoff each lie
   within ``max_km`` (default 2 km) of the requester's pickup / dropoff.

Neither query ranks its results; callers may sort with
:func:`by_pickup_distance` if they need an order.

Complexity
----------
Both queries are a single linear scan: O(N) Haversine evaluations for N
candidate rides.  No spatial index is assumed; narrowing N (for example
with a geospatial index) is left to the storage layer.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .distance import distance_between
from .entities import Location, Ride
from .enums import JOINABLE_STATUSES, RideStatus
from .errors import InvalidStateTransition, RideFullError

SHARED_MATCH_RADIUS_KM = 2.0


def nearby_available(
    rides: Iterable[Ride], driver_location: Location, radius_km: float
) -> list[Ride]:
    """Filter *rides* down to REQUESTED ones picked up within *radius_km*."""
    return [
        ride
        for ride in rides
        if ride.status == RideStatus.REQUESTED
        and ride.pickup is not None
        and distance_between(driver_location, ride.pickup) <= radius_km
    ]


def shared_candidates(
    rides: Iterable[Ride],
    pickup: Optional[Location],
    dropoff: Optional[Location],
    max_km: float = SHARED_MATCH_RADIUS_KM,
) -> list[Ride]:
    """
    Shared rides whose route is compatible with ``pickup -> dropoff``.

    Without both requester coordinates there is nothing to compare against,
    so the result is empty (no partial matching on one end).
    """
    if pickup is None or dropoff is None:
        return []

    return [
        ride
        for ride in rides
        if ride.is_shared
        and ride.status in JOINABLE_STATUSES
        and ride.pickup is not None
        and ride.dropoff is not None
        and distance_between(pickup, ride.pickup) <= max_km
        and distance_between(dropoff, ride.dropoff) <= max_km
    ]


def ensure_joinable(ride: Ride) -> None:
    """Raise unless a second passenger may join *ride* right now."""
    if not ride.is_shared:
        raise InvalidStateTransition("This ride is not available for sharing")
    if ride.status not in JOINABLE_STATUSES:
        raise InvalidStateTransition(
            "This shared ride cannot be joined at this time"
        )
    if ride.has_second_passenger:
        raise RideFullError("This shared ride is already full")


def by_pickup_distance(rides: Iterable[Ride], origin: Location) -> list[Ride]:
    """Sort rides with a known pickup by distance from *origin*."""
    located = [ride for ride in rides if ride.pickup is not None]
    return sorted(located, key=lambda ride: distance_between(origin, ride.pickup))
