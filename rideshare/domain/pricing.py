"""
Fare Pricing Engine
===================

Formula
-------
Price = round2((Base_Fare + Seats x Seat_Rate + Distance_Cost) x Time_Multiplier)

* **Distance_Cost** = haversine(pickup, dropoff) x Rate_Per_KM when both
  coordinates are known, otherwise a flat default.
* **Time_Multiplier** = 1.5 during peak hours (07-09, 17-19 inclusive),
  1.25 late at night (22-05 inclusive), else 1.0.  The hour is the
  wall-clock hour of the requested ride time.
* **Shared discount**: when a second passenger joins, the stored price is
  multiplied by 0.75 once.

All money is ``Decimal`` rounded half-up to two places.

Complexity: O(1) per price calculation.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .distance import distance_between
from .entities import Location

CENTS = Decimal("0.01")

PEAK_HOURS = ((7, 9), (17, 19))
PEAK_MULTIPLIER = Decimal("1.5")
LATE_NIGHT_MULTIPLIER = Decimal("1.25")
STANDARD_MULTIPLIER = Decimal("1.0")


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def trip_distance_km(
    pickup: Optional[Location], dropoff: Optional[Location]
) -> Optional[float]:
    """Great-circle trip length, or ``None`` unless both ends are known."""
    if pickup is None or dropoff is None:
        return None
    return distance_between(pickup, dropoff)


class PricingEngine:
    """High-level API used by the ride orchestrator."""

    def __init__(
        self,
        base_fare: Decimal = Decimal("5.00"),
        seat_rate: Decimal = Decimal("2.00"),
        rate_per_km: Decimal = Decimal("1.5"),
        default_distance_cost: Decimal = Decimal("10.00"),
        shared_discount: Decimal = Decimal("0.75"),
        average_speed_kmh: float = 40.0,
    ):
        self.base_fare = Decimal(base_fare)
        self.seat_rate = Decimal(seat_rate)
        self.rate_per_km = Decimal(rate_per_km)
        self.default_distance_cost = Decimal(default_distance_cost)
        self.shared_discount = Decimal(shared_discount)
        self.average_speed_kmh = average_speed_kmh

    @staticmethod
    def time_multiplier(ride_time: datetime) -> Decimal:
        hour = ride_time.hour
        if any(start <= hour <= end for start, end in PEAK_HOURS):
            return PEAK_MULTIPLIER
        if hour >= 22 or hour <= 5:
            return LATE_NIGHT_MULTIPLIER
        return STANDARD_MULTIPLIER

    def distance_cost(self, distance_km: Optional[float]) -> Decimal:
        if distance_km is None:
            return self.default_distance_cost
        return Decimal(repr(distance_km)) * self.rate_per_km

    def fare_for_distance(
        self, seats: int, ride_time: datetime, distance_km: Optional[float]
    ) -> Decimal:
        subtotal = (
            self.base_fare
            + self.seat_rate * seats
            + self.distance_cost(distance_km)
        )
        return round_money(subtotal * self.time_multiplier(ride_time))

    def calculate_price(
        self,
        seats: int,
        ride_time: datetime,
        pickup: Optional[Location] = None,
        dropoff: Optional[Location] = None,
    ) -> Decimal:
        return self.fare_for_distance(
            seats, ride_time, trip_distance_km(pickup, dropoff)
        )

    def shared_price(self, price: Decimal) -> Decimal:
        """Price after a second passenger joins a shared ride."""
        return round_money(price * self.shared_discount)

    def estimate_duration_min(self, distance_km: float) -> int:
        return math.floor(distance_km * 60 / self.average_speed_kmh)
