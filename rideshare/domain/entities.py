"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (REQUESTED | SCHEDULED -> ACCEPTED -> IN_PROGRESS -> COMPLETED,
  any non-terminal -> CANCELLED).
- Optional ``driver_id`` / ``second_passenger_id`` model "not yet assigned";
  guards check presence through the ``has_*`` properties.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .enums import RIDE_TRANSITIONS, TERMINAL_STATUSES, RideStatus, UserRole
from .errors import InvalidStateTransition


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Actor:
    """The authenticated user performing an operation."""

    user_id: int
    role: UserRole


@dataclass(frozen=True)
class RideRequest:
    pickup_address: str
    dropoff_address: str
    ride_time: Optional[datetime]
    seats: int = 1
    pickup: Optional[Location] = None
    dropoff: Optional[Location] = None
    is_shared: bool = False
    notes: Optional[str] = None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    passenger_id: int
    pickup_address: str
    dropoff_address: str
    ride_time: datetime
    id: Optional[int] = None
    driver_id: Optional[int] = None
    second_passenger_id: Optional[int] = None
    pickup: Optional[Location] = None
    dropoff: Optional[Location] = None
    seats: int = 1
    price: Decimal = Decimal("0.00")
    is_shared: bool = False
    notes: Optional[str] = None
    status: RideStatus = RideStatus.REQUESTED
    estimated_distance_km: Optional[float] = None
    estimated_duration_min: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    driver_rating: Optional[float] = None
    driver_review: Optional[str] = None
    passenger_rating: Optional[float] = None
    passenger_review: Optional[str] = None
    payment_intent_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_driver(self) -> bool:
        return self.driver_id is not None

    @property
    def has_second_passenger(self) -> bool:
        return self.second_passenger_id is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_driver(self, user_id: int) -> bool:
        return self.has_driver and self.driver_id == user_id

    def is_passenger(self, user_id: int) -> bool:
        """True for the primary passenger or the second passenger."""
        return user_id == self.passenger_id or (
            self.has_second_passenger and self.second_passenger_id == user_id
        )

    def can_transition_to(self, new_status: RideStatus) -> bool:
        return new_status in RIDE_TRANSITIONS.get(self.status, set())

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        self.status = new_status


@dataclass
class User:
    """Reputation-relevant subset of a user profile."""

    role: UserRole
    id: Optional[int] = None
    name: str = ""
    email: str = ""
    rating: float = 5.0
    rating_count: int = 0
    total_rides: int = 0
    stripe_customer_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
