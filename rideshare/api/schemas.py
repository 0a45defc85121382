"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from rideshare.domain.entities import Location, Ride, RideRequest


# ── Requests ──────────────────────────────────────────────────────────


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_location(self) -> Location:
        return Location(self.lat, self.lng)


class RideCreateRequest(BaseModel):
    pickup_location: str
    dropoff_location: str
    ride_time: datetime
    seats: int = 1
    is_shared: bool = False
    notes: Optional[str] = Field(None, max_length=500)
    pickup_coordinates: Optional[Coordinates] = None
    dropoff_coordinates: Optional[Coordinates] = None
    resolve_coordinates: bool = Field(
        False,
        description="Look up missing coordinates from the location labels.",
    )

    def to_domain(
        self,
        pickup: Optional[Location] = None,
        dropoff: Optional[Location] = None,
    ) -> RideRequest:
        return RideRequest(
            pickup_address=self.pickup_location,
            dropoff_address=self.dropoff_location,
            ride_time=self.ride_time,
            seats=self.seats,
            pickup=pickup,
            dropoff=dropoff,
            is_shared=self.is_shared,
            notes=self.notes,
        )


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class RatingRequest(BaseModel):
    rating: float
    review: Optional[str] = Field(None, max_length=2000)


# ── Responses ─────────────────────────────────────────────────────────


class RideResponse(BaseModel):
    id: int
    passenger_id: int
    driver_id: Optional[int] = None
    second_passenger_id: Optional[int] = None
    pickup_location: str
    dropoff_location: str
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    status: str
    seats: int
    price: Decimal
    is_shared: bool
    ride_time: datetime
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

    @classmethod
    def from_entity(cls, ride: Ride) -> "RideResponse":
        return cls(
            id=ride.id,
            passenger_id=ride.passenger_id,
            driver_id=ride.driver_id,
            second_passenger_id=ride.second_passenger_id,
            pickup_location=ride.pickup_address,
            dropoff_location=ride.dropoff_address,
            pickup_lat=ride.pickup.latitude if ride.pickup else None,
            pickup_lng=ride.pickup.longitude if ride.pickup else None,
            dropoff_lat=ride.dropoff.latitude if ride.dropoff else None,
            dropoff_lng=ride.dropoff.longitude if ride.dropoff else None,
            status=ride.status.value,
            seats=ride.seats,
            price=ride.price,
            is_shared=ride.is_shared,
            ride_time=ride.ride_time,
            estimated_distance_km=ride.estimated_distance_km,
            estimated_duration_min=ride.estimated_duration_min,
            start_time=ride.start_time,
            end_time=ride.end_time,
            cancellation_reason=ride.cancellation_reason,
            driver_rating=ride.driver_rating,
            driver_review=ride.driver_review,
            passenger_rating=ride.passenger_rating,
            passenger_review=ride.passenger_review,
            payment_intent_id=ride.payment_intent_id,
            created_at=ride.created_at,
            updated_at=ride.updated_at,
        )


class PaymentResponse(BaseModel):
    payment_intent_id: str
    publishable_key: str


class LocationSuggestionResponse(BaseModel):
    address: str
    latitude: float
    longitude: float

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
