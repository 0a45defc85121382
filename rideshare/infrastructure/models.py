"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``  -- drivers and passengers with their running reputation
* ``rides``  -- ride requests and their lifecycle state

Coordinates are plain nullable floats: a ride may be priced and matched
without them.  Money is ``Numeric(10, 2)``.

Indexes
-------
* **B-Tree** on ``status``, ``passenger_id``, ``driver_id`` and
  ``is_shared`` for the look-ups used by matching and the ride listings.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from .database import Base
from rideshare.domain.enums import RideStatus, UserRole


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(Enum(UserRole), nullable=False)
    rating = Column(Float, default=5.0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    total_rides = Column(Integer, default=0, nullable=False)
    stripe_customer_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    second_passenger_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    pickup_address = Column(String(255), nullable=False)
    dropoff_address = Column(String(255), nullable=False)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)

    status = Column(Enum(RideStatus), default=RideStatus.REQUESTED, nullable=False)
    seats = Column(Integer, default=1, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    is_shared = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    estimated_distance_km = Column(Float, nullable=True)
    estimated_duration_min = Column(Integer, nullable=True)

    ride_time = Column(DateTime(timezone=True), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    driver_rating = Column(Float, nullable=True)
    driver_review = Column(Text, nullable=True)
    passenger_rating = Column(Float, nullable=True)
    passenger_review = Column(Text, nullable=True)

    payment_intent_id = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_passenger", "passenger_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_shared", "is_shared", "status"),
    )
