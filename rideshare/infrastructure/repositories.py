"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Rows are translated to and from the domain
dataclasses, so nothing above this layer sees ORM objects.

Rows about to be mutated are loaded with ``SELECT ... FOR UPDATE`` so two
transactions cannot both pass the same guard (accept / join races,
rating updates).
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import RideModel, UserModel
from rideshare.domain.entities import Location, Ride, User
from rideshare.domain.enums import RideStatus
from rideshare.domain.lifecycle import as_utc
from rideshare.domain.ports import RideStore, UserStore

_RIDE_COLUMNS = (
    "passenger_id",
    "driver_id",
    "second_passenger_id",
    "pickup_address",
    "dropoff_address",
    "seats",
    "price",
    "is_shared",
    "notes",
    "status",
    "estimated_distance_km",
    "estimated_duration_min",
    "cancellation_reason",
    "driver_rating",
    "driver_review",
    "passenger_rating",
    "passenger_review",
    "payment_intent_id",
)
_RIDE_TIMESTAMPS = (
    "ride_time",
    "start_time",
    "end_time",
    "created_at",
    "updated_at",
)

_USER_COLUMNS = (
    "name",
    "email",
    "role",
    "rating",
    "rating_count",
    "total_rides",
    "stripe_customer_id",
)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back.
    return as_utc(value) if value is not None else None


def _location(lat: Optional[float], lng: Optional[float]) -> Optional[Location]:
    if lat is None or lng is None:
        return None
    return Location(lat, lng)


def ride_from_model(model: RideModel) -> Ride:
    ride = Ride(
        id=model.id,
        pickup=_location(model.pickup_lat, model.pickup_lng),
        dropoff=_location(model.dropoff_lat, model.dropoff_lng),
        **{name: getattr(model, name) for name in _RIDE_COLUMNS},
        **{name: _aware(getattr(model, name)) for name in _RIDE_TIMESTAMPS},
    )
    ride.status = RideStatus(ride.status)
    return ride


def _copy_ride(ride: Ride, model: RideModel) -> None:
    for name in _RIDE_COLUMNS + _RIDE_TIMESTAMPS:
        setattr(model, name, getattr(ride, name))
    model.pickup_lat = ride.pickup.latitude if ride.pickup else None
    model.pickup_lng = ride.pickup.longitude if ride.pickup else None
    model.dropoff_lat = ride.dropoff.latitude if ride.dropoff else None
    model.dropoff_lng = ride.dropoff.longitude if ride.dropoff else None


def user_from_model(model: UserModel) -> User:
    return User(
        id=model.id,
        created_at=_aware(model.created_at),
        updated_at=_aware(model.updated_at),
        **{name: getattr(model, name) for name in _USER_COLUMNS},
    )


class RideRepository(RideStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _list(self, query) -> list[Ride]:
        result = await self.session.execute(query.order_by(RideModel.id))
        return [ride_from_model(m) for m in result.scalars().all()]

    async def get(self, ride_id: int) -> Optional[Ride]:
        model = await self.session.get(RideModel, ride_id)
        return ride_from_model(model) if model else None

    async def get_for_update(self, ride_id: int) -> Optional[Ride]:
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return ride_from_model(model) if model else None

    async def save(self, ride: Ride) -> Ride:
        model = None
        if ride.id is not None:
            model = await self.session.get(RideModel, ride.id)
        if model is None:
            model = RideModel(id=ride.id)
            self.session.add(model)
        _copy_ride(ride, model)
        await self.session.flush()
        ride.id = model.id
        return ride

    async def find_by_driver(self, driver_id: int) -> list[Ride]:
        return await self._list(
            select(RideModel).where(RideModel.driver_id == driver_id)
        )

    async def find_by_passenger(self, passenger_id: int) -> list[Ride]:
        return await self._list(
            select(RideModel).where(RideModel.passenger_id == passenger_id)
        )

    async def find_by_status(self, status: RideStatus) -> list[Ride]:
        return await self._list(
            select(RideModel).where(RideModel.status == status)
        )

    async def find_shared_by_status(
        self, statuses: Iterable[RideStatus]
    ) -> list[Ride]:
        return await self._list(
            select(RideModel).where(
                RideModel.is_shared.is_(True),
                RideModel.status.in_(list(statuses)),
            )
        )

    async def find_by_driver_and_status(
        self, driver_id: int, statuses: Iterable[RideStatus]
    ) -> list[Ride]:
        return await self._list(
            select(RideModel).where(
                RideModel.driver_id == driver_id,
                RideModel.status.in_(list(statuses)),
            )
        )

    async def find_by_passenger_and_status(
        self, passenger_id: int, statuses: Iterable[RideStatus]
    ) -> list[Ride]:
        return await self._list(
            select(RideModel).where(
                RideModel.passenger_id == passenger_id,
                RideModel.status.in_(list(statuses)),
            )
        )


class UserRepository(UserStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: int) -> Optional[User]:
        model = await self.session.get(UserModel, user_id)
        return user_from_model(model) if model else None

    async def get_for_update(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return user_from_model(model) if model else None

    async def save(self, user: User) -> User:
        model = None
        if user.id is not None:
            model = await self.session.get(UserModel, user.id)
        if model is None:
            model = UserModel(id=user.id)
            self.session.add(model)
        for name in _USER_COLUMNS:
            setattr(model, name, getattr(user, name))
        await self.session.flush()
        user.id = model.id
        user.created_at = _aware(model.created_at)
        user.updated_at = _aware(model.updated_at)
        return user
