"""
Shared test fixtures.

Orchestrator tests run against in-memory stores that copy entities in and
out (like a real database would) and yield to the event loop between read
and return, so unsynchronised read-check-write sequences really interleave.

Repository and API tests use an in-memory SQLite database (via aiosqlite)
so they run without Docker / PostgreSQL / Redis.
"""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Iterable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from rideshare.domain.entities import Actor, Location, Ride, RideRequest, User
from rideshare.domain.enums import RideStatus, UserRole
from rideshare.domain.ports import RideStore, UserStore
from rideshare.infrastructure.database import Base
from rideshare.infrastructure.locks import LocalLockProvider
from rideshare.services.ride_service import RideService

# Monday, mid-day: standard time multiplier.
NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

PASSENGER = Actor(1, UserRole.PASSENGER)
OTHER_PASSENGER = Actor(2, UserRole.PASSENGER)
THIRD_PASSENGER = Actor(3, UserRole.PASSENGER)
DRIVER = Actor(10, UserRole.DRIVER)
OTHER_DRIVER = Actor(11, UserRole.DRIVER)

REEM_MALL = Location(24.5038, 54.4066)
YAS_MALL = Location(24.4913, 54.6068)


# ── In-memory stores ──────────────────────────────────────────────────


class InMemoryRideStore(RideStore):
    def __init__(self):
        self.rows: dict[int, Ride] = {}
        self._next_id = 1

    async def _read(self, ride_id: int) -> Optional[Ride]:
        row = self.rows.get(ride_id)
        await asyncio.sleep(0)
        return copy.deepcopy(row)

    async def get(self, ride_id: int) -> Optional[Ride]:
        return await self._read(ride_id)

    async def get_for_update(self, ride_id: int) -> Optional[Ride]:
        return await self._read(ride_id)

    async def save(self, ride: Ride) -> Ride:
        await asyncio.sleep(0)
        if ride.id is None:
            ride.id = self._next_id
            self._next_id += 1
        self.rows[ride.id] = copy.deepcopy(ride)
        return ride

    def _select(self, predicate) -> list[Ride]:
        return [copy.deepcopy(r) for _, r in sorted(self.rows.items()) if predicate(r)]

    async def find_by_driver(self, driver_id: int) -> list[Ride]:
        return self._select(lambda r: r.driver_id == driver_id)

    async def find_by_passenger(self, passenger_id: int) -> list[Ride]:
        return self._select(lambda r: r.passenger_id == passenger_id)

    async def find_by_status(self, status: RideStatus) -> list[Ride]:
        return self._select(lambda r: r.status == status)

    async def find_shared_by_status(self, statuses: Iterable[RideStatus]) -> list[Ride]:
        wanted = set(statuses)
        return self._select(lambda r: r.is_shared and r.status in wanted)

    async def find_by_driver_and_status(
        self, driver_id: int, statuses: Iterable[RideStatus]
    ) -> list[Ride]:
        wanted = set(statuses)
        return self._select(lambda r: r.driver_id == driver_id and r.status in wanted)

    async def find_by_passenger_and_status(
        self, passenger_id: int, statuses: Iterable[RideStatus]
    ) -> list[Ride]:
        wanted = set(statuses)
        return self._select(
            lambda r: r.passenger_id == passenger_id and r.status in wanted
        )


class InMemoryUserStore(UserStore):
    def __init__(self, users: Iterable[User] = ()):
        self.rows: dict[int, User] = {u.id: copy.deepcopy(u) for u in users}

    async def get(self, user_id: int) -> Optional[User]:
        row = self.rows.get(user_id)
        await asyncio.sleep(0)
        return copy.deepcopy(row)

    async def get_for_update(self, user_id: int) -> Optional[User]:
        return await self.get(user_id)

    async def save(self, user: User) -> User:
        await asyncio.sleep(0)
        self.rows[user.id] = copy.deepcopy(user)
        return user


def seed_users() -> list[User]:
    return [
        User(id=actor.user_id, role=actor.role, name=f"user-{actor.user_id}")
        for actor in (PASSENGER, OTHER_PASSENGER, THIRD_PASSENGER, DRIVER, OTHER_DRIVER)
    ]


def ride_request(**overrides) -> RideRequest:
    fields = dict(
        pickup_address="Reem Mall",
        dropoff_address="Yas Mall",
        ride_time=NOW + timedelta(minutes=30),
    )
    fields.update(overrides)
    return RideRequest(**fields)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def ride_store() -> InMemoryRideStore:
    return InMemoryRideStore()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore(seed_users())


@pytest.fixture
def service(ride_store, user_store) -> RideService:
    return RideService(
        ride_store,
        user_store,
        locks=LocalLockProvider(),
        clock=lambda: NOW,
    )


# ── SQLite ────────────────────────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    """Fresh in-memory schema per test; one shared connection."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
