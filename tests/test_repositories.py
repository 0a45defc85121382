"""Repository round trips against SQLite."""

from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from rideshare.domain.entities import Ride, User
from rideshare.domain.enums import (
    DRIVER_ACTIVE_STATUSES,
    JOINABLE_STATUSES,
    RideStatus,
    UserRole,
)
from rideshare.infrastructure.locks import LocalLockProvider
from rideshare.infrastructure.repositories import RideRepository, UserRepository
from rideshare.services.ride_service import RideService
from tests.conftest import (
    DRIVER,
    NOW,
    PASSENGER,
    REEM_MALL,
    YAS_MALL,
    ride_request,
    seed_users,
)


def _ride(**fields) -> Ride:
    defaults = dict(
        passenger_id=PASSENGER.user_id,
        pickup_address="Reem Mall",
        dropoff_address="Yas Mall",
        ride_time=NOW + timedelta(minutes=30),
        price=Decimal("24.00"),
        created_at=NOW,
    )
    defaults.update(fields)
    return Ride(**defaults)


@pytest_asyncio.fixture
async def users(db_session):
    repo = UserRepository(db_session)
    for user in seed_users():
        user.email = f"{user.name}@example.com"
        await repo.save(user)
    return repo


class TestRideRepository:
    @pytest.mark.asyncio
    async def test_insert_and_reload(self, db_session, users):
        repo = RideRepository(db_session)
        saved = await repo.save(_ride(pickup=REEM_MALL, dropoff=YAS_MALL, notes="2 bags"))
        assert saved.id is not None

        db_session.expunge_all()
        loaded = await repo.get(saved.id)
        assert loaded.pickup == REEM_MALL
        assert loaded.dropoff == YAS_MALL
        assert loaded.price == Decimal("24.00")
        assert loaded.status == RideStatus.REQUESTED
        assert loaded.ride_time == NOW + timedelta(minutes=30)
        assert loaded.notes == "2 bags"

    @pytest.mark.asyncio
    async def test_missing_coordinates_stay_none(self, db_session, users):
        repo = RideRepository(db_session)
        saved = await repo.save(_ride())
        loaded = await repo.get_for_update(saved.id)
        assert loaded.pickup is None
        assert loaded.dropoff is None

    @pytest.mark.asyncio
    async def test_update_in_place(self, db_session, users):
        repo = RideRepository(db_session)
        ride = await repo.save(_ride())
        ride.driver_id = DRIVER.user_id
        ride.status = RideStatus.ACCEPTED
        await repo.save(ride)

        loaded = await repo.get_for_update(ride.id)
        assert loaded.driver_id == DRIVER.user_id
        assert loaded.status == RideStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_get_unknown(self, db_session):
        repo = RideRepository(db_session)
        assert await repo.get(999) is None
        assert await repo.get_for_update(999) is None

    @pytest.mark.asyncio
    async def test_finders(self, db_session, users):
        repo = RideRepository(db_session)
        open_shared = await repo.save(_ride(is_shared=True))
        accepted = await repo.save(
            _ride(status=RideStatus.ACCEPTED, driver_id=DRIVER.user_id)
        )
        done_shared = await repo.save(
            _ride(is_shared=True, status=RideStatus.COMPLETED, driver_id=DRIVER.user_id)
        )

        assert [r.id for r in await repo.find_by_passenger(PASSENGER.user_id)] == [
            open_shared.id,
            accepted.id,
            done_shared.id,
        ]
        assert [r.id for r in await repo.find_by_driver(DRIVER.user_id)] == [
            accepted.id,
            done_shared.id,
        ]
        assert [r.id for r in await repo.find_by_status(RideStatus.REQUESTED)] == [
            open_shared.id
        ]
        assert [r.id for r in await repo.find_shared_by_status(JOINABLE_STATUSES)] == [
            open_shared.id
        ]
        active = await repo.find_by_driver_and_status(
            DRIVER.user_id, DRIVER_ACTIVE_STATUSES
        )
        assert [r.id for r in active] == [accepted.id]
        completed = await repo.find_by_passenger_and_status(
            PASSENGER.user_id, [RideStatus.COMPLETED]
        )
        assert [r.id for r in completed] == [done_shared.id]


class TestUserRepository:
    @pytest.mark.asyncio
    async def test_round_trip(self, db_session, users):
        user = await users.get_for_update(DRIVER.user_id)
        assert user.role == UserRole.DRIVER
        assert user.rating == 5.0
        assert user.rating_count == 0
        assert user.created_at is not None

        user.rating, user.rating_count = 4.5, 2
        await users.save(user)
        db_session.expunge_all()

        reloaded = await users.get(DRIVER.user_id)
        assert reloaded.rating == 4.5
        assert reloaded.rating_count == 2

    @pytest.mark.asyncio
    async def test_new_user_gets_id(self, db_session):
        repo = UserRepository(db_session)
        user = await repo.save(
            User(role=UserRole.PASSENGER, name="Mira", email="mira@example.com")
        )
        assert user.id is not None


class TestServiceOverSql:
    @pytest.mark.asyncio
    async def test_full_trip_with_ratings(self, db_session, users):
        service = RideService(
            RideRepository(db_session),
            users,
            locks=LocalLockProvider(),
            clock=lambda: NOW,
        )
        ride = await service.request_ride(PASSENGER, ride_request(is_shared=False))
        await service.accept_ride(ride.id, DRIVER)
        await service.start_ride(ride.id, DRIVER)
        await service.complete_ride(ride.id, DRIVER)
        await service.rate_driver(ride.id, PASSENGER, 4)
        await db_session.commit()

        stored = await service.get_ride(ride.id)
        assert stored.status == RideStatus.COMPLETED
        assert stored.driver_rating == 4.0
        driver = await users.get(DRIVER.user_id)
        assert driver.rating == 4.0
        assert driver.total_rides == 1
