"""
Ride orchestrator.

``RideService`` is the single entry point that mutates rides.  Every
mutating operation follows the same shape:

1. take the per-ride lock,
2. load the ride for update,
3. run the lifecycle guards (which raise before touching anything),
4. apply side effects and save once.

Rating and ride-count updates additionally take the per-user lock while the
user's counters are read and modified.  Locks are always taken in
ride -> user order, and several user locks in ascending id order.  The
ride row is written before any user row; a failed user write restores
what was already written.  Nothing is retried here; callers resubmit.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from rideshare.domain import lifecycle, matching
from rideshare.domain.entities import Actor, Location, Ride, RideRequest, User
from rideshare.domain.enums import (
    DRIVER_ACTIVE_STATUSES,
    JOINABLE_STATUSES,
    PASSENGER_ACTIVE_STATUSES,
    RideStatus,
    UserRole,
)
from rideshare.domain.errors import ForbiddenError, NotFoundError, PriceChangedError
from rideshare.domain.ports import LockProvider, PaymentGateway, RideStore, UserStore
from rideshare.domain.pricing import PricingEngine, trip_distance_km
from rideshare.domain.rating import apply_rating
from rideshare.infrastructure.locks import LocalLockProvider

logger = logging.getLogger(__name__)

CancellationFeeHook = Callable[[Ride], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RideService:
    def __init__(
        self,
        rides: RideStore,
        users: UserStore,
        pricing: Optional[PricingEngine] = None,
        locks: Optional[LockProvider] = None,
        payments: Optional[PaymentGateway] = None,
        *,
        cancellation_fee_hook: Optional[CancellationFeeHook] = None,
        clock: Callable[[], datetime] = _utcnow,
        request_lead: timedelta = timedelta(minutes=5),
        schedule_lead: timedelta = timedelta(hours=1),
        shared_match_radius_km: float = matching.SHARED_MATCH_RADIUS_KM,
    ):
        self.rides = rides
        self.users = users
        self.pricing = pricing or PricingEngine()
        self.locks = locks or LocalLockProvider()
        self.payments = payments
        self.cancellation_fee_hook = cancellation_fee_hook
        self.clock = clock
        self.request_lead = request_lead
        self.schedule_lead = schedule_lead
        self.shared_match_radius_km = shared_match_radius_km

    # ── Helpers ───────────────────────────────────────────────────────

    async def _load_for_update(self, ride_id: int) -> Ride:
        ride = await self.rides.get_for_update(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride

    async def _save(self, ride: Ride) -> Ride:
        ride.updated_at = self.clock()
        return await self.rides.save(ride)

    async def _mutate(self, ride_id: int, apply: Callable[[Ride], None]) -> Ride:
        async with self.locks.ride(ride_id):
            ride = await self._load_for_update(ride_id)
            apply(ride)
            return await self._save(ride)

    # ── Creation ──────────────────────────────────────────────────────

    async def _create(
        self,
        actor: Actor,
        request: RideRequest,
        status: RideStatus,
        lead: timedelta,
    ) -> Ride:
        now = self.clock()
        lifecycle.ensure_passenger(actor)
        lifecycle.validate_request(request, now, lead)

        distance = trip_distance_km(request.pickup, request.dropoff)
        ride = Ride(
            passenger_id=actor.user_id,
            pickup_address=request.pickup_address.strip(),
            dropoff_address=request.dropoff_address.strip(),
            ride_time=request.ride_time,
            pickup=request.pickup,
            dropoff=request.dropoff,
            seats=request.seats,
            is_shared=request.is_shared,
            notes=request.notes,
            status=status,
            price=self.pricing.fare_for_distance(
                request.seats, request.ride_time, distance
            ),
            created_at=now,
        )
        if distance is not None:
            ride.estimated_distance_km = distance
            ride.estimated_duration_min = self.pricing.estimate_duration_min(distance)

        ride = await self._save(ride)
        logger.info(
            "Ride %s %s by passenger %s at %s",
            ride.id,
            status.value.lower(),
            actor.user_id,
            ride.price,
        )
        return ride

    async def request_ride(self, actor: Actor, request: RideRequest) -> Ride:
        return await self._create(
            actor, request, RideStatus.REQUESTED, self.request_lead
        )

    async def schedule_ride(self, actor: Actor, request: RideRequest) -> Ride:
        return await self._create(
            actor, request, RideStatus.SCHEDULED, self.schedule_lead
        )

    # ── Driver transitions ────────────────────────────────────────────

    async def accept_ride(self, ride_id: int, actor: Actor) -> Ride:
        ride = await self._mutate(ride_id, lambda r: lifecycle.accept(r, actor))
        logger.info("Ride %s accepted by driver %s", ride_id, actor.user_id)
        return ride

    async def start_ride(self, ride_id: int, actor: Actor) -> Ride:
        ride = await self._mutate(
            ride_id, lambda r: lifecycle.start(r, actor, self.clock())
        )
        logger.info("Ride %s started", ride_id)
        return ride

    async def complete_ride(self, ride_id: int, actor: Actor) -> Ride:
        async with self.locks.ride(ride_id):
            ride = await self._load_for_update(ride_id)
            snapshot = replace(ride)
            lifecycle.complete(ride, actor, self.clock())

            participants = {ride.driver_id, ride.passenger_id}
            if ride.has_second_passenger:
                participants.add(ride.second_passenger_id)

            async with AsyncExitStack() as stack:
                updates = []
                # Ascending id order so concurrent completions never deadlock.
                for user_id in sorted(participants):
                    await stack.enter_async_context(self.locks.user(user_id))
                    user = await self.users.get_for_update(user_id)
                    if user is None:
                        logger.warning("Ride participant %s has no profile", user_id)
                        continue
                    before = replace(user)
                    user.total_rides += 1
                    user.updated_at = self.clock()
                    updates.append((user, before))

                ride = await self._write(ride, snapshot, updates)
        logger.info("Ride %s completed", ride_id)
        return ride

    async def _write(
        self,
        ride: Ride,
        snapshot: Ride,
        updates: list[tuple[User, User]],
    ) -> Ride:
        """Save *ride*, then each updated user.

        The ride is written first so a failed ride save leaves every user
        untouched.  If a user write fails afterwards, the rows already
        written are put back to their loaded state before the error
        propagates.
        """
        ride = await self._save(ride)
        written: list[User] = []
        try:
            for user, before in updates:
                await self.users.save(user)
                written.append(before)
        except Exception:
            logger.warning("Rolling back ride %s after a failed user write", ride.id)
            for before in reversed(written):
                await self.users.save(before)
            await self._save(snapshot)
            raise
        return ride

    # ── Cancellation ──────────────────────────────────────────────────

    async def cancel_ride(
        self, ride_id: int, actor: Actor, reason: Optional[str] = None
    ) -> Ride:
        async with self.locks.ride(ride_id):
            ride = await self._load_for_update(ride_id)
            lifecycle.ensure_can_cancel(ride, actor)

            if ride.status == RideStatus.IN_PROGRESS and self.cancellation_fee_hook:
                await self.cancellation_fee_hook(ride)

            lifecycle.cancel(ride, actor, reason)
            ride = await self._save(ride)
        logger.info("Ride %s cancelled by user %s", ride_id, actor.user_id)
        return ride

    # ── Ratings ───────────────────────────────────────────────────────

    async def _rate(
        self,
        ride_id: int,
        rate: Callable[[Ride], None],
        rated_user: Callable[[Ride], int],
        value: float,
    ) -> Ride:
        async with self.locks.ride(ride_id):
            ride = await self._load_for_update(ride_id)
            snapshot = replace(ride)
            rate(ride)

            user_id = rated_user(ride)
            async with self.locks.user(user_id):
                user = await self.users.get_for_update(user_id)
                if user is None:
                    raise NotFoundError("User not found")
                before = replace(user)
                apply_rating(user, value)
                user.updated_at = self.clock()
                ride = await self._write(ride, snapshot, [(user, before)])

        logger.info(
            "User %s rated %s on ride %s (now %.2f over %d ratings)",
            user_id,
            value,
            ride_id,
            user.rating,
            user.rating_count,
        )
        return ride

    async def rate_driver(
        self,
        ride_id: int,
        actor: Actor,
        value: float,
        review: Optional[str] = None,
    ) -> Ride:
        return await self._rate(
            ride_id,
            lambda r: lifecycle.rate_driver(r, actor, value, review),
            lambda r: r.driver_id,
            value,
        )

    async def rate_passenger(
        self,
        ride_id: int,
        actor: Actor,
        value: float,
        review: Optional[str] = None,
    ) -> Ride:
        return await self._rate(
            ride_id,
            lambda r: lifecycle.rate_passenger(r, actor, value, review),
            lambda r: r.passenger_id,
            value,
        )

    # ── Shared rides ──────────────────────────────────────────────────

    async def join_shared_ride(self, ride_id: int, actor: Actor) -> Ride:
        lifecycle.ensure_passenger(actor)
        ride = await self._mutate(
            ride_id,
            lambda r: lifecycle.join(r, actor, self.pricing.shared_price(r.price)),
        )
        logger.info(
            "Passenger %s joined shared ride %s (price now %s)",
            actor.user_id,
            ride_id,
            ride.price,
        )
        return ride

    async def find_shared_rides(
        self, pickup: Optional[Location], dropoff: Optional[Location]
    ) -> list[Ride]:
        if pickup is None or dropoff is None:
            return []
        rides = await self.rides.find_shared_by_status(JOINABLE_STATUSES)
        return matching.shared_candidates(
            rides, pickup, dropoff, self.shared_match_radius_km
        )

    # ── Queries ───────────────────────────────────────────────────────

    async def get_ride(self, ride_id: int) -> Ride:
        ride = await self.rides.get(ride_id)
        if ride is None:
            raise NotFoundError("Ride not found")
        return ride

    async def find_nearby_rides(
        self, latitude: float, longitude: float, radius_km: float
    ) -> list[Ride]:
        rides = await self.rides.find_by_status(RideStatus.REQUESTED)
        return matching.nearby_available(rides, Location(latitude, longitude), radius_km)

    async def available_rides(self) -> list[Ride]:
        rides = await self.rides.find_by_status(RideStatus.REQUESTED)
        return [ride for ride in rides if not ride.has_driver]

    async def rides_for_user(self, actor: Actor) -> list[Ride]:
        if actor.role is UserRole.DRIVER:
            return await self.rides.find_by_driver(actor.user_id)
        if actor.role is UserRole.PASSENGER:
            return await self.rides.find_by_passenger(actor.user_id)
        raise ForbiddenError("Invalid user role")

    async def active_ride_for_driver(self, driver_id: int) -> Optional[Ride]:
        rides = await self.rides.find_by_driver_and_status(
            driver_id, DRIVER_ACTIVE_STATUSES
        )
        return rides[0] if rides else None

    async def active_ride_for_passenger(self, passenger_id: int) -> Optional[Ride]:
        rides = await self.rides.find_by_passenger_and_status(
            passenger_id, PASSENGER_ACTIVE_STATUSES
        )
        return rides[0] if rides else None

    async def active_ride_for(self, actor: Actor) -> Optional[Ride]:
        if actor.role is UserRole.DRIVER:
            return await self.active_ride_for_driver(actor.user_id)
        if actor.role is UserRole.PASSENGER:
            return await self.active_ride_for_passenger(actor.user_id)
        raise ForbiddenError("Invalid user role")

    async def is_ride_owned_by(self, ride_id: int, user_id: int) -> bool:
        ride = await self.get_ride(ride_id)
        return ride.is_passenger(user_id) or ride.is_driver(user_id)

    # ── Payments ──────────────────────────────────────────────────────

    async def create_payment(self, ride_id: int, actor: Actor) -> str:
        """Create a payment intent for the ride price; returns its reference.

        The provider call happens outside the ride lock; only the returned
        reference is written back under it, and only if the price it was
        created for is still the ride price.
        """
        if self.payments is None:
            raise RuntimeError("No payment gateway configured")

        ride = await self.get_ride(ride_id)
        if not ride.is_passenger(actor.user_id):
            raise ForbiddenError("Only a passenger of this ride can pay for it")
        payer = await self.users.get(actor.user_id)
        customer_id = payer.stripe_customer_id if payer else None

        intent_id = await self.payments.create_payment_intent(ride.price, customer_id)

        def _record(r: Ride) -> None:
            if r.price != ride.price:
                raise PriceChangedError(
                    "Ride price changed while the payment was being created"
                )
            r.payment_intent_id = intent_id

        await self._mutate(ride_id, _record)
        logger.info("Payment intent %s created for ride %s", intent_id, ride_id)
        return intent_id
