"""Unit tests for ride state transitions and lifecycle guards."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from rideshare.domain import lifecycle
from rideshare.domain.entities import Actor, Ride, RideRequest
from rideshare.domain.enums import RideStatus, UserRole
from rideshare.domain.errors import (
    AlreadyAssignedError,
    AlreadyRatedError,
    ForbiddenError,
    InvalidStateTransition,
    RatingOutOfRangeError,
    RideFullError,
    RideValidationError,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
PASSENGER = Actor(1, UserRole.PASSENGER)
DRIVER = Actor(10, UserRole.DRIVER)


def _ride(**fields) -> Ride:
    defaults = dict(
        id=1,
        passenger_id=PASSENGER.user_id,
        pickup_address="Reem Mall",
        dropoff_address="Yas Mall",
        ride_time=NOW + timedelta(minutes=30),
        price=Decimal("24.00"),
    )
    defaults.update(fields)
    return Ride(**defaults)


class TestRideStateMachine:
    def test_initial_status_is_requested(self):
        assert _ride().status == RideStatus.REQUESTED

    # ── Valid transitions ─────────────────────────────────────────

    @pytest.mark.parametrize(
        "current, target",
        [
            (RideStatus.REQUESTED, RideStatus.ACCEPTED),
            (RideStatus.SCHEDULED, RideStatus.ACCEPTED),
            (RideStatus.ACCEPTED, RideStatus.IN_PROGRESS),
            (RideStatus.IN_PROGRESS, RideStatus.COMPLETED),
            (RideStatus.REQUESTED, RideStatus.CANCELLED),
            (RideStatus.IN_PROGRESS, RideStatus.CANCELLED),
        ],
    )
    def test_valid_transition(self, current, target):
        ride = _ride(status=current)
        ride.transition_to(target)
        assert ride.status == target

    # ── Invalid transitions ───────────────────────────────────────

    def test_requested_cannot_skip_to_in_progress(self):
        ride = _ride()
        with pytest.raises(InvalidStateTransition, match="REQUESTED to IN_PROGRESS"):
            ride.transition_to(RideStatus.IN_PROGRESS)
        assert ride.status == RideStatus.REQUESTED

    @pytest.mark.parametrize("terminal", [RideStatus.COMPLETED, RideStatus.CANCELLED])
    def test_terminal_states_are_final(self, terminal):
        ride = _ride(status=terminal)
        assert ride.is_terminal
        for target in RideStatus:
            assert not ride.can_transition_to(target)

    def test_second_passenger_counts_as_passenger(self):
        ride = _ride(second_passenger_id=2)
        assert ride.is_passenger(1)
        assert ride.is_passenger(2)
        assert not ride.is_passenger(3)

    def test_no_driver_is_nobody(self):
        assert not _ride().is_driver(10)


class TestValidateRequest:
    def _request(self, **fields):
        defaults = dict(
            pickup_address="Reem Mall",
            dropoff_address="Yas Mall",
            ride_time=NOW + timedelta(minutes=5),
        )
        defaults.update(fields)
        return RideRequest(**defaults)

    def test_lead_time_boundary_is_inclusive(self):
        lifecycle.validate_request(self._request(), NOW, timedelta(minutes=5))

    def test_too_soon(self):
        request = self._request(ride_time=NOW + timedelta(minutes=4, seconds=59))
        with pytest.raises(RideValidationError, match="5 minutes"):
            lifecycle.validate_request(request, NOW, timedelta(minutes=5))

    def test_naive_time_is_treated_as_utc(self):
        naive = (NOW + timedelta(minutes=10)).replace(tzinfo=None)
        lifecycle.validate_request(
            self._request(ride_time=naive), NOW, timedelta(minutes=5)
        )

    @pytest.mark.parametrize(
        "fields",
        [
            {"pickup_address": "  "},
            {"dropoff_address": ""},
            {"seats": 0},
            {"ride_time": None},
        ],
    )
    def test_invalid_fields(self, fields):
        with pytest.raises(RideValidationError):
            lifecycle.validate_request(self._request(**fields), NOW, timedelta(0))


class TestAccept:
    def test_binds_driver(self):
        ride = _ride()
        lifecycle.accept(ride, DRIVER)
        assert ride.status == RideStatus.ACCEPTED
        assert ride.driver_id == DRIVER.user_id

    def test_scheduled_ride_can_be_accepted(self):
        ride = _ride(status=RideStatus.SCHEDULED)
        lifecycle.accept(ride, DRIVER)
        assert ride.status == RideStatus.ACCEPTED

    def test_passenger_cannot_accept(self):
        with pytest.raises(ForbiddenError):
            lifecycle.accept(_ride(), PASSENGER)

    def test_already_accepted(self):
        ride = _ride(status=RideStatus.ACCEPTED, driver_id=11)
        with pytest.raises(InvalidStateTransition):
            lifecycle.accept(ride, DRIVER)
        assert ride.driver_id == 11

    def test_bound_to_another_driver(self):
        ride = _ride(driver_id=11)
        with pytest.raises(AlreadyAssignedError):
            lifecycle.accept(ride, DRIVER)


class TestStartAndComplete:
    def test_full_trip(self):
        ride = _ride()
        lifecycle.accept(ride, DRIVER)
        lifecycle.start(ride, DRIVER, NOW)
        assert ride.start_time == NOW
        later = NOW + timedelta(minutes=25)
        lifecycle.complete(ride, DRIVER, later)
        assert ride.status == RideStatus.COMPLETED
        assert ride.end_time == later

    def test_only_assigned_driver_starts(self):
        ride = _ride(status=RideStatus.ACCEPTED, driver_id=11)
        with pytest.raises(ForbiddenError):
            lifecycle.start(ride, DRIVER, NOW)
        assert ride.start_time is None

    def test_cannot_complete_before_start(self):
        ride = _ride(status=RideStatus.ACCEPTED, driver_id=DRIVER.user_id)
        with pytest.raises(InvalidStateTransition):
            lifecycle.complete(ride, DRIVER, NOW)
        assert ride.end_time is None


class TestCancel:
    def test_passenger_cancels_with_reason(self):
        ride = _ride()
        lifecycle.cancel(ride, PASSENGER, "plans changed")
        assert ride.status == RideStatus.CANCELLED
        assert ride.cancellation_reason == "plans changed"

    def test_stranger_cannot_cancel(self):
        with pytest.raises(ForbiddenError):
            lifecycle.cancel(_ride(), Actor(99, UserRole.PASSENGER), None)

    @pytest.mark.parametrize("terminal", [RideStatus.COMPLETED, RideStatus.CANCELLED])
    def test_terminal_ride(self, terminal):
        ride = _ride(status=terminal)
        with pytest.raises(InvalidStateTransition, match="cannot be cancelled"):
            lifecycle.cancel(ride, PASSENGER, None)


class TestJoin:
    def test_second_passenger_gets_discounted_price(self):
        ride = _ride(is_shared=True)
        lifecycle.join(ride, Actor(2, UserRole.PASSENGER), Decimal("18.00"))
        assert ride.second_passenger_id == 2
        assert ride.price == Decimal("18.00")

    def test_cannot_join_own_ride(self):
        with pytest.raises(ForbiddenError):
            lifecycle.join(_ride(is_shared=True), PASSENGER, Decimal("18.00"))

    def test_full_ride_keeps_price(self):
        ride = _ride(is_shared=True, second_passenger_id=2)
        with pytest.raises(RideFullError):
            lifecycle.join(ride, Actor(3, UserRole.PASSENGER), Decimal("18.00"))
        assert ride.price == Decimal("24.00")


class TestRate:
    def _completed(self, **fields):
        return _ride(status=RideStatus.COMPLETED, driver_id=DRIVER.user_id, **fields)

    def test_passenger_rates_driver(self):
        ride = self._completed()
        lifecycle.rate_driver(ride, PASSENGER, 4, "smooth")
        assert ride.driver_rating == 4.0
        assert ride.driver_review == "smooth"

    def test_driver_rates_passenger(self):
        ride = self._completed()
        lifecycle.rate_passenger(ride, DRIVER, 5, None)
        assert ride.passenger_rating == 5.0

    def test_second_rating_rejected(self):
        ride = self._completed(driver_rating=4.0)
        with pytest.raises(AlreadyRatedError):
            lifecycle.rate_driver(ride, PASSENGER, 2, None)
        assert ride.driver_rating == 4.0

    def test_must_be_completed(self):
        ride = _ride(status=RideStatus.IN_PROGRESS, driver_id=DRIVER.user_id)
        with pytest.raises(InvalidStateTransition):
            lifecycle.rate_driver(ride, PASSENGER, 4, None)

    def test_out_of_range(self):
        with pytest.raises(RatingOutOfRangeError):
            lifecycle.rate_passenger(self._completed(), DRIVER, 5.5, None)

    def test_second_passenger_cannot_rate_driver(self):
        ride = self._completed(second_passenger_id=2)
        with pytest.raises(ForbiddenError):
            lifecycle.rate_driver(ride, Actor(2, UserRole.PASSENGER), 4, None)
