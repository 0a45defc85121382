"""Unit tests for the fare pricing engine."""

from datetime import datetime
from decimal import Decimal

import pytest

from rideshare.domain.distance import distance_between
from rideshare.domain.entities import Location
from rideshare.domain.pricing import PricingEngine, round_money, trip_distance_km


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute)


class TestTimeMultiplier:
    @pytest.mark.parametrize("hour", [7, 8, 9, 17, 18, 19])
    def test_peak_hours(self, hour):
        assert PricingEngine.time_multiplier(_at(hour, 59)) == Decimal("1.5")

    @pytest.mark.parametrize("hour", [22, 23, 0, 3, 5])
    def test_late_night(self, hour):
        assert PricingEngine.time_multiplier(_at(hour)) == Decimal("1.25")

    @pytest.mark.parametrize("hour", [6, 10, 12, 16, 20, 21])
    def test_standard(self, hour):
        assert PricingEngine.time_multiplier(_at(hour)) == Decimal("1.0")


class TestPricingEngine:
    def setup_method(self):
        self.engine = PricingEngine()

    def test_two_seats_ten_km(self):
        # (5 + 2*2 + 10*1.5) = 24.00 before the time multiplier
        assert self.engine.fare_for_distance(2, _at(12), 10.0) == Decimal("24.00")
        assert self.engine.fare_for_distance(2, _at(8), 10.0) == Decimal("36.00")
        assert self.engine.fare_for_distance(2, _at(23), 10.0) == Decimal("30.00")

    def test_unknown_distance_uses_flat_cost(self):
        # 5 + 2 + 10
        assert self.engine.calculate_price(1, _at(12)) == Decimal("17.00")

    def test_one_missing_coordinate_uses_flat_cost(self):
        price = self.engine.calculate_price(1, _at(12), Location(24.5, 54.4), None)
        assert price == Decimal("17.00")

    def test_priced_from_coordinates(self):
        pickup, dropoff = Location(24.4991, 54.4017), Location(24.4913, 54.6068)
        distance = distance_between(pickup, dropoff)
        expected = round_money(
            Decimal("7.00") + Decimal(repr(distance)) * Decimal("1.5")
        )
        assert self.engine.calculate_price(1, _at(12), pickup, dropoff) == expected

    def test_result_has_two_decimal_places(self):
        price = self.engine.fare_for_distance(1, _at(12), 3.3333)
        assert price == Decimal("12.00")
        assert price.as_tuple().exponent == -2

    def test_shared_price_rounds_half_up(self):
        assert self.engine.shared_price(Decimal("25.50")) == Decimal("19.13")
        assert self.engine.shared_price(Decimal("24.00")) == Decimal("18.00")

    def test_duration_estimate_floors(self):
        assert self.engine.estimate_duration_min(10.0) == 15
        assert self.engine.estimate_duration_min(10.9) == 16

    def test_configurable_rates(self):
        engine = PricingEngine(base_fare=Decimal("3"), seat_rate=Decimal("1"))
        assert engine.fare_for_distance(1, _at(12), None) == Decimal("14.00")


def test_trip_distance_needs_both_ends():
    assert trip_distance_km(None, Location(1, 1)) is None
    assert trip_distance_km(Location(0, 0), Location(0, 0)) == 0.0
