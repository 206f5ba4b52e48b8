import pytest

from pooling.engine import build_waypoints, match_flight, match_flights
from pooling.errors import InputError
from pooling.models import Booking, Route, RouteSource, StabilityTier, WaypointKind
from routing.cache import RouteCache
from routing.osrm_client import RateLimitedError
from routing.route_optimizer import RouteOptimizer

AIRPORT = (0.0, 0.0)


@pytest.fixture
def flight_bookings():
    """
    Three riders ~25km north of the airport, ~0.5km apart, plus one rider
    ~55km south who has nobody to share with.
    """
    return [
        Booking(id="r1", latitude=0.225, longitude=0.0, luggage_count=1, flight_identifier="FL1"),
        Booking(id="r2", latitude=0.230, longitude=0.0, luggage_count=2, flight_identifier="FL1"),
        Booking(id="r3", latitude=0.235, longitude=0.0, luggage_count=1, flight_identifier="FL1"),
        Booking(id="lonely", latitude=-0.5, longitude=0.0, luggage_count=0, flight_identifier="FL1"),
    ]


def test_three_riders_form_one_excellent_pool(flight_bookings):
    result = match_flight(flight_bookings, AIRPORT)

    assert result.clustering.stats.clusters_found == 1
    assert [p.booking_id for p in result.clustering.noise] == ["lonely"]

    pools = result.ranking.confirmable_pools
    assert len(pools) == 1

    pool = pools[0]
    assert sorted(pool.booking_ids) == ["r1", "r2", "r3"]
    assert pool.stability_tier == StabilityTier.EXCELLENT
    assert pool.quality_score >= 60
    assert pool.route.waypoints[0].kind == WaypointKind.AIRPORT
    assert sum(p.total_price for p in pool.pricing.passengers) == pool.pricing.grand_total


def test_riders_are_charged_less_than_solo(flight_bookings):
    result = match_flight(flight_bookings, AIRPORT)

    pool = result.ranking.confirmable_pools[0]
    assert all(s > 0 for s in pool.savings_percent.values())


def test_service_route_is_used_after_rate_limit(flight_bookings):
    class FlakyClient:
        def __init__(self):
            self.calls = 0

        def compute_trip(self, waypoints):
            self.calls += 1
            if self.calls == 1:
                raise RateLimitedError()
            km = 26.2
            return Route(distance_km=km, duration_minutes=km / 50 * 60, waypoints=list(waypoints))

    client = FlakyClient()
    optimizer = RouteOptimizer(client, cache=RouteCache(), sleep=lambda s: None)

    result = match_flight(flight_bookings, AIRPORT, optimizer=optimizer)

    pool = result.ranking.confirmable_pools[0]
    assert pool.route.source == RouteSource.SERVICE
    assert pool.total_route_km == 26.2
    assert client.calls == 2


def test_no_bookings_is_an_input_error():
    with pytest.raises(InputError):
        match_flight([], AIRPORT)


def test_duplicate_booking_ids_are_rejected():
    booking = Booking(id="dup", latitude=0.1, longitude=0.0)

    with pytest.raises(InputError):
        match_flight([booking, booking], AIRPORT)


def test_isolated_riders_produce_no_pools():
    bookings = [
        Booking(id="north", latitude=0.5, longitude=0.0),
        Booking(id="south", latitude=-0.5, longitude=0.0),
    ]

    result = match_flight(bookings, AIRPORT)

    assert result.candidates == []
    assert result.ranking.confirmable_pools == []
    assert result.clustering.stats.noise_points == 2


def test_build_waypoints_puts_airport_first(flight_bookings):
    waypoints = build_waypoints(flight_bookings, AIRPORT)

    assert waypoints[0].kind == WaypointKind.AIRPORT
    assert [w.booking_id for w in waypoints[1:]] == ["r1", "r2", "r3", "lonely"]


def test_match_flights_runs_each_flight(flight_bookings):
    other = [
        Booking(id="s1", latitude=-0.2, longitude=0.0, flight_identifier="FL2"),
        Booking(id="s2", latitude=-0.205, longitude=0.0, flight_identifier="FL2"),
        Booking(id="s3", latitude=-0.21, longitude=0.0, flight_identifier="FL2"),
    ]

    results = match_flights({"FL1": flight_bookings, "FL2": other, "FL3": []}, AIRPORT, max_workers=2)

    assert sorted(results) == ["FL1", "FL2"]
    assert len(results["FL2"].ranking.confirmable_pools) == 1
