import pytest
import requests

from pooling.errors import InputError
from pooling.geo import haversine_km
from pooling.models import Route, RouteSource, Waypoint, WaypointKind
from routing import osrm_client
from routing.cache import RouteCache, route_key
from routing.osrm_client import OSRMClient, RateLimitedError, RoutingServiceError, parse_trip_response
from routing.policy import RetryPolicy
from routing.route_optimizer import RouteOptimizer, greedy_nearest_neighbor


def airport():
    return Waypoint(id="airport", latitude=0.0, longitude=0.0, kind=WaypointKind.AIRPORT)


def dropoff(bid, lat, lon=0.0):
    return Waypoint(id=f"dropoff:{bid}", latitude=lat, longitude=lon, kind=WaypointKind.DROPOFF, booking_id=bid)


@pytest.fixture
def waypoints():
    return [airport(), dropoff("c", 0.3), dropoff("a", 0.1), dropoff("b", 0.2)]


class FakeTripClient:
    """
    Fails `failures` times with errors from error_factory, then returns a
    service route that keeps the input order.
    """
    def __init__(self, failures=0, error_factory=RateLimitedError):
        self.failures = failures
        self.error_factory = error_factory
        self.calls = 0

    def compute_trip(self, waypoints):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return Route(distance_km=42.0, duration_minutes=55.0, waypoints=list(waypoints), source=RouteSource.SERVICE)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


def test_service_route_is_used_when_available(waypoints):
    client = FakeTripClient()
    optimizer = RouteOptimizer(client, sleep=RecordingSleep())

    route = optimizer.optimize_route(waypoints)

    assert route.source == RouteSource.SERVICE
    assert route.distance_km == 42.0
    assert client.calls == 1


def test_rate_limit_is_retried_with_exponential_backoff(waypoints):
    client = FakeTripClient(failures=2)
    sleep = RecordingSleep()
    optimizer = RouteOptimizer(client, sleep=sleep)

    route = optimizer.optimize_route(waypoints)

    assert route.source == RouteSource.SERVICE
    assert client.calls == 3
    assert sleep.delays == [1.0, 2.0]


def test_exhausted_retries_fall_back_to_nearest_neighbor(waypoints):
    client = FakeTripClient(failures=100)
    sleep = RecordingSleep()
    optimizer = RouteOptimizer(client, sleep=sleep)

    route = optimizer.optimize_route(waypoints)

    assert route.source == RouteSource.FALLBACK
    assert client.calls == 4
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert [w.booking_id for w in route.waypoints[1:]] == ["a", "b", "c"]


def test_permanent_service_error_skips_retries(waypoints):
    client = FakeTripClient(failures=100, error_factory=lambda: RoutingServiceError("NoTrips"))
    sleep = RecordingSleep()
    optimizer = RouteOptimizer(client, sleep=sleep)

    route = optimizer.optimize_route(waypoints)

    assert route.source == RouteSource.FALLBACK
    assert client.calls == 1
    assert sleep.delays == []


def test_unexpected_client_failure_still_falls_back(waypoints):
    client = FakeTripClient(failures=1, error_factory=lambda: RuntimeError("boom"))
    optimizer = RouteOptimizer(client, sleep=RecordingSleep())

    route = optimizer.optimize_route(waypoints)

    assert route.source == RouteSource.FALLBACK


def test_service_route_that_moves_the_airport_is_rejected(waypoints):
    class ShuffledClient:
        def compute_trip(self, wps):
            return Route(distance_km=1.0, duration_minutes=1.0, waypoints=list(reversed(wps)))

    optimizer = RouteOptimizer(ShuffledClient(), sleep=RecordingSleep())

    route = optimizer.optimize_route(waypoints)

    assert route.source == RouteSource.FALLBACK
    assert route.waypoints[0].kind == WaypointKind.AIRPORT


def test_custom_retry_policy(waypoints):
    client = FakeTripClient(failures=100)
    sleep = RecordingSleep()
    optimizer = RouteOptimizer(client, retry_policy=RetryPolicy(max_retries=1, base_delay_ms=250), sleep=sleep)

    optimizer.optimize_route(waypoints)

    assert client.calls == 2
    assert sleep.delays == [0.25]


def test_no_client_means_fallback_only(waypoints):
    route = RouteOptimizer().optimize_route(waypoints)

    assert route.source == RouteSource.FALLBACK


def test_greedy_nearest_neighbor_distance_and_duration(waypoints):
    route = greedy_nearest_neighbor(waypoints)

    expected_km = haversine_km((0.0, 0.0), (0.3, 0.0))
    assert route.waypoints[0].id == "airport"
    assert [w.booking_id for w in route.waypoints[1:]] == ["a", "b", "c"]
    assert route.distance_km == pytest.approx(expected_km)
    assert route.duration_minutes == pytest.approx(expected_km / 50 * 60)


def test_greedy_ties_keep_input_order():
    wps = [airport(), dropoff("south", -0.1), dropoff("north", 0.1)]

    route = greedy_nearest_neighbor(wps)

    assert [w.booking_id for w in route.waypoints[1:]] == ["south", "north"]


def test_invalid_waypoints_raise_input_error():
    optimizer = RouteOptimizer()

    with pytest.raises(InputError):
        optimizer.optimize_route([airport()])

    with pytest.raises(InputError):
        optimizer.optimize_route([dropoff("a", 0.1), airport()])


# -------------------------
# Cache
# -------------------------

class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cache_short_circuits_repeated_requests(waypoints):
    client = FakeTripClient()
    optimizer = RouteOptimizer(client, cache=RouteCache(), sleep=RecordingSleep())

    first = optimizer.optimize_route(waypoints)
    second = optimizer.optimize_route(waypoints)

    assert client.calls == 1
    assert first.source == RouteSource.SERVICE
    assert second.source == RouteSource.CACHE
    assert second.distance_km == first.distance_km


def test_cache_key_is_order_sensitive(waypoints):
    client = FakeTripClient()
    optimizer = RouteOptimizer(client, cache=RouteCache(), sleep=RecordingSleep())

    optimizer.optimize_route(waypoints)
    optimizer.optimize_route([waypoints[0]] + list(reversed(waypoints[1:])))

    assert client.calls == 2


def test_fallback_routes_are_not_cached(waypoints):
    cache = RouteCache()
    optimizer = RouteOptimizer(FakeTripClient(failures=100), cache=cache, sleep=RecordingSleep())

    optimizer.optimize_route(waypoints)

    assert len(cache) == 0


def test_cache_entries_expire_after_ttl(waypoints):
    clock = FakeClock()
    cache = RouteCache(ttl_seconds=3600, clock=clock)
    route = Route(distance_km=1.0, duration_minutes=2.0, waypoints=waypoints)
    key = route_key(waypoints)

    cache.set(key, route)
    clock.now += 3599
    assert cache.get(key) is route

    clock.now += 1
    assert cache.get(key) is None
    assert len(cache) == 0


def test_cache_expire_purge_and_clear(waypoints):
    clock = FakeClock()
    cache = RouteCache(ttl_seconds=10, clock=clock)
    route = Route(distance_km=1.0, duration_minutes=2.0, waypoints=waypoints)

    cache.set(("k1",), route)
    cache.set(("k2",), route)
    assert cache.expire(("k1",)) is True
    assert cache.expire(("k1",)) is False

    clock.now += 10
    cache.set(("k3",), route)
    assert cache.purge_expired() == 1
    assert len(cache) == 1

    cache.clear()
    assert len(cache) == 0


# -------------------------
# OSRM client
# -------------------------

def trip_body(waypoint_indices):
    return {
        "code": "Ok",
        "trips": [{
            "distance": 12500.0,
            "duration": 900.0,
            "geometry": "abc",
            "legs": [{"duration": 300.0, "distance": 4000.0} for _ in waypoint_indices[1:]],
        }],
        "waypoints": [{"waypoint_index": i, "trips_index": 0} for i in waypoint_indices],
    }


def test_parse_trip_response_reorders_waypoints(waypoints):
    # input order: airport, c, a, b ; trip order: airport, a, b, c
    route = parse_trip_response(trip_body([0, 3, 1, 2]), waypoints)

    assert [w.id for w in route.waypoints] == ["airport", "dropoff:a", "dropoff:b", "dropoff:c"]
    assert route.distance_km == pytest.approx(12.5)
    assert route.duration_minutes == pytest.approx(15.0)
    assert route.leg_durations_minutes == [5.0, 5.0, 5.0]
    assert route.geometry == "abc"


def test_parse_trip_response_rejects_bad_indices(waypoints):
    with pytest.raises(RoutingServiceError):
        parse_trip_response(trip_body([0, 1, 1, 2]), waypoints)


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def test_osrm_client_calls_trip_service(monkeypatch, waypoints):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen["url"] = url
        seen["params"] = params
        return FakeResponse(200, trip_body([0, 3, 1, 2]))

    monkeypatch.setattr(osrm_client.requests, "get", fake_get)

    route = OSRMClient(base_url="http://osrm.test/").compute_trip(waypoints)

    assert seen["url"] == "http://osrm.test/trip/v1/driving/0.0,0.0;0.0,0.3;0.0,0.1;0.0,0.2"
    assert seen["params"]["source"] == "first"
    assert seen["params"]["roundtrip"] == "false"
    assert route.waypoints[1].booking_id == "a"


@pytest.mark.parametrize("status, error, transient", [
    (429, RateLimitedError, True),
    (503, RoutingServiceError, True),
])
def test_osrm_client_classifies_http_errors(monkeypatch, waypoints, status, error, transient):
    monkeypatch.setattr(osrm_client.requests, "get", lambda *a, **kw: FakeResponse(status))

    with pytest.raises(error) as exc_info:
        OSRMClient(base_url="http://osrm.test").compute_trip(waypoints)

    assert exc_info.value.transient is transient


def test_osrm_client_error_code_is_permanent(monkeypatch, waypoints):
    body = {"code": "NoTrips", "message": "No trip visiting all destinations possible."}
    monkeypatch.setattr(osrm_client.requests, "get", lambda *a, **kw: FakeResponse(400, body))

    with pytest.raises(RoutingServiceError) as exc_info:
        OSRMClient(base_url="http://osrm.test").compute_trip(waypoints)

    assert exc_info.value.transient is False


def test_osrm_client_timeout_is_transient(monkeypatch, waypoints):
    def fake_get(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(osrm_client.requests, "get", fake_get)

    with pytest.raises(RoutingServiceError) as exc_info:
        OSRMClient(base_url="http://osrm.test").compute_trip(waypoints)

    assert exc_info.value.transient is True


def test_osrm_client_requires_base_url(monkeypatch):
    monkeypatch.setattr(osrm_client, "BASE_URL", None)

    with pytest.raises(ValueError):
        OSRMClient()
