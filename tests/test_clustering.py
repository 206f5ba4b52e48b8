import pytest

from pooling.clustering import dbscan, points_from_bookings
from pooling.errors import InputError
from pooling.geo import haversine_km
from pooling.models import Booking, GeoPoint


def point(pid, lat, lon=0.0):
    return GeoPoint(id=pid, booking_id=pid, latitude=lat, longitude=lon)


@pytest.fixture
def two_groups_and_outlier():
    # ~1km spacing inside each group, groups ~110km apart, outlier far away
    return [
        point("a1", 0.000),
        point("a2", 0.009),
        point("a3", 0.018),
        point("b1", 1.000),
        point("b2", 1.009),
        point("x", 5.000),
    ]


def test_empty_input_returns_empty_result():
    result = dbscan([])

    assert result.clusters == []
    assert result.noise == []
    assert result.stats.total_points == 0
    assert result.stats.clusters_found == 0
    assert result.stats.average_cluster_size == 0.0


def test_single_point_is_noise():
    result = dbscan([point("solo", -17.9, 31.1)])

    assert result.clusters == []
    assert [p.id for p in result.noise] == ["solo"]


def test_two_nearby_points_form_a_cluster():
    result = dbscan([point("p1", 0.0), point("p2", 0.009)], eps_km=8.5, min_samples=2)

    assert len(result.clusters) == 1
    assert sorted(p.id for p in result.clusters[0].points) == ["p1", "p2"]
    assert result.noise == []


def test_groups_numbered_in_discovery_order(two_groups_and_outlier):
    result = dbscan(two_groups_and_outlier)

    assert [c.id for c in result.clusters] == [0, 1]
    assert [p.id for p in result.clusters[0].points] == ["a1", "a2", "a3"]
    assert [p.id for p in result.clusters[1].points] == ["b1", "b2"]
    assert [p.id for p in result.noise] == ["x"]

    assert result.stats.total_points == 6
    assert result.stats.clusters_found == 2
    assert result.stats.noise_points == 1
    assert result.stats.average_cluster_size == 2.5


def test_centroid_is_mean_of_members(two_groups_and_outlier):
    result = dbscan(two_groups_and_outlier)

    lat, lon = result.clusters[0].centroid
    assert lat == pytest.approx(0.009)
    assert lon == pytest.approx(0.0)


def test_density_reachable_chain_is_one_cluster():
    """
    Points every ~5km along a line: the ends are 25km apart but every
    neighbor pair is within eps, so the whole chain is one cluster.
    """
    points = [point(f"c{i}", i * 0.045) for i in range(6)]
    assert haversine_km((0.0, 0.0), (0.045, 0.0)) < 8.5

    result = dbscan(points, eps_km=8.5, min_samples=2)

    assert len(result.clusters) == 1
    assert result.clusters[0].size == 6


def test_noise_point_becomes_border_point():
    """
    With min_samples=3 the first point (one neighbor) is marked noise, then
    absorbed when the middle point turns out to be a core point.
    """
    points = [point("left", 0.0), point("middle", 0.05), point("right", 0.10)]

    result = dbscan(points, eps_km=8.5, min_samples=3)

    assert len(result.clusters) == 1
    assert sorted(p.id for p in result.clusters[0].points) == ["left", "middle", "right"]
    assert result.noise == []


def test_points_outside_eps_are_not_neighbors():
    # ~11.1km apart with eps 8.5
    result = dbscan([point("p1", 0.0), point("p2", 0.1)])

    assert result.clusters == []
    assert len(result.noise) == 2


def test_clustering_is_deterministic(two_groups_and_outlier):
    first = dbscan(two_groups_and_outlier)
    second = dbscan(two_groups_and_outlier)

    assert first == second


def test_invalid_parameters_raise_input_error():
    with pytest.raises(InputError):
        dbscan([point("p", 0.0)], eps_km=0)

    with pytest.raises(InputError):
        dbscan([point("p", 0.0)], min_samples=0)


def test_points_from_bookings_keeps_booking_ids():
    bookings = [Booking(id="b1", latitude=-17.8, longitude=31.0, luggage_count=2, flight_identifier="FL1")]

    points = points_from_bookings(bookings)

    assert points[0].booking_id == "b1"
    assert points[0].latitude == -17.8
    assert points[0].metadata["luggage_count"] == 2
