"""
Purpose: The pooling "orchestrator" (single entry point).
What it does:

Coordinates the pipeline end-to-end for one flight:

- takes the flight's bookings (read-only)

- clusters destinations (clustering.py) and applies group size rules

- sequences each group's route airport-first (routing.RouteOptimizer)

- computes per-rider metrics (metrics.py)

- prices each group and quotes solo prices / savings (pricing.py)

- scores, filters and ranks the candidate pools (ranking.py)

Typical public function signature:

- match_flight(bookings, airport, optimizer=..., policy=...) -> FlightMatchResult

- match_flights(bookings_by_flight, airport, ...) -> Dict[flight, FlightMatchResult]
  (flights are independent and may run on a thread pool)

Rule: Engine is the only file other modules should call directly for matching.
"""

# pooling/engine.py

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from routing.route_optimizer import RouteOptimizer

from .clustering import dbscan, filter_clusters_by_business_rules, points_from_bookings
from .errors import InputError
from .metrics import calculate_passenger_metrics
from .models import (
    Booking,
    Cluster,
    ClusteringResult,
    LatLon,
    PoolCandidate,
    RankingResult,
    Waypoint,
    WaypointKind,
)
from .policy import PoolingPolicy, default_policy
from .pricing import calculate_pricing, calculate_savings, estimate_solo_prices
from .ranking import rank_and_filter_pools
from .rounding import round_half_up

logger = logging.getLogger(__name__)

AIRPORT_WAYPOINT_ID = "airport"


@dataclass(frozen=True)
class FlightMatchResult:
    """
    Output of a matching run for one flight.
    """
    clustering: ClusteringResult
    valid_clusters: List[Cluster]
    candidates: List[PoolCandidate]
    ranking: RankingResult


def match_flight(
    bookings: Sequence[Booking],
    airport: LatLon,
    *,
    optimizer: Optional[RouteOptimizer] = None,
    policy: Optional[PoolingPolicy] = None,
) -> FlightMatchResult:
    """
    Main matching entry point.

    Parameters
    ----------
    bookings:
        Riders of one flight. Never mutated.
    airport:
        (lat, lon) where every pooled trip starts.
    optimizer:
        RouteOptimizer (with OSRM client and shared cache in production).
        If omitted, routes come from the nearest-neighbor fallback only.
    policy:
        PoolingPolicy with clustering/pricing/scoring thresholds.

    Raises InputError when there are no bookings.
    """
    policy = policy or default_policy()
    policy.validate()
    optimizer = optimizer or RouteOptimizer(average_speed_kmh=policy.average_speed_kmh)

    if not bookings:
        raise InputError("cannot match a flight with no bookings")

    by_id = {b.id: b for b in bookings}
    if len(by_id) != len(bookings):
        raise InputError("duplicate booking ids")

    # 1) Spatial clustering + group size rules
    clustering = dbscan(points_from_bookings(bookings), policy.eps_km, policy.min_samples)
    valid_clusters = filter_clusters_by_business_rules(clustering.clusters, policy)

    # 2) Route, metrics, pricing per group
    candidates: List[PoolCandidate] = []
    for cluster in valid_clusters:
        group = [by_id[bid] for bid in cluster.booking_ids]
        candidates.append(build_candidate(cluster, group, airport, optimizer=optimizer, policy=policy))

    # 3) Score, filter, rank
    ranking = rank_and_filter_pools(candidates, policy)

    logger.info(
        "flight matched: %d bookings, %d groups, %d confirmable",
        len(bookings), len(valid_clusters), ranking.stats.passed_soft_threshold,
    )
    return FlightMatchResult(
        clustering=clustering,
        valid_clusters=valid_clusters,
        candidates=candidates,
        ranking=ranking,
    )


def match_flights(
    bookings_by_flight: Mapping[str, Sequence[Booking]],
    airport: LatLon,
    *,
    optimizer: Optional[RouteOptimizer] = None,
    policy: Optional[PoolingPolicy] = None,
    max_workers: int = 4,
) -> Dict[str, FlightMatchResult]:
    """
    Run match_flight for several flights concurrently.

    The optimizer (and its RouteCache) is shared between threads.
    Flights with no bookings are skipped.
    """
    policy = policy or default_policy()
    optimizer = optimizer or RouteOptimizer(average_speed_kmh=policy.average_speed_kmh)

    flights = {f: list(b) for f, b in bookings_by_flight.items() if b}
    if not flights:
        return {}

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            flight: pool.submit(match_flight, group, airport, optimizer=optimizer, policy=policy)
            for flight, group in flights.items()
        }
        return {flight: fut.result() for flight, fut in futures.items()}


def build_candidate(
    cluster: Cluster,
    bookings: Sequence[Booking],
    airport: LatLon,
    *,
    optimizer: RouteOptimizer,
    policy: PoolingPolicy,
) -> PoolCandidate:
    """
    Route, measure and price one group of riders.
    """
    route = optimizer.optimize_route(build_waypoints(bookings, airport))
    metrics = calculate_passenger_metrics(route, bookings, policy)

    route_km = round_half_up(route.distance_km, 2)
    pricing = calculate_pricing(route_km, [(m.booking_id, m.km_onboard) for m in metrics], policy)
    savings = calculate_savings(pricing, estimate_solo_prices(bookings, airport, policy))

    return PoolCandidate(
        cluster_id=cluster.id,
        total_pax=len(bookings),
        total_route_km=route_km,
        total_duration=round_half_up(route.duration_minutes, 1),
        max_detour_percent=max(m.detour_percent for m in metrics),
        extra_time_minutes=max(m.extra_time_minutes for m in metrics),
        waypoint_count=len(route.waypoints),
        centroid=cluster.centroid,
        passenger_metrics=metrics,
        pricing=pricing,
        booking_ids=[b.id for b in bookings],
        route=route,
        savings_percent={s.booking_id: s.savings_percent for s in savings},
        luggage_counts={b.id: b.luggage_count for b in bookings},
        destinations={b.id: b.destination for b in bookings},
    )


def build_waypoints(bookings: Sequence[Booking], airport: LatLon) -> List[Waypoint]:
    """
    Airport first, then one drop-off per rider in booking order.
    """
    waypoints = [
        Waypoint(
            id=AIRPORT_WAYPOINT_ID,
            latitude=airport[0],
            longitude=airport[1],
            kind=WaypointKind.AIRPORT,
        )
    ]
    for b in bookings:
        waypoints.append(
            Waypoint(
                id=f"dropoff:{b.id}",
                latitude=b.latitude,
                longitude=b.longitude,
                kind=WaypointKind.DROPOFF,
                booking_id=b.id,
                address=b.address,
            )
        )
    return waypoints
