"""
Purpose: Sequence a pooled trip's stops (airport first) into a Route.
What it does:

- asks the routing service for an optimized trip (first stop fixed)

- retries rate limits / transient failures with exponential backoff

- serves repeated coordinate sequences from an optional RouteCache

- falls back to a greedy nearest-neighbor ordering over haversine
  distances when the service is missing or keeps failing

Rule: optimize_route never raises for routing failures, only for bad input.
"""

# routing/route_optimizer.py

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Callable, List, Optional, Protocol, Sequence

from pooling.errors import InputError
from pooling.geo import haversine_km, path_length_km
from pooling.models import Route, RouteSource, Waypoint, WaypointKind

from .cache import RouteCache, route_key
from .osrm_client import RoutingServiceError
from .policy import RetryPolicy, default_retry_policy

logger = logging.getLogger(__name__)


class RoutingClient(Protocol):
    def compute_trip(self, waypoints: List[Waypoint]) -> Route:
        ...


class RouteOptimizer:
    """
    Inputs:
      - client: anything with compute_trip(waypoints) -> Route (OSRMClient in
        production). None means fallback-only.
      - cache: optional shared RouteCache.
      - retry_policy: backoff schedule for rate limits / transient errors.
      - sleep: injectable for tests.
      - average_speed_kmh: fallback duration estimate.
    """
    def __init__(
        self,
        client: Optional[RoutingClient] = None,
        *,
        cache: Optional[RouteCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        average_speed_kmh: float = 50.0,
    ):
        self.client = client
        self.cache = cache
        self.retry_policy = retry_policy or default_retry_policy()
        self.retry_policy.validate()
        self._sleep = sleep
        self.average_speed_kmh = average_speed_kmh

    def optimize_route(self, waypoints: Sequence[Waypoint]) -> Route:
        """
        Returns a Route starting at waypoints[0] (the airport).

        Raises InputError for fewer than 2 waypoints or a first waypoint that
        is not the airport. Service failures degrade to the greedy fallback.
        """
        waypoints = list(waypoints)
        _validate_waypoints(waypoints)

        if self.client is None:
            return greedy_nearest_neighbor(waypoints, average_speed_kmh=self.average_speed_kmh)

        key = route_key(waypoints)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("route cache hit for %d waypoints", len(waypoints))
                return replace(cached, source=RouteSource.CACHE)

        try:
            route = self._call_with_retry(waypoints)
        except RoutingServiceError as exc:
            logger.warning("routing service failed (%s); using nearest-neighbor fallback", exc)
            return greedy_nearest_neighbor(waypoints, average_speed_kmh=self.average_speed_kmh)
        except Exception:
            logger.exception("unexpected routing client failure; using nearest-neighbor fallback")
            return greedy_nearest_neighbor(waypoints, average_speed_kmh=self.average_speed_kmh)

        if self.cache is not None:
            self.cache.set(key, route)
        return route

    # -------------------------
    # Internal helpers
    # -------------------------

    def _call_with_retry(self, waypoints: List[Waypoint]) -> Route:
        attempt = 0
        while True:
            try:
                route = self.client.compute_trip(waypoints)
                _check_service_route(route, waypoints)
                return route
            except RoutingServiceError as exc:
                if not exc.transient or attempt >= self.retry_policy.max_retries:
                    raise
                attempt += 1
                delay = self.retry_policy.delay_seconds(attempt)
                logger.warning(
                    "routing attempt failed (%s); retry %d/%d in %.1fs",
                    exc, attempt, self.retry_policy.max_retries, delay,
                )
                self._sleep(delay)


def greedy_nearest_neighbor(
    waypoints: Sequence[Waypoint],
    *,
    average_speed_kmh: float = 50.0,
) -> Route:
    """
    Deterministic fallback ordering.

    Starts at waypoints[0] and repeatedly visits the closest remaining stop
    (haversine). Ties keep the earliest stop in input order.
    """
    waypoints = list(waypoints)
    _validate_waypoints(waypoints)

    ordered = [waypoints[0]]
    remaining = waypoints[1:]
    while remaining:
        current = ordered[-1].coordinates
        best_idx = 0
        best_dist = haversine_km(current, remaining[0].coordinates)
        for idx in range(1, len(remaining)):
            d = haversine_km(current, remaining[idx].coordinates)
            if d < best_dist:
                best_idx, best_dist = idx, d
        ordered.append(remaining.pop(best_idx))

    distance_km = path_length_km([w.coordinates for w in ordered])
    return Route(
        distance_km=distance_km,
        duration_minutes=distance_km / average_speed_kmh * 60.0,
        waypoints=ordered,
        source=RouteSource.FALLBACK,
    )


def _validate_waypoints(waypoints: List[Waypoint]) -> None:
    if len(waypoints) < 2:
        raise InputError("At least two waypoints are required to optimize a route.")
    if waypoints[0].kind != WaypointKind.AIRPORT:
        raise InputError("The first waypoint must be the airport.")


def _check_service_route(route: Route, waypoints: List[Waypoint]) -> None:
    """
    A service answer is only usable if it starts at the airport and
    visits exactly the requested stops.
    """
    if not route.waypoints or route.waypoints[0].id != waypoints[0].id:
        raise RoutingServiceError("routing service moved the fixed first stop")
    if sorted(w.id for w in route.waypoints) != sorted(w.id for w in waypoints):
        raise RoutingServiceError("routing service returned a different set of stops")
