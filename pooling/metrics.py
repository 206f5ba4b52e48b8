"""
Purpose: Per-rider distance and time figures on a sequenced route.
What it does:

For each rider in the route:

- km_onboard: haversine length of the route between the rider's pickup
  (the airport unless a pickup stop exists) and the rider's drop-off

- direct_distance_km: straight airport -> destination distance

- detour_percent: (km_onboard - direct) / direct * 100

- extra_time_minutes: on-board minutes - direct minutes

Also checks the per-rider route constraints (hard 20% / 10 min, and the
stricter 2-rider limits).

Rule: Metrics only. No pricing, no scoring.
"""

# pooling/metrics.py

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .errors import InputError
from .geo import haversine_km
from .models import Booking, PassengerMetrics, Route, WaypointKind
from .policy import PoolingPolicy, default_policy
from .rounding import round_half_up


def calculate_passenger_metrics(
    route: Route,
    bookings: Sequence[Booking],
    policy: Optional[PoolingPolicy] = None,
) -> List[PassengerMetrics]:
    """
    Metrics for every booking, in booking order.

    Raises InputError if a booking has no drop-off on the route, the route
    has no starting point for it, or its drop-off comes before its pickup.
    """
    policy = policy or default_policy()

    if not route.waypoints:
        raise InputError("route has no waypoints")

    airport = route.waypoints[0]
    out: List[PassengerMetrics] = []

    for booking in bookings:
        pickup_idx, dropoff_idx = _find_indices(route, booking.id)

        km_onboard = calculate_km_onboard(route, pickup_idx, dropoff_idx)
        direct_km = haversine_km(airport.coordinates, booking.destination)
        detour = calculate_detour(km_onboard, direct_km)

        direct_minutes = _minutes(direct_km, policy)
        onboard_minutes = _onboard_minutes(route, pickup_idx, dropoff_idx, km_onboard, policy)

        out.append(
            PassengerMetrics(
                booking_id=booking.id,
                km_onboard=round_half_up(km_onboard, 2),
                direct_distance_km=round_half_up(direct_km, 2),
                detour_percent=round_half_up(detour, 1),
                extra_time_minutes=round_half_up(onboard_minutes - direct_minutes, 1),
                pickup_index=pickup_idx,
                dropoff_index=dropoff_idx,
            )
        )

    return out


def calculate_km_onboard(route: Route, pickup_index: int, dropoff_index: int) -> float:
    """
    Sum of consecutive haversine segments from pickup_index to dropoff_index.
    """
    if not 0 <= pickup_index <= dropoff_index < len(route.waypoints):
        raise InputError(f"invalid segment [{pickup_index}, {dropoff_index}] for route")

    total = 0.0
    for i in range(pickup_index, dropoff_index):
        total += haversine_km(route.waypoints[i].coordinates, route.waypoints[i + 1].coordinates)
    return total


def calculate_detour(km_onboard: float, direct_km: float) -> float:
    """Detour percent; 0 when the direct distance is 0."""
    if direct_km <= 0:
        return 0.0
    return (km_onboard - direct_km) / direct_km * 100.0


def validate_route_constraints(
    metrics: Sequence[PassengerMetrics],
    cluster_size: int,
    policy: Optional[PoolingPolicy] = None,
) -> Tuple[bool, List[str]]:
    """
    Per-rider check against the detour / extra time limits.

    2-rider groups use the stricter pair limits. Returns (valid, violations).
    """
    policy = policy or default_policy()

    if cluster_size == 2:
        max_detour = policy.pair_max_detour_percent
        max_extra = policy.pair_max_extra_time_minutes
    else:
        max_detour = policy.max_detour_percent
        max_extra = policy.max_extra_time_minutes

    violations: List[str] = []
    for m in metrics:
        if m.detour_percent > max_detour:
            violations.append(
                f"Passenger {m.booking_id}: detour {m.detour_percent}% > {max_detour:g}%"
            )
        if m.extra_time_minutes > max_extra:
            violations.append(
                f"Passenger {m.booking_id}: extra time {m.extra_time_minutes} min > {max_extra:g} min"
            )

    return (not violations, violations)


# -------------------------
# Internal helpers
# -------------------------

def _find_indices(route: Route, booking_id: str) -> Tuple[int, int]:
    pickup_idx = None
    dropoff_idx = None
    for idx, w in enumerate(route.waypoints):
        if w.booking_id != booking_id:
            continue
        if w.kind == WaypointKind.PICKUP and pickup_idx is None:
            pickup_idx = idx
        elif w.kind == WaypointKind.DROPOFF and dropoff_idx is None:
            dropoff_idx = idx

    if pickup_idx is None and route.waypoints[0].kind == WaypointKind.AIRPORT:
        # riders board at the airport
        pickup_idx = 0

    if pickup_idx is None:
        raise InputError(f"no pickup waypoint for booking {booking_id}")
    if dropoff_idx is None:
        raise InputError(f"no dropoff waypoint for booking {booking_id}")
    if dropoff_idx < pickup_idx:
        raise InputError(f"dropoff before pickup for booking {booking_id}")

    return pickup_idx, dropoff_idx


def _minutes(km: float, policy: PoolingPolicy) -> float:
    return km / policy.average_speed_kmh * 60.0


def _onboard_minutes(
    route: Route,
    pickup_idx: int,
    dropoff_idx: int,
    km_onboard: float,
    policy: PoolingPolicy,
) -> float:
    legs = route.leg_durations_minutes
    if policy.use_service_durations and legs and len(legs) == len(route.waypoints) - 1:
        return sum(legs[pickup_idx:dropoff_idx])
    return _minutes(km_onboard, policy)
