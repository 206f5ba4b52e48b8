"""
Purpose: Domain models for the airport pooling capability.
What it does:

Defines the data structures every pipeline stage passes along:

- Booking (read-only source record for one rider on one flight)
- GeoPoint / Cluster (spatial grouping of drop-off destinations)
- Waypoint / Route (sequenced stops, airport first)
- PassengerMetrics (per-rider distance/detour/extra time)
- PassengerPricing / ClusterPricing (fair price split with exact-sum check)
- QualityBreakdown / QualityScore (0-100 score + stability tier)
- PoolCandidate / RejectedPool / RankingResult (ranking output)

Defines enums:

- WaypointKind = airport | pickup | dropoff
- RouteSource = service | fallback | cache
- StabilityTier = EXCELLENT | GOOD | REJECTED
- Recommendation = excellent | good | fair | poor | reject

Rule: No routing calls, no scoring logic. Models only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

LatLon = Tuple[float, float]


class WaypointKind(str, Enum):
    AIRPORT = "airport"
    PICKUP = "pickup"
    DROPOFF = "dropoff"


class RouteSource(str, Enum):
    SERVICE = "service"
    FALLBACK = "fallback"
    CACHE = "cache"


class StabilityTier(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    REJECTED = "REJECTED"


class Recommendation(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    REJECT = "reject"


# -------------------------
# Source records
# -------------------------

@dataclass(frozen=True)
class Booking:
    """
    One rider travelling from the airport to a destination after a flight.
    Owned by the booking store; the pipeline only reads it.
    """
    id: str
    latitude: float
    longitude: float
    luggage_count: int = 0
    flight_identifier: Optional[str] = None
    address: Optional[str] = None

    @property
    def destination(self) -> LatLon:
        return (self.latitude, self.longitude)


# -------------------------
# Clustering
# -------------------------

@dataclass(frozen=True)
class GeoPoint:
    id: str
    booking_id: str
    latitude: float
    longitude: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Cluster:
    """
    Riders whose destinations are close enough to share a vehicle.
    Centroid is the mean of member coordinates.
    """
    id: int
    points: List[GeoPoint]
    centroid: LatLon

    @property
    def size(self) -> int:
        return len(self.points)

    @property
    def booking_ids(self) -> List[str]:
        return [p.booking_id for p in self.points]


@dataclass(frozen=True)
class ClusteringStats:
    total_points: int
    clusters_found: int
    noise_points: int
    average_cluster_size: float


@dataclass(frozen=True)
class ClusteringResult:
    clusters: List[Cluster]
    noise: List[GeoPoint]
    stats: ClusteringStats


# -------------------------
# Routing
# -------------------------

@dataclass(frozen=True)
class Waypoint:
    """
    A stop on a pooled trip. The airport waypoint has no booking_id.
    """
    id: str
    latitude: float
    longitude: float
    kind: WaypointKind
    booking_id: Optional[str] = None
    address: Optional[str] = None

    @property
    def coordinates(self) -> LatLon:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class Route:
    """
    Ordered stops with totals. waypoints[0] is always the airport.

    leg_durations_minutes is only set when the routing service supplied
    per-leg durations (len == len(waypoints) - 1).
    """
    distance_km: float
    duration_minutes: float
    waypoints: List[Waypoint]
    geometry: Optional[str] = None
    leg_durations_minutes: Optional[List[float]] = None
    source: RouteSource = RouteSource.SERVICE


# -------------------------
# Metrics & pricing
# -------------------------

@dataclass(frozen=True)
class PassengerMetrics:
    booking_id: str
    km_onboard: float
    direct_distance_km: float
    detour_percent: float
    extra_time_minutes: float
    pickup_index: int
    dropoff_index: int


@dataclass(frozen=True)
class PricingBreakdown:
    driver_rate: Decimal
    platform_rate: Decimal
    original_total: Decimal
    penny_adjustment: Decimal


@dataclass(frozen=True)
class PassengerPricing:
    booking_id: str
    km_onboard: float
    driver_cost: Decimal
    platform_fee: Decimal
    total_price: Decimal
    share_percent: float
    breakdown: PricingBreakdown


@dataclass(frozen=True)
class PricingValidation:
    sum_matches_total: bool
    difference: Decimal


@dataclass(frozen=True)
class ClusterPricing:
    """
    Invariant: sum(p.total_price for p in passengers) == grand_total.

    total_driver_cost and total_platform_fee are each rounded to the cent on
    their own, so when both land on a half cent they can add up to one cent
    more than grand_total. Route lengths rounded to 2 dp never hit this.
    """
    total_route_km: float
    total_driver_cost: Decimal
    total_platform_fee: Decimal
    grand_total: Decimal
    passengers: List[PassengerPricing]
    validation: PricingValidation


@dataclass(frozen=True)
class RiderSavings:
    booking_id: str
    pool_price: Decimal
    solo_price: Decimal
    savings: Decimal
    savings_percent: float


# -------------------------
# Quality
# -------------------------

@dataclass(frozen=True)
class QualityBreakdown:
    price_saving: float       # 0-40
    time_efficiency: float    # 0-30
    route_deviation: float    # 0-20
    compatibility: float      # 0-10


@dataclass(frozen=True)
class QualityScore:
    overall: float
    breakdown: QualityBreakdown
    stability_tier: StabilityTier
    recommendation: Recommendation
    warnings: List[str]
    is_valid: bool


@dataclass(frozen=True)
class QualityInput:
    """
    Everything the scorer needs about one cluster.

    destinations / luggage_counts are optional; missing data is treated as
    fully compatible.
    """
    cluster_size: int
    passenger_metrics: List[PassengerMetrics]
    savings_percent: List[float]
    centroid: Optional[LatLon] = None
    destinations: Optional[List[LatLon]] = None
    luggage_counts: Optional[List[int]] = None


# -------------------------
# Ranking
# -------------------------

@dataclass
class PoolCandidate:
    """
    A scored-or-about-to-be-scored grouping. Mutable: the ranker attaches
    quality_score and stability_tier in place.

    extra_time_minutes is the worst rider's extra time.
    """
    cluster_id: int
    total_pax: int
    total_route_km: float
    total_duration: float
    max_detour_percent: float
    extra_time_minutes: float
    waypoint_count: int
    centroid: LatLon
    passenger_metrics: List[PassengerMetrics]
    pricing: Optional[ClusterPricing]
    booking_ids: List[str]
    route: Optional[Route] = None
    savings_percent: Optional[Dict[str, float]] = None
    luggage_counts: Optional[Dict[str, int]] = None
    destinations: Optional[Dict[str, LatLon]] = None

    quality_score: Optional[float] = None
    stability_tier: Optional[StabilityTier] = None
    quality: Optional[QualityScore] = None


@dataclass(frozen=True)
class RejectedPool:
    pool: PoolCandidate
    reason: str
    violations: List[str]


@dataclass(frozen=True)
class RankingStats:
    total_candidates: int
    passed_hard_constraints: int
    passed_soft_threshold: int
    rejected_by_constraints: int
    rejected_by_score: int


@dataclass(frozen=True)
class RankingResult:
    confirmable_pools: List[PoolCandidate]
    rejected_pools: List[RejectedPool]
    stats: RankingStats
