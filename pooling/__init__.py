"""
Purpose: Package entry + stable exports.
What it does:

Marks pooling as a Python package.

Re-exports the public API so other modules can do:

from pooling import Booking, dbscan, calculate_pricing, rank_and_filter_pools

The orchestrator lives in pooling.engine (it depends on routing) and is
imported from there directly.

Should not contain business logic.
"""
from .clustering import dbscan, filter_clusters_by_business_rules, points_from_bookings
from .errors import InputError, PricingInvariantError
from .metrics import calculate_passenger_metrics, validate_route_constraints
from .models import (
    Booking,
    Cluster,
    ClusteringResult,
    ClusterPricing,
    GeoPoint,
    PassengerMetrics,
    PoolCandidate,
    QualityInput,
    QualityScore,
    RankingResult,
    Recommendation,
    Route,
    RouteSource,
    StabilityTier,
    Waypoint,
    WaypointKind,
)
from .policy import PoolingPolicy, default_policy, policy_from_env
from .pricing import calculate_pricing, calculate_savings, estimate_solo_prices
from .quality import calculate_quality_score, compare_cluster_qualities
from .ranking import find_best_match, rank_and_filter_pools

__all__ = [
    "Booking",
    "Cluster",
    "ClusteringResult",
    "ClusterPricing",
    "GeoPoint",
    "PassengerMetrics",
    "PoolCandidate",
    "QualityInput",
    "QualityScore",
    "RankingResult",
    "Recommendation",
    "Route",
    "RouteSource",
    "StabilityTier",
    "Waypoint",
    "WaypointKind",
    "InputError",
    "PricingInvariantError",
    "PoolingPolicy",
    "default_policy",
    "policy_from_env",
    "dbscan",
    "filter_clusters_by_business_rules",
    "points_from_bookings",
    "calculate_passenger_metrics",
    "validate_route_constraints",
    "calculate_pricing",
    "calculate_savings",
    "estimate_solo_prices",
    "calculate_quality_score",
    "compare_cluster_qualities",
    "find_best_match",
    "rank_and_filter_pools",
]
