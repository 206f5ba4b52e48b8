"""
Purpose: Score how good a pooled grouping is (0-100) and how stable it is.
What it does:

Sums four capped sub-scores:

- price saving (0-40): average rider savings %

- time efficiency (0-30): average extra minutes

- route deviation (0-20): average detour %

- compatibility (0-10): destination corridor + luggage load

Assigns a stability tier from group size and the worst rider's detour /
extra time, validates the hard constraints, and maps the score to a
recommendation.

Rule: Averages drive the score; the worst rider drives tier and validation.
"""

# pooling/quality.py

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .geo import centroid_of, haversine_km
from .models import (
    LatLon,
    PassengerMetrics,
    QualityBreakdown,
    QualityInput,
    QualityScore,
    Recommendation,
    StabilityTier,
)
from .policy import PoolingPolicy, default_policy
from .rounding import round_half_up

_TIER_RANK = {
    StabilityTier.EXCELLENT: 3,
    StabilityTier.GOOD: 2,
    StabilityTier.REJECTED: 1,
}


def calculate_quality_score(
    quality_input: QualityInput,
    policy: Optional[PoolingPolicy] = None,
) -> QualityScore:
    policy = policy or default_policy()
    metrics = quality_input.passenger_metrics

    avg_savings = _mean(quality_input.savings_percent)
    avg_extra = _mean([m.extra_time_minutes for m in metrics])
    avg_detour = _mean([m.detour_percent for m in metrics])

    # no riders, no time or route points
    time_points = score_time_efficiency(avg_extra) if metrics else 0.0
    route_points = score_route_deviation(avg_detour) if metrics else 0.0

    breakdown = QualityBreakdown(
        price_saving=round_half_up(score_price_saving(avg_savings), 1),
        time_efficiency=round_half_up(time_points, 1),
        route_deviation=round_half_up(route_points, 1),
        compatibility=round_half_up(
            calculate_compatibility(
                destinations=quality_input.destinations,
                luggage_counts=quality_input.luggage_counts,
                centroid=quality_input.centroid,
                policy=policy,
            ),
            1,
        ),
    )
    overall = round_half_up(
        breakdown.price_saving + breakdown.time_efficiency
        + breakdown.route_deviation + breakdown.compatibility,
        1,
    )

    tier = determine_stability_tier(quality_input.cluster_size, metrics, policy)
    is_valid, warnings = validate_constraints(quality_input.cluster_size, metrics, policy)

    return QualityScore(
        overall=overall,
        breakdown=breakdown,
        stability_tier=tier,
        recommendation=recommendation_for(overall, is_valid),
        warnings=warnings,
        is_valid=is_valid,
    )


# -------------------------
# Sub-scores
# -------------------------

def score_price_saving(savings_percent: float) -> float:
    """0-40 points."""
    s = savings_percent
    if s <= 0:
        return 0.0
    if s >= 50:
        return 40.0
    if s >= 30:
        return 30 + (s - 30) / 20 * 10
    if s >= 10:
        return 10 + (s - 10) / 20 * 20
    return s


def score_time_efficiency(extra_minutes: float) -> float:
    """0-30 points."""
    t = extra_minutes
    if t <= 2:
        return 30.0
    if t <= 6:
        return 20 + (6 - t) / 4 * 10
    if t <= 10:
        return 10 + (10 - t) / 4 * 10
    return max(0.0, 10 - (t - 10))


def score_route_deviation(detour_percent: float) -> float:
    """0-20 points."""
    d = detour_percent
    if d <= 5:
        return 20.0
    if d <= 10:
        return 15 + (10 - d) / 5 * 5
    if d <= 15:
        return 10 + (15 - d) / 5 * 5
    if d <= 20:
        return 5 + (20 - d) / 5 * 5
    return max(0.0, 5 - (d - 20) / 2)


def calculate_compatibility(
    *,
    destinations: Optional[Sequence[LatLon]] = None,
    luggage_counts: Optional[Sequence[int]] = None,
    centroid: Optional[LatLon] = None,
    policy: Optional[PoolingPolicy] = None,
) -> float:
    """
    0-10 points: base 50, + up to 30 for a tight destination corridor,
    + up to 20 for a manageable luggage load, scaled down by 10.

    Missing destinations or luggage get the full bonus for that part.
    """
    policy = policy or default_policy()
    score = 50.0

    if destinations:
        center = centroid if centroid is not None else centroid_of(destinations)
        spread = max(haversine_km(center, d) for d in destinations)
        score += _linear_bonus(spread, policy.corridor_full_km, policy.corridor_zero_km, 30)
    else:
        score += 30

    if luggage_counts:
        score += _linear_bonus(max(luggage_counts), policy.luggage_full, policy.luggage_zero, 20)
    else:
        score += 20

    return max(0.0, min(100.0, score)) / 10


# -------------------------
# Tier / validation / recommendation
# -------------------------

def determine_stability_tier(
    cluster_size: int,
    metrics: Sequence[PassengerMetrics],
    policy: Optional[PoolingPolicy] = None,
) -> StabilityTier:
    policy = policy or default_policy()

    if cluster_size >= 3:
        return StabilityTier.EXCELLENT

    if cluster_size == 2:
        max_detour = max((m.detour_percent for m in metrics), default=0.0)
        max_extra = max((m.extra_time_minutes for m in metrics), default=0.0)
        if (
            max_detour <= policy.pair_max_detour_percent
            and max_extra <= policy.pair_max_extra_time_minutes
        ):
            return StabilityTier.GOOD

    return StabilityTier.REJECTED


def validate_constraints(
    cluster_size: int,
    metrics: Sequence[PassengerMetrics],
    policy: Optional[PoolingPolicy] = None,
) -> Tuple[bool, List[str]]:
    """
    Returns (is_valid, warnings).

    Hard failures (invalid): fewer than min_group_size riders, any rider over
    the detour or extra time limit. Everything else is only a warning.
    """
    policy = policy or default_policy()
    warnings: List[str] = []
    is_valid = True

    if cluster_size < policy.min_group_size:
        warnings.append(f"Cluster size {cluster_size} below minimum {policy.min_group_size}")
        is_valid = False

    if cluster_size > policy.max_group_size:
        warnings.append(f"Cluster size {cluster_size} exceeds maximum {policy.max_group_size}")

    max_detour = max((m.detour_percent for m in metrics), default=0.0)
    max_extra = max((m.extra_time_minutes for m in metrics), default=0.0)

    if cluster_size == 2:
        if max_detour > policy.pair_max_detour_percent:
            warnings.append(
                f"2-passenger detour {max_detour}% exceeds {policy.pair_max_detour_percent:g}%"
            )
        if max_extra > policy.pair_max_extra_time_minutes:
            warnings.append(
                f"2-passenger extra time {max_extra} min exceeds {policy.pair_max_extra_time_minutes:g} min"
            )

    if max_detour > policy.max_detour_percent:
        warnings.append(f"Detour {max_detour}% exceeds hard limit {policy.max_detour_percent:g}%")
        is_valid = False

    if max_extra > policy.max_extra_time_minutes:
        warnings.append(
            f"Extra time {max_extra} min exceeds hard limit {policy.max_extra_time_minutes:g} min"
        )
        is_valid = False

    return is_valid, warnings


def recommendation_for(overall: float, is_valid: bool = True) -> Recommendation:
    if not is_valid:
        return Recommendation.REJECT
    if overall >= 80:
        return Recommendation.EXCELLENT
    if overall >= 60:
        return Recommendation.GOOD
    if overall >= 40:
        return Recommendation.FAIR
    return Recommendation.POOR


def compare_cluster_qualities(a: QualityScore, b: QualityScore) -> Tuple[str, str]:
    """
    Pick the better of two scored groupings.

    Returns ("A" | "B" | "TIE", reason). Valid beats invalid and two
    invalid groupings tie. Otherwise a better tier wins, then a score gap of
    at least 5 points decides.
    """
    if a.is_valid != b.is_valid:
        return ("A", "only A passes constraints") if a.is_valid else ("B", "only B passes constraints")
    if not a.is_valid:
        return "TIE", "both clusters rejected"

    rank_a, rank_b = _TIER_RANK[a.stability_tier], _TIER_RANK[b.stability_tier]
    if rank_a != rank_b:
        if rank_a > rank_b:
            return "A", f"better stability tier ({a.stability_tier.value} vs {b.stability_tier.value})"
        return "B", f"better stability tier ({b.stability_tier.value} vs {a.stability_tier.value})"

    gap = a.overall - b.overall
    if abs(gap) < 5:
        return "TIE", f"scores within 5 points ({a.overall} vs {b.overall})"
    if gap > 0:
        return "A", f"higher score ({a.overall} vs {b.overall})"
    return "B", f"higher score ({b.overall} vs {a.overall})"


def quality_report(score: QualityScore) -> str:
    b = score.breakdown
    lines = [
        f"Quality score: {score.overall}/100 ({score.recommendation.value})",
        f"  Price saving:    {b.price_saving}/40",
        f"  Time efficiency: {b.time_efficiency}/30",
        f"  Route deviation: {b.route_deviation}/20",
        f"  Compatibility:   {b.compatibility}/10",
        f"Stability tier: {score.stability_tier.value}",
        f"Valid: {'yes' if score.is_valid else 'no'}",
    ]
    for w in score.warnings:
        lines.append(f"  ! {w}")
    return "\n".join(lines)


# -------------------------
# Internal helpers
# -------------------------

def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _linear_bonus(value: float, full_at: float, zero_at: float, points: int) -> int:
    """
    Full points up to full_at, linear fall-off (rounded) until zero_at,
    nothing beyond.
    """
    if value <= full_at:
        return points
    if value <= zero_at:
        return int(round_half_up(points - (value - full_at) / (zero_at - full_at) * points))
    return 0
