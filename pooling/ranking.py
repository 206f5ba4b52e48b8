"""
Purpose: Decide which candidate pools can be offered for confirmation, best first.
What it does:

1) Hard filter: group size 2-7, worst detour <= 20%, worst extra time <= 10 min

2) Scores every survivor (quality.py) and attaches score + stability tier

3) Soft threshold: 3+ riders always pass, 2 riders need a score >= 70

4) Deterministic ordering:
   score desc -> riders desc -> extra time asc -> fewer stops

Outputs:

RankingResult(confirmable_pools, rejected_pools, stats)

Rule: Pure function. No I/O, no randomness; same candidates -> same order.
"""

# pooling/ranking.py

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import (
    PoolCandidate,
    QualityInput,
    RankingResult,
    RankingStats,
    RejectedPool,
)
from .policy import PoolingPolicy, default_policy
from .quality import calculate_quality_score

logger = logging.getLogger(__name__)

HARD_CONSTRAINTS_REASON = "Hard constraints violated"
SCORE_THRESHOLD_REASON = "Quality score below threshold"


@dataclass(frozen=True)
class BestMatch:
    best: Optional[PoolCandidate]
    alternatives: List[PoolCandidate]
    message: str


def rank_and_filter_pools(
    candidates: Sequence[PoolCandidate],
    policy: Optional[PoolingPolicy] = None,
) -> RankingResult:
    """
    Main ranking entry point.

    Candidates are mutated only to attach quality_score / stability_tier
    (and the full QualityScore on .quality).
    """
    policy = policy or default_policy()

    rejected: List[RejectedPool] = []
    survivors: List[PoolCandidate] = []

    # 1) Hard constraints
    for pool in candidates:
        violations = check_hard_constraints(pool, policy)
        if violations:
            rejected.append(RejectedPool(pool=pool, reason=HARD_CONSTRAINTS_REASON, violations=violations))
        else:
            survivors.append(pool)

    rejected_by_constraints = len(rejected)

    # 2) Score survivors
    for pool in survivors:
        score = calculate_quality_score(_quality_input(pool, policy), policy)
        pool.quality = score
        pool.quality_score = score.overall
        pool.stability_tier = score.stability_tier

    # 3) Soft threshold
    confirmable: List[PoolCandidate] = []
    rejected_by_score = 0
    for pool in survivors:
        failure = _soft_threshold_failure(pool, policy)
        if failure is None:
            confirmable.append(pool)
        else:
            rejected_by_score += 1
            rejected.append(RejectedPool(pool=pool, reason=SCORE_THRESHOLD_REASON, violations=[failure]))

    # 4) Deterministic ordering (sorted() is stable)
    ordered = sorted(confirmable, key=functools.cmp_to_key(functools.partial(_compare_pools, policy=policy)))

    stats = RankingStats(
        total_candidates=len(candidates),
        passed_hard_constraints=len(survivors),
        passed_soft_threshold=len(ordered),
        rejected_by_constraints=rejected_by_constraints,
        rejected_by_score=rejected_by_score,
    )
    logger.info(
        "ranking: %d candidates, %d confirmable, %d rejected by constraints, %d by score",
        stats.total_candidates, stats.passed_soft_threshold,
        stats.rejected_by_constraints, stats.rejected_by_score,
    )
    return RankingResult(confirmable_pools=ordered, rejected_pools=rejected, stats=stats)


def check_hard_constraints(pool: PoolCandidate, policy: Optional[PoolingPolicy] = None) -> List[str]:
    """
    Human-readable violations; empty means the pool passes.
    """
    policy = policy or default_policy()
    violations: List[str] = []

    if pool.total_pax < policy.min_group_size:
        violations.append(
            f"Cluster size {pool.total_pax} < {policy.min_group_size} passengers (minimum required)"
        )
    if pool.total_pax > policy.max_group_size:
        violations.append(
            f"Cluster size {pool.total_pax} > {policy.max_group_size} passengers (maximum allowed)"
        )
    if pool.max_detour_percent > policy.max_detour_percent:
        violations.append(
            f"Max detour {pool.max_detour_percent}% > {policy.max_detour_percent:g}% (hard limit)"
        )
    if pool.extra_time_minutes > policy.max_extra_time_minutes:
        violations.append(
            f"Extra time {pool.extra_time_minutes} min > {policy.max_extra_time_minutes:g} min (hard limit)"
        )
    return violations


def find_best_match(pools: Sequence[PoolCandidate], max_alternatives: int = 3) -> BestMatch:
    """
    Top pool from an already ranked list plus a few runners-up.
    """
    if not pools:
        return BestMatch(best=None, alternatives=[], message="No confirmable pools available")

    best = pools[0]
    alternatives = list(pools[1:1 + max_alternatives])
    tier = best.stability_tier.value if best.stability_tier else "UNSCORED"
    score = best.quality_score or 0.0
    if score >= 80:
        grade = "Excellent match"
    elif score >= 60:
        grade = "Good match"
    else:
        grade = "Fair match"
    message = (
        f"{grade}: cluster {best.cluster_id} with {best.total_pax} passengers, "
        f"score {best.quality_score} ({tier}), {len(alternatives)} alternative(s)"
    )
    return BestMatch(best=best, alternatives=alternatives, message=message)


def ranking_report(result: RankingResult) -> str:
    s = result.stats
    lines = [
        "--- Pool Ranking ---",
        f"Candidates: {s.total_candidates}",
        f"Passed hard constraints: {s.passed_hard_constraints}",
        f"Confirmable: {s.passed_soft_threshold}",
        f"Rejected (constraints): {s.rejected_by_constraints}",
        f"Rejected (score): {s.rejected_by_score}",
    ]
    for rank, pool in enumerate(result.confirmable_pools, start=1):
        tier = pool.stability_tier.value if pool.stability_tier else "-"
        lines.append(
            f"  #{rank} cluster {pool.cluster_id}: {pool.total_pax} pax, "
            f"score {pool.quality_score}, tier {tier}, "
            f"{pool.total_route_km:.1f} km, +{pool.extra_time_minutes} min"
        )
    for r in result.rejected_pools:
        lines.append(f"  x cluster {r.pool.cluster_id}: {r.reason}: {'; '.join(r.violations)}")
    return "\n".join(lines)


# -------------------------
# Internal helpers
# -------------------------

def _quality_input(pool: PoolCandidate, policy: PoolingPolicy) -> QualityInput:
    ids = pool.booking_ids or [m.booking_id for m in pool.passenger_metrics]

    if pool.savings_percent:
        savings = [pool.savings_percent[i] for i in ids if i in pool.savings_percent]
    else:
        # no solo quotes: assume the pooled price is a fixed share of solo
        estimated = (1 - policy.assumed_pool_to_solo_ratio) * 100
        savings = [estimated] * max(pool.total_pax, 1)

    destinations = None
    if pool.destinations:
        destinations = [pool.destinations[i] for i in ids if i in pool.destinations]

    luggage = None
    if pool.luggage_counts:
        luggage = [pool.luggage_counts[i] for i in ids if i in pool.luggage_counts]

    return QualityInput(
        cluster_size=pool.total_pax,
        passenger_metrics=list(pool.passenger_metrics),
        savings_percent=savings,
        centroid=pool.centroid,
        destinations=destinations,
        luggage_counts=luggage,
    )


def _soft_threshold_failure(pool: PoolCandidate, policy: PoolingPolicy) -> Optional[str]:
    if pool.total_pax >= 3:
        return None
    if pool.total_pax == 2:
        score = pool.quality_score or 0.0
        if score >= policy.pair_min_quality_score:
            return None
        return f"Quality score {score} < {policy.pair_min_quality_score:g} (2-passenger threshold)"
    return f"Cluster size {pool.total_pax} cannot be pooled"


def _compare_pools(a: PoolCandidate, b: PoolCandidate, *, policy: PoolingPolicy) -> int:
    tol = policy.score_tie_tolerance

    score_diff = (b.quality_score or 0.0) - (a.quality_score or 0.0)
    if round(abs(score_diff), 6) >= tol:
        return 1 if score_diff > 0 else -1

    if a.total_pax != b.total_pax:
        return b.total_pax - a.total_pax

    time_diff = a.extra_time_minutes - b.extra_time_minutes
    if round(abs(time_diff), 6) >= tol:
        return 1 if time_diff > 0 else -1

    return a.waypoint_count - b.waypoint_count
