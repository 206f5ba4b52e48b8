"""
Purpose: Central configuration for pooling behavior (single source of truth).
What it does:

Stores all tunable thresholds/caps:

EPS_KM = 8.5 (DBSCAN neighborhood radius)

MIN_GROUP_SIZE = 2, MAX_GROUP_SIZE = 7, SPLIT_GROUP_SIZE = 4

DRIVER_RATE = 2.00 per km

PLATFORM_FEE_TIERS = <=50 km: 0.30, <=99 km: 0.25, beyond: 0.20

MAX_DETOUR_PERCENT = 20, MAX_EXTRA_TIME_MINUTES = 10

PAIR limits = 10% detour, 6 minutes extra, score >= 70

Optionally reads overrides from the environment (.env via python-dotenv).

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

# pooling/policy.py

from __future__ import annotations

import math
import os
from dataclasses import dataclass, replace
from typing import Tuple

from dotenv import load_dotenv


@dataclass(frozen=True)
class PoolingPolicy:
    """
    Central configuration for airport ride pooling.

    Keep all pooling thresholds here so behavior can be tuned without
    touching clustering/pricing/scoring/ranking.

    Notes:
    - detour_percent = (km_onboard - direct_km) / direct_km * 100
    - 'pair_*' limits only apply to 2-rider pools, which must earn their
      place with a higher quality score.
    """

    # --- Spatial clustering (DBSCAN) ---
    eps_km: float = 8.5
    min_samples: int = 2

    # --- Group size rules ---
    min_group_size: int = 2
    max_group_size: int = 7
    # Oversized clusters are cut into contiguous latitude chunks of this size.
    split_group_size: int = 4

    # --- Time estimation ---
    average_speed_kmh: float = 50.0
    # If True and the routing service returned per-leg durations,
    # on-board minutes come from the service instead of the speed estimate.
    use_service_durations: bool = False

    # --- Pricing ---
    driver_rate: float = 2.00
    # (upper km bound inclusive, rate per km), checked in order.
    platform_fee_tiers: Tuple[Tuple[float, float], ...] = (
        (50.0, 0.30),
        (99.0, 0.25),
        (math.inf, 0.20),
    )
    # Platform rate assumed when quoting the same trip as a solo ride.
    solo_platform_rate: float = 0.25
    # Ranker's savings estimate when a candidate carries no solo prices.
    assumed_pool_to_solo_ratio: float = 0.75

    # --- Hard constraints (any rider) ---
    max_detour_percent: float = 20.0
    max_extra_time_minutes: float = 10.0

    # --- 2-rider pools ---
    pair_max_detour_percent: float = 10.0
    pair_max_extra_time_minutes: float = 6.0
    pair_min_quality_score: float = 70.0

    # --- Compatibility ---
    corridor_full_km: float = 8.0
    corridor_zero_km: float = 12.0
    luggage_full: int = 4
    luggage_zero: int = 6

    # --- Ranking ---
    score_tie_tolerance: float = 0.1

    def validate(self) -> None:
        """
        Basic sanity checks. Call once at startup if you want.
        """
        if self.eps_km <= 0:
            raise ValueError("eps_km must be > 0")

        if self.min_samples < 1:
            raise ValueError("min_samples must be >= 1")

        if self.min_group_size < 1:
            raise ValueError("min_group_size must be >= 1")

        if self.max_group_size < self.min_group_size:
            raise ValueError("max_group_size must be >= min_group_size")

        if not self.min_group_size <= self.split_group_size <= self.max_group_size:
            raise ValueError("split_group_size must be within [min_group_size, max_group_size]")

        if self.average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be > 0")

        if self.driver_rate < 0 or self.solo_platform_rate < 0:
            raise ValueError("rates must be >= 0")

        if not self.platform_fee_tiers:
            raise ValueError("platform_fee_tiers must not be empty")

        bounds = [upper for upper, _ in self.platform_fee_tiers]
        if bounds != sorted(bounds) or bounds[-1] != math.inf:
            raise ValueError("platform_fee_tiers must be ascending and end with an open tier")

        if not 0 < self.assumed_pool_to_solo_ratio <= 1:
            raise ValueError("assumed_pool_to_solo_ratio must be in (0, 1]")

        if self.corridor_zero_km <= self.corridor_full_km:
            raise ValueError("corridor_zero_km must be > corridor_full_km")

        if self.luggage_zero <= self.luggage_full:
            raise ValueError("luggage_zero must be > luggage_full")

        if self.score_tie_tolerance < 0:
            raise ValueError("score_tie_tolerance must be >= 0")


def default_policy() -> PoolingPolicy:
    """
    Convenience factory for the default policy.
    """
    p = PoolingPolicy()
    p.validate()
    return p


def policy_from_env() -> PoolingPolicy:
    """
    Default policy with overrides from the environment / .env file.

    Example in .env:
    POOLING_EPS_KM=6.0
    POOLING_MIN_SAMPLES=2
    POOLING_DRIVER_RATE=2.25
    POOLING_AVERAGE_SPEED_KMH=45
    """
    load_dotenv()

    overrides = {}
    eps_km = os.getenv("POOLING_EPS_KM")
    if eps_km:
        overrides["eps_km"] = float(eps_km)

    min_samples = os.getenv("POOLING_MIN_SAMPLES")
    if min_samples:
        overrides["min_samples"] = int(min_samples)

    driver_rate = os.getenv("POOLING_DRIVER_RATE")
    if driver_rate:
        overrides["driver_rate"] = float(driver_rate)

    speed = os.getenv("POOLING_AVERAGE_SPEED_KMH")
    if speed:
        overrides["average_speed_kmh"] = float(speed)

    p = replace(PoolingPolicy(), **overrides)
    p.validate()
    return p
