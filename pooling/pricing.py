"""
Purpose: Fair price split for a pooled trip.
What it does:

- driver cost: whole route km * driver rate, split equally between riders

- platform fee: each rider's own km on board * tiered rate
  (<=50 km: 0.30, <=99 km: 0.25, beyond: 0.20 per km)

- total price per rider rounded half-up to the cent

- penny adjustment: whatever rounding lost or gained against the cluster
  grand total goes to the first rider, so the prices always add up exactly

Also quotes solo prices and per-rider savings.

Rule: All money is Decimal. Floats only for distances and percentages.
"""

# pooling/pricing.py

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import InputError, PricingInvariantError
from .geo import haversine_km
from .models import (
    Booking,
    ClusterPricing,
    LatLon,
    PassengerPricing,
    PricingBreakdown,
    PricingValidation,
    RiderSavings,
)
from .policy import PoolingPolicy, default_policy
from .rounding import CENT, round_half_up, to_decimal, to_money

logger = logging.getLogger(__name__)


def platform_rate_for(km_onboard: float, policy: Optional[PoolingPolicy] = None) -> Decimal:
    """
    Per-km platform rate for a rider's distance on board.
    """
    policy = policy or default_policy()
    for upper_km, rate in policy.platform_fee_tiers:
        if km_onboard <= upper_km:
            return to_decimal(rate)
    # validate() guarantees an open last tier
    return to_decimal(policy.platform_fee_tiers[-1][1])


def calculate_pricing(
    total_route_km: float,
    passenger_km: Sequence[Tuple[str, float]],
    policy: Optional[PoolingPolicy] = None,
) -> ClusterPricing:
    """
    Split the cost of one pooled trip.

    Inputs:
      - total_route_km: length of the whole pooled route
      - passenger_km: (booking_id, km_onboard) per rider, in the order the
        penny adjustment should favor (first rider absorbs it)

    Output:
      - ClusterPricing with sum(total_price) == grand_total exactly

    Raises InputError for zero riders or negative distances.
    """
    policy = policy or default_policy()

    if not passenger_km:
        raise InputError("cannot price a pool with zero passengers")
    if total_route_km < 0:
        raise InputError("total_route_km must be >= 0")

    n = len(passenger_km)
    route_km = to_decimal(total_route_km)
    driver_rate = to_decimal(policy.driver_rate)

    driver_total = route_km * driver_rate
    driver_share = driver_total / n

    fees: List[Decimal] = []
    rates: List[Decimal] = []
    originals: List[Decimal] = []
    for booking_id, km in passenger_km:
        if km < 0:
            raise InputError(f"km_onboard must be >= 0 (booking {booking_id})")
        rate = platform_rate_for(km, policy)
        fee = to_decimal(km) * rate
        rates.append(rate)
        fees.append(fee)
        originals.append(to_money(driver_share + fee))

    fee_total = sum(fees, Decimal("0"))
    grand_total = to_money(driver_total + fee_total)

    totals, adjustment = apply_penny_adjustment(originals, grand_total)

    passengers: List[PassengerPricing] = []
    for i, (booking_id, km) in enumerate(passenger_km):
        share = (km / total_route_km * 100.0) if total_route_km > 0 else 0.0
        passengers.append(
            PassengerPricing(
                booking_id=booking_id,
                km_onboard=km,
                driver_cost=to_money(driver_share),
                platform_fee=to_money(fees[i]),
                total_price=totals[i],
                share_percent=round_half_up(share, 2),
                breakdown=PricingBreakdown(
                    driver_rate=driver_rate,
                    platform_rate=rates[i],
                    original_total=originals[i],
                    penny_adjustment=adjustment if i == 0 else Decimal("0.00"),
                ),
            )
        )

    difference = abs(grand_total - sum(totals, Decimal("0")))
    validation = PricingValidation(sum_matches_total=difference < CENT, difference=difference)
    if not validation.sum_matches_total:
        logger.error(
            "pricing invariant violated: grand_total=%s sum=%s riders=%d",
            grand_total, sum(totals, Decimal("0")), n,
        )
        raise PricingInvariantError(
            f"passenger prices differ from grand total {grand_total} by {difference}"
        )

    return ClusterPricing(
        total_route_km=total_route_km,
        total_driver_cost=to_money(driver_total),
        total_platform_fee=to_money(fee_total),
        grand_total=grand_total,
        passengers=passengers,
        validation=validation,
    )


def apply_penny_adjustment(
    totals: Sequence[Decimal],
    grand_total: Decimal,
) -> Tuple[List[Decimal], Decimal]:
    """
    Move the rounding difference onto the first total.

    Returns (adjusted totals, adjustment applied).
    """
    adjusted = list(totals)
    if not adjusted:
        return adjusted, Decimal("0.00")

    adjustment = grand_total - sum(adjusted, Decimal("0"))
    adjusted[0] = adjusted[0] + adjustment
    return adjusted, adjustment


def estimate_solo_prices(
    bookings: Sequence[Booking],
    airport: LatLon,
    policy: Optional[PoolingPolicy] = None,
) -> Dict[str, Decimal]:
    """
    What each rider would pay riding alone: direct km * (driver rate + solo platform rate).
    """
    policy = policy or default_policy()
    per_km = to_decimal(policy.driver_rate) + to_decimal(policy.solo_platform_rate)
    return {
        b.id: to_money(to_decimal(haversine_km(airport, b.destination)) * per_km)
        for b in bookings
    }


def calculate_savings(
    pricing: ClusterPricing,
    solo_prices: Mapping[str, Decimal],
) -> List[RiderSavings]:
    """
    Per-rider savings against their solo quote.
    """
    out: List[RiderSavings] = []
    for p in pricing.passengers:
        if p.booking_id not in solo_prices:
            raise InputError(f"no solo price for booking {p.booking_id}")
        solo = to_money(solo_prices[p.booking_id])
        saving = solo - p.total_price
        percent = float(saving / solo * 100) if solo > 0 else 0.0
        out.append(
            RiderSavings(
                booking_id=p.booking_id,
                pool_price=p.total_price,
                solo_price=solo,
                savings=saving,
                savings_percent=round_half_up(percent, 1),
            )
        )
    return out


def pricing_summary(pricing: ClusterPricing) -> str:
    lines = [
        f"Route: {pricing.total_route_km:.2f} km, {len(pricing.passengers)} passengers",
        f"Driver cost: ${pricing.total_driver_cost}  Platform fees: ${pricing.total_platform_fee}",
        f"Grand total: ${pricing.grand_total}",
    ]
    for p in pricing.passengers:
        line = (
            f"  {p.booking_id}: {p.km_onboard:.2f} km ({p.share_percent:.1f}%) "
            f"driver ${p.driver_cost} + fee ${p.platform_fee} = ${p.total_price}"
        )
        if p.breakdown.penny_adjustment != 0:
            line += f" (adjusted {p.breakdown.penny_adjustment:+})"
        lines.append(line)
    status = "OK" if pricing.validation.sum_matches_total else "MISMATCH"
    lines.append(f"Sum check: {status} (difference {pricing.validation.difference})")
    return "\n".join(lines)
