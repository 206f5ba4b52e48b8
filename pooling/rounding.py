# pooling/rounding.py

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

CENT = Decimal("0.01")

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    """
    Decimal from a float via its shortest repr, so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Number) -> Decimal:
    """Quantize to the cent, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_half_up(value: Number, places: int = 0) -> float:
    """
    Half-up rounding for reported figures (Python's round() is banker's).
    """
    exp = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(exp, rounding=ROUND_HALF_UP))
