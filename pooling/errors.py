# pooling/errors.py

from __future__ import annotations


class InputError(ValueError):
    """
    Malformed input for a pipeline stage (no riders, missing waypoints,
    bad clustering parameters). Fatal for the current flight run.
    """
    pass


class PricingInvariantError(ArithmeticError):
    """
    Per-rider prices do not sum to the cluster total after the penny
    adjustment. Indicates a defect, never a user error.
    """
    pass
