"""
Purpose: Retry configuration for routing service calls.
What it does:

MAX_RETRIES = 3 (retries after the first attempt)

BASE_DELAY_MS = 1000, doubled per retry -> sleeps of 1s, 2s, 4s

Rule: No logic here beyond the delay schedule.
"""

# routing/policy.py

from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_ms: int = 1000
    backoff_multiplier: float = 2.0

    def validate(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")

        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")

    def delay_seconds(self, retry_number: int) -> float:
        """
        Sleep before retry number `retry_number` (1-based).
        """
        return self.base_delay_ms * (self.backoff_multiplier ** (retry_number - 1)) / 1000.0

    def delays_seconds(self) -> List[float]:
        return [self.delay_seconds(i) for i in range(1, self.max_retries + 1)]


def default_retry_policy() -> RetryPolicy:
    """
    Convenience factory for the default retry policy.
    """
    p = RetryPolicy()
    p.validate()
    return p
