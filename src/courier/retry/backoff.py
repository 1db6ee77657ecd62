"""Exponential backoff with optional jitter.

Uses exponential backoff: 1s, 2s, 4s, 8s, 16s, ... capped at max_delay.
"""

from __future__ import annotations

import random
from datetime import timedelta

from courier.models import RetryPolicy


def calculate_delay(attempt: int, policy: RetryPolicy) -> timedelta:
    """Delay before the retry following zero-based ``attempt``.

    ``min(base_delay * multiplier ** attempt, max_delay)``
    """
    if attempt < 0:
        attempt = 0
    base = policy.base_delay.total_seconds()
    cap = policy.max_delay.total_seconds()
    try:
        seconds = base * policy.multiplier**attempt
    except OverflowError:
        seconds = cap
    return timedelta(seconds=min(seconds, cap))


class BackoffPolicy:
    """Computes retry delays for a RetryPolicy.

    The randomness source is injected so tests can seed it and so each
    policy owns its own generator instead of sharing module state.
    """

    def __init__(self, policy: RetryPolicy, rng: random.Random | None = None) -> None:
        self.policy = policy
        self._rng = rng or random.Random()

    def delay(self, attempt: int) -> timedelta:
        """Un-jittered delay for zero-based ``attempt``."""
        return calculate_delay(attempt, self.policy)

    def delay_with_jitter(self, attempt: int) -> timedelta:
        """Delay perturbed uniformly by up to +/- jitter_fraction.

        A perturbation that would make the delay negative falls back to the
        un-jittered delay.
        """
        delay = self.delay(attempt)
        fraction = self.policy.jitter_fraction
        if fraction <= 0:
            return delay

        seconds = delay.total_seconds()
        spread = seconds * fraction
        jittered = seconds + self._rng.uniform(-spread, spread)
        if jittered < 0:
            return delay
        return timedelta(seconds=jittered)
