"""Back-off policy for polling failures.

Kept separate from the pollers so the ruleset stays pure and testable
without timers.
"""

from __future__ import annotations

from status_polling.core.constants import MAX_DELAY_MS

_MAX_EXPONENT = 64


def next_delay(
    failure_count: int,
    base_interval_ms: float,
    max_delay_ms: float = MAX_DELAY_MS,
) -> float:
    """Return the delay before the next tick after *failure_count* failures.

    No penalty is applied until the first failure. From then on the delay
    doubles per consecutive failure and is capped at *max_delay_ms*.  The
    result never drops below *base_interval_ms*, even when the base itself
    is larger than the cap.

    Args:
        failure_count: Consecutive failures since the last success.
        base_interval_ms: The caller's requested interval.
        max_delay_ms: Upper bound for the backed-off delay.

    Returns:
        Delay in milliseconds.
    """
    if failure_count <= 0:
        return base_interval_ms
    # 2**64 already exceeds any cap; keeps float bases from overflowing.
    exponent = min(failure_count, _MAX_EXPONENT)
    capped = min(base_interval_ms * (2**exponent), max_delay_ms)
    return max(capped, base_interval_ms)
