"""Default exponential backoff policy."""

import random

from resilient_http.ports.backoff import BackoffPolicy

__all__ = ["exponential_backoff"]


def exponential_backoff(
    limit: int = 3,
    min_delay: float = 100,
    max_delay: float = 1000,
    jitter: bool = True,
    fast_first: bool = False,
) -> BackoffPolicy:
    """Build an exponential backoff policy.

    Args:
        limit: Highest retry index that still yields a delay.
        min_delay: Base delay in milliseconds.
        max_delay: Upper bound of any delay in milliseconds.
        jitter: Multiply delays by a random factor in [1, 2).
        fast_first: Return 1ms for retry index 0.

    Returns:
        Policy mapping ``(retry_index, error)`` to a delay in ms, or None to stop.

    Example:
        >>> policy = exponential_backoff(jitter=False, limit=2)
        >>> [policy(i, None) for i in range(4)]
        [100, 200, 400, None]
    """

    def policy(retry_index: int, error: BaseException | None = None) -> float | None:
        if retry_index > limit:
            return None
        if retry_index == 0 and fast_first:
            return 1
        jitter_factor = random.random() + 1 if jitter else 1
        return min(max_delay, 2**retry_index * min_delay * jitter_factor)

    return policy
