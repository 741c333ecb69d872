"""Backoff policy port."""

from collections.abc import Callable

__all__ = ["BackoffPolicy"]

# (retry_index, last_error) -> delay in milliseconds, or None to stop retrying
BackoffPolicy = Callable[[int, BaseException | None], float | None]
