"""Metrics port definition (interface and DTO)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

__all__ = ["CallRecordDto", "MetricsPort"]


@dataclass(slots=True, frozen=True)
class CallRecordDto:
    """Immutable snapshot of a single finished call (all attempts included).

    Attributes:
        started_at_sec: Monotonic seconds when the call started.
        finished_at_sec: Monotonic seconds when the call finalized.
        is_failed: True if the call surfaced an error.
        status_code: Final HTTP status code when a response arrived; None otherwise.
        attempt_count: Number of attempts performed.
    """

    started_at_sec: float
    finished_at_sec: float
    is_failed: bool = False
    status_code: int | None = None
    attempt_count: int = 1


class MetricsPort(Protocol):
    """Interface for recording call metrics.

    Implementations must be async-safe and non-blocking.
    The HTTP client calls update() after each call; presentation layers call
    __str__() to render summaries.
    """

    def update(self, record: CallRecordDto, /) -> None:
        """Record a finished call.

        Args:
            record: The call to record.
        """
        ...

    def __str__(self) -> str:
        """Return concise textual summary for humans.

        Returns:
            Formatted metrics string.
        """
        ...
