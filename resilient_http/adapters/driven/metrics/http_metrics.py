"""In-memory sliding-window metrics for HTTP calls."""

from __future__ import annotations

import statistics
from collections import deque
from dataclasses import dataclass

from resilient_http.ports.metrics import CallRecordDto, MetricsPort

__all__ = ["Metrics"]


@dataclass(slots=True, frozen=True)
class _Sample:
    """Internal record for one call."""

    latency_ms: float
    failed: bool
    status_code: int
    attempt_count: int


class Metrics(MetricsPort):
    """Fast, lock-free metrics for async context.

    Tracks:
    - Average latency of a call (all attempts and backoff sleeps included).
    - Failure rate (calls that surfaced an error).
    - Average attempts per call.
    - Last status code.
    - Total calls seen.

    Not thread-safe; create one instance per event loop.
    """

    def __init__(self, *, window_size: int = 100) -> None:
        """Initialize metrics collector.

        Args:
            window_size: Number of recent calls to keep for statistics.
        """
        self._window: deque[_Sample] = deque(maxlen=window_size)
        self._total_seen: int = 0

    def update(self, record: CallRecordDto) -> None:
        """Record a finished call.

        Args:
            record: Call with timing and result info.
        """
        latency_ms = (record.finished_at_sec - record.started_at_sec) * 1_000.0
        self._window.append(
            _Sample(
                latency_ms=latency_ms,
                failed=record.is_failed,
                status_code=record.status_code or 0,
                attempt_count=record.attempt_count,
            )
        )
        self._total_seen += 1

    def __str__(self) -> str:
        """Return human-readable one-line summary for logging.

        Returns:
            Formatted metrics string.
        """
        if not self._window:
            return "Metrics: waiting for data …"

        n_window = len(self._window)
        failures = sum(1 for s in self._window if s.failed)
        fail_pct = (failures / n_window) * 100
        avg_latency = statistics.fmean(s.latency_ms for s in self._window)
        avg_attempts = statistics.fmean(s.attempt_count for s in self._window)
        last = self._window[-1]

        return (
            f"latency={avg_latency:6.1f} ms | "
            f"status={last.status_code:3d} | "
            f"fail={fail_pct:5.1f}% | "
            f"attempts={avg_attempts:4.2f} | "
            f"win={n_window}/{self._window.maxlen} | "
            f"total={self._total_seen}"
        )
