"""Elapsed-time checkpoints for the lifecycle phases of one attempt."""

import time
from dataclasses import asdict, dataclass
from enum import Enum

__all__ = ["Phase", "PhaseTimer", "PhaseTimings"]


class Phase(str, Enum):
    """Measured lifecycle phases, in nominal order."""

    SOCKET = "socket"
    DNS = "dns"
    TCP_CONNECT = "tcp_connect"
    TLS = "tls"
    UPLOAD = "upload"
    RESPONSE = "response"
    DOWNLOAD = "download"
    TOTAL = "total"


@dataclass(slots=True, frozen=True)
class PhaseTimings:
    """Per-phase durations of one attempt, in milliseconds.

    Phases whose signal never fired (e.g. ``dns`` on a reused connection)
    stay at 0. ``total`` is the time until the last recorded checkpoint.
    """

    socket: float = 0.0
    dns: float = 0.0
    tcp_connect: float = 0.0
    tls: float = 0.0
    upload: float = 0.0
    response: float = 0.0
    download: float = 0.0
    total: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


class PhaseTimer:
    """Accumulates phase checkpoints relative to ``start()``.

    Each ``end_phase`` stores the time elapsed since the previous checkpoint
    and advances ``total``.
    """

    def __init__(self) -> None:
        self._offset: float | None = None
        self._values: dict[Phase, float] = {phase: 0.0 for phase in Phase}

    def start(self) -> None:
        self._offset = time.perf_counter()

    def end_phase(self, name: Phase | str) -> None:
        """Record a checkpoint for ``name``.

        Raises:
            ValueError: If ``name`` is not a known phase.
            RuntimeError: If the timer was never started.
        """
        try:
            phase = Phase(name)
        except ValueError:
            raise ValueError(f'Unknown phase "{name}"') from None
        if self._offset is None:
            raise RuntimeError("PhaseTimer.end_phase() called before start()")

        elapsed = (time.perf_counter() - self._offset) * 1_000.0
        self._values[phase] = elapsed - self._values[Phase.TOTAL]
        self._values[Phase.TOTAL] = elapsed

    @property
    def timings(self) -> PhaseTimings:
        """Immutable snapshot of the current values."""
        return PhaseTimings(**{phase.value: value for phase, value in self._values.items()})
