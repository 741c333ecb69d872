"""Independent deadlines over the lifecycle of one attempt."""

import asyncio
import logging
from collections.abc import Mapping

from resilient_http.core.errors import AttemptTimeoutError, format_ms
from resilient_http.ports.options import Deadline
from resilient_http.ports.transport import TransportAttempt

__all__ = ["TimeoutSupervisor"]

logger = logging.getLogger(__name__)


class TimeoutSupervisor:
    """Arms and disarms deadlines for exactly one attempt.

    A fired deadline disarms every other deadline and aborts the attempt with
    an ``AttemptTimeoutError``. Once ``disarm_all()`` ran the supervisor is
    closed and never fires again.
    """

    def __init__(self, attempt: TransportAttempt, thresholds: Mapping[Deadline, float]) -> None:
        """Initialize the supervisor.

        Args:
            attempt: Operation to abort when a deadline fires.
            thresholds: Configured deadlines in milliseconds; absent ones are never armed.
        """
        self._attempt = attempt
        self._thresholds = dict(thresholds)
        self._handles: dict[Deadline, asyncio.TimerHandle] = {}
        self._idle_armed = False
        self._closed = False

    @property
    def armed(self) -> set[Deadline]:
        armed = set(self._handles)
        if self._idle_armed:
            armed.add(Deadline.IDLE_SOCKET)
        return armed

    def arm(self, deadline: Deadline) -> None:
        """Start ``deadline`` if it is configured."""
        threshold = self._thresholds.get(deadline)
        if threshold is None or self._closed:
            return
        if deadline is Deadline.IDLE_SOCKET:
            self._attempt.set_idle_timeout(threshold, lambda: self.fire(Deadline.IDLE_SOCKET))
            self._idle_armed = True
            return

        self.disarm(deadline)
        loop = asyncio.get_running_loop()
        self._handles[deadline] = loop.call_later(threshold / 1000, self.fire, deadline)

    def disarm(self, deadline: Deadline) -> None:
        if deadline is Deadline.IDLE_SOCKET:
            if self._idle_armed:
                self._attempt.clear_idle_timeout()
                self._idle_armed = False
            return
        handle = self._handles.pop(deadline, None)
        if handle is not None:
            handle.cancel()

    def disarm_all(self) -> None:
        """Disarm every deadline and close the supervisor."""
        self._closed = True
        for deadline in list(self._handles):
            self.disarm(deadline)
        self.disarm(Deadline.IDLE_SOCKET)

    def fire(self, deadline: Deadline) -> None:
        """Abort the attempt because ``deadline`` expired."""
        if self._closed:
            return
        threshold = self._thresholds[deadline]
        self.disarm_all()
        logger.warning(
            f"Deadline {deadline.value} ({format_ms(threshold)}ms) expired, aborting attempt"
        )
        self._attempt.abort(AttemptTimeoutError(deadline, threshold))
