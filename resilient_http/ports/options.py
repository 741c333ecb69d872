"""Execution options port (typed configuration value)."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from resilient_http.ports.backoff import BackoffPolicy

__all__ = ["Deadline", "ExecuteOptions"]


class Deadline(str, Enum):
    """Names of the independent attempt deadlines."""

    REQUEST = "timeoutRequest"
    RESPONSE = "timeoutResponse"
    IDLE_SOCKET = "timeoutIdleSocket"
    TOTAL = "timeoutTotal"


_DEADLINE_FIELDS = {
    Deadline.REQUEST: "timeout_request",
    Deadline.RESPONSE: "timeout_response",
    Deadline.IDLE_SOCKET: "timeout_idle_socket",
    Deadline.TOTAL: "timeout_total",
}


class ExecuteOptions(BaseModel):
    """Options recognized by ``execute``.

    Unknown keys are rejected. All durations are milliseconds.

    Attributes:
        measure_timings: Attach per-phase timings to the response.
        timeout_request: Deadline from attempt start until the request is fully sent.
        timeout_response: Deadline from upload completion until headers arrive.
        timeout_idle_socket: Maximum inactivity on the connection.
        timeout_total: Deadline for the whole attempt, body included.
        retry_backoff: Backoff policy; retries are disabled when absent.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    measure_timings: bool = False
    timeout_request: float | None = Field(default=None, gt=0)
    timeout_response: float | None = Field(default=None, gt=0)
    timeout_idle_socket: float | None = Field(default=None, gt=0)
    timeout_total: float | None = Field(default=None, gt=0)
    retry_backoff: BackoffPolicy | None = None

    def threshold(self, deadline: Deadline) -> float | None:
        """Return the configured threshold of ``deadline`` in ms, if any."""
        return getattr(self, _DEADLINE_FIELDS[deadline])

    @property
    def deadlines(self) -> dict[Deadline, float]:
        """Configured deadlines only."""
        configured: dict[Deadline, float] = {}
        for deadline in Deadline:
            value = self.threshold(deadline)
            if value is not None:
                configured[deadline] = value
        return configured

    @property
    def observes_lifecycle(self) -> bool:
        """True if the attempt needs a lifecycle observer."""
        return self.measure_timings or bool(self.deadlines)
