"""Failure kinds surfaced by the attempt engine."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from resilient_http.ports.options import Deadline

if TYPE_CHECKING:
    from resilient_http.core.response_builder import Response

__all__ = [
    "AttemptFailure",
    "AttemptTimeoutError",
    "FailureKind",
    "ResponseError",
    "TransportError",
    "format_ms",
]


def format_ms(value: float) -> str:
    """Render a millisecond value as configured: ``1200000``, ``2.5``."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


class FailureKind(Enum):
    """Closed set of failure variants."""

    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    NON_SUCCESS_STATUS = "non_success_status"
    UNPARSEABLE_BODY = "unparseable_body"


class AttemptFailure(Exception):
    """Base class of every failure raised by an attempt.

    Attributes:
        kind: Variant tag.
        message: Human-readable description.
        status_code: HTTP status of the triggering response, if any.
        code: Transport error code (e.g. ``ECONNRESET``), if any.
        failed_attempts: Prior failures; set only on the retry path.
        attempt_count: ``len(failed_attempts) + 1``; set only on the retry path.
    """

    kind: FailureKind
    status_code: int | None = None
    code: str | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.failed_attempts: tuple[BaseException, ...] | None = None
        self.attempt_count: int | None = None


class TransportError(AttemptFailure):
    """Network-level failure before a complete response was obtained."""

    kind = FailureKind.TRANSPORT

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class AttemptTimeoutError(AttemptFailure):
    """A supervised deadline fired and the attempt was aborted."""

    kind = FailureKind.TIMEOUT
    code = "ETIMEDOUT"

    def __init__(self, deadline: Deadline, threshold_ms: float) -> None:
        super().__init__(
            f'Timeout "{deadline.value}" triggered after {format_ms(threshold_ms)}ms'
        )
        self.deadline = deadline
        self.threshold_ms = threshold_ms


class ResponseError(AttemptFailure):
    """A complete response was received but cannot be returned as success."""

    def __init__(self, message: str, response: Response, kind: FailureKind) -> None:
        super().__init__(message)
        self.kind = kind
        self.response = response
        self.status_code = response.status_code
        self.body: Any = response.body
