"""Transport port definition (lifecycle signals, raw response, attempt interface)."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "AttemptFactory",
    "RawResponse",
    "Signal",
    "SignalBus",
    "SocketInfo",
    "TransportAttempt",
]


class Signal(str, Enum):
    """Lifecycle signals emitted by a transport for one attempt.

    Each signal fires at most once per attempt.
    """

    ERROR = "error"
    SOCKET_ACQUIRED = "socket-acquired"
    DNS_RESOLVED = "dns-resolved"
    TCP_CONNECTED = "tcp-connected"
    TLS_HANDSHAKE_COMPLETE = "tls-handshake-complete"
    UPLOAD_FINISHED = "upload-finished"
    RESPONSE_HEADERS_RECEIVED = "response-headers-received"
    RESPONSE_BODY_ENDED = "response-body-ended"
    RESPONSE_ERROR = "response-error"


@dataclass(slots=True, frozen=True)
class SocketInfo:
    """Connection details carried by ``Signal.SOCKET_ACQUIRED``.

    Attributes:
        reused: True if the connection came from the pool.
        secure: True if the connection is (or will be) TLS-wrapped.
    """

    reused: bool = False
    secure: bool = False


@dataclass(slots=True, frozen=True)
class RawResponse:
    """Final status, headers and fully-buffered body of one attempt."""

    status: int
    headers: Mapping[str, str] | Sequence[tuple[str, str]]
    body: bytes = b""


@runtime_checkable
class SignalBus(Protocol):
    """One-shot signal delivery for a single attempt."""

    def once(self, signal: Signal, listener: Callable[..., None]) -> None:
        """Register ``listener`` for the next (and only) ``signal``."""
        ...

    def remove(self, signal: Signal, listener: Callable[..., None]) -> None:
        """Remove ``listener`` if it is still registered."""
        ...

    def emit(self, signal: Signal, *args: Any) -> bool:
        """Deliver ``signal``; False if it had already fired."""
        ...


class TransportAttempt(Protocol):
    """One in-flight transport operation.

    Must emit ``Signal`` notifications on ``signals`` while ``run()`` executes,
    stop when ``abort()`` is called, and support an idle-inactivity timer on
    the underlying connection.
    """

    signals: SignalBus

    async def run(self) -> RawResponse:
        """Perform the operation and return the buffered response."""
        ...

    def abort(self, error: BaseException) -> None:
        """Terminate the operation; ``run()`` then raises ``error``."""
        ...

    def set_idle_timeout(self, timeout_ms: float, callback: Callable[[], None]) -> None:
        """Call ``callback`` after ``timeout_ms`` of connection inactivity."""
        ...

    def clear_idle_timeout(self) -> None:
        """Disarm the idle-inactivity timer."""
        ...


AttemptFactory = Callable[[], TransportAttempt]
