"""Shared test doubles for transport attempts."""

import asyncio
from collections.abc import Callable, Iterable

import pytest

from resilient_http.core.attempt import AbortableAttempt
from resilient_http.ports.transport import RawResponse, Signal, SocketInfo

__all__ = []


class ScriptedAttempt(AbortableAttempt):
    """Transport attempt replaying a fixed lifecycle.

    Emits socket, connection, upload, headers and body signals in nominal
    order, optionally sleeping before upload, headers and body end, or
    failing before the response (``error``) or while reading it
    (``body_error``).
    """

    def __init__(
        self,
        status: int = 200,
        headers: dict[str, str] | None = None,
        body: bytes = b"",
        *,
        error: BaseException | None = None,
        body_error: BaseException | None = None,
        reused: bool = False,
        secure: bool = False,
        upload_delay: float = 0.0,
        response_delay: float = 0.0,
        body_delay: float = 0.0,
    ) -> None:
        super().__init__()
        self.status = status
        self.headers = headers or {}
        self.body = body
        self.error = error
        self.body_error = body_error
        self.reused = reused
        self.secure = secure
        self.upload_delay = upload_delay
        self.response_delay = response_delay
        self.body_delay = body_delay

    async def _perform(self) -> RawResponse:
        self.signals.emit(Signal.SOCKET_ACQUIRED, SocketInfo(reused=self.reused, secure=self.secure))
        self.touch()
        if not self.reused:
            self.signals.emit(Signal.DNS_RESOLVED)
            self.signals.emit(Signal.TCP_CONNECTED)
            if self.secure:
                self.signals.emit(Signal.TLS_HANDSHAKE_COMPLETE)

        if self.error is not None:
            self.signals.emit(Signal.ERROR, self.error)
            raise self.error

        if self.upload_delay:
            await asyncio.sleep(self.upload_delay)
        self.signals.emit(Signal.UPLOAD_FINISHED)

        if self.response_delay:
            await asyncio.sleep(self.response_delay)
        self.signals.emit(Signal.RESPONSE_HEADERS_RECEIVED)
        self.touch()

        if self.body_delay:
            await asyncio.sleep(self.body_delay)
        if self.body_error is not None:
            self.signals.emit(Signal.RESPONSE_ERROR, self.body_error)
            raise self.body_error

        self.signals.emit(Signal.RESPONSE_BODY_ENDED)
        return RawResponse(status=self.status, headers=self.headers, body=self.body)


class AttemptSequence:
    """Attempt factory handing out prepared attempts in order."""

    def __init__(self, attempts: Iterable[ScriptedAttempt]) -> None:
        self._pending = list(attempts)
        self.created: list[ScriptedAttempt] = []

    def __call__(self) -> ScriptedAttempt:
        if not self._pending:
            raise AssertionError("More attempts requested than scripted")
        attempt = self._pending.pop(0)
        self.created.append(attempt)
        return attempt


@pytest.fixture
def scripted() -> type[ScriptedAttempt]:
    """Return the ScriptedAttempt class."""
    return ScriptedAttempt


@pytest.fixture
def attempt_sequence() -> Callable[..., AttemptSequence]:
    """Return a builder: ``attempt_sequence(a1, a2, ...)`` -> factory."""

    def build(*attempts: ScriptedAttempt) -> AttemptSequence:
        return AttemptSequence(attempts)

    return build


def json_body(status: int, text: str) -> ScriptedAttempt:
    return ScriptedAttempt(status, {"Content-Type": "application/json"}, text.encode())


@pytest.fixture
def json_attempt() -> Callable[[int, str], ScriptedAttempt]:
    """Return a builder of attempts answering ``status`` with a JSON body."""
    return json_body
