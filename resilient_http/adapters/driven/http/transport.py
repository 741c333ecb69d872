"""aiohttp transport collaborator: one abortable, signal-emitting attempt."""

import asyncio
import errno
import json
import logging
import socket

import aiohttp

from resilient_http.adapters.driven.http.tracing import ATTEMPT_CTX_KEY, active_attempt
from resilient_http.core.attempt import AbortableAttempt
from resilient_http.core.errors import TransportError
from resilient_http.ports.http import HttpPort
from resilient_http.ports.transport import RawResponse, Signal, SocketInfo

__all__ = ["AiohttpAttempt", "to_transport_error"]

logger = logging.getLogger(__name__)

_GAI_CODES = {
    socket.EAI_NONAME: "ENOTFOUND",
    socket.EAI_AGAIN: "EAI_AGAIN",
}


def to_transport_error(exc: BaseException) -> TransportError:
    """Map an aiohttp/OS exception to a TransportError with a stable code.

    Args:
        exc: Exception raised while talking to the server.

    Returns:
        TransportError whose ``code`` is None when the condition is unknown.
    """
    if isinstance(exc, TransportError):
        return exc
    message = str(exc) or exc.__class__.__name__

    if isinstance(exc, (aiohttp.ServerDisconnectedError, aiohttp.ClientPayloadError)):
        return TransportError(message, code="ECONNRESET")
    if isinstance(exc, (aiohttp.ServerTimeoutError, asyncio.TimeoutError)):
        return TransportError(message, code="ETIMEDOUT")

    os_error: BaseException | None = exc
    if isinstance(exc, aiohttp.ClientConnectorError):
        os_error = exc.os_error
    if isinstance(os_error, socket.gaierror):
        return TransportError(message, code=_GAI_CODES.get(os_error.errno, "ENOTFOUND"))
    if isinstance(os_error, OSError) and os_error.errno is not None:
        return TransportError(message, code=errno.errorcode.get(os_error.errno))
    return TransportError(message)


class AiohttpAttempt(AbortableAttempt):
    """Performs one request on a shared session and emits lifecycle signals.

    The session must carry the TraceConfig from ``build_trace_config()``;
    trace hooks call back into ``connection_acquired``, ``dns_resolved``,
    ``connection_established``, ``headers_sent``, ``chunk_sent``,
    ``headers_received`` and ``touch``. A ``TimedTCPConnector`` additionally
    reports ``socket_connected`` before any TLS handshake.

    Redirects are not followed: a 3xx is the final response of the attempt.
    """

    def __init__(self, session: aiohttp.ClientSession, req: HttpPort) -> None:
        """Initialize the attempt.

        Args:
            session: Open client session with the tracing config installed.
            req: Request to perform.
        """
        super().__init__()
        self._session = session
        self._req = req
        self._secure = req.url.lower().startswith("https://")
        self._headers = dict(req.headers)
        self._body: bytes | None = None
        if req.payload is not None:
            self._body = json.dumps(req.payload).encode("utf-8")
            self._headers.setdefault("content-type", "application/json")
        self._bytes_sent = 0

    async def _perform(self) -> RawResponse:
        token = active_attempt.set(self)
        try:
            resp = await self._session.request(
                self._req.method,
                self._req.url,
                data=self._body,
                headers=self._headers,
                allow_redirects=False,
                trace_request_ctx={ATTEMPT_CTX_KEY: self},
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            error = to_transport_error(exc)
            self.signals.emit(Signal.ERROR, error)
            raise error from exc
        finally:
            active_attempt.reset(token)

        try:
            body = await resp.read()
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            error = to_transport_error(exc)
            self.signals.emit(Signal.RESPONSE_ERROR, error)
            raise error from exc
        finally:
            resp.release()

        self.signals.emit(Signal.RESPONSE_BODY_ENDED)
        return RawResponse(status=resp.status, headers=list(resp.headers.items()), body=body)

    def connection_acquired(self, reused: bool) -> None:
        self.signals.emit(Signal.SOCKET_ACQUIRED, SocketInfo(reused=reused, secure=self._secure))
        self.touch()

    def dns_resolved(self) -> None:
        self.signals.emit(Signal.DNS_RESOLVED)

    def socket_connected(self) -> None:
        self.signals.emit(Signal.TCP_CONNECTED)
        self.touch()

    def connection_established(self) -> None:
        # No-op when the connector already reported the TCP connect
        self.signals.emit(Signal.TCP_CONNECTED)
        # aiohttp completes the TLS handshake before reporting the connection
        if self._secure:
            self.signals.emit(Signal.TLS_HANDSHAKE_COMPLETE)
        self.touch()

    def headers_sent(self) -> None:
        self.touch()
        if not self._body:
            self._upload_finished()

    def chunk_sent(self, chunk: bytes) -> None:
        self.touch()
        self._bytes_sent += len(chunk)
        if self._body is not None and self._bytes_sent >= len(self._body):
            self._upload_finished()

    def headers_received(self) -> None:
        self.touch()
        # Not every aiohttp version reports the end of the upload
        self._upload_finished()
        self.signals.emit(Signal.RESPONSE_HEADERS_RECEIVED)

    def _upload_finished(self) -> None:
        if self.signals.emit(Signal.UPLOAD_FINISHED):
            logger.debug(f"{self._req.method} {self._req.url}: request fully sent")
