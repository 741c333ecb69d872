"""Tests for the aiohttp transport attempt and trace wiring."""

import asyncio
import errno
import socket
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from resilient_http.adapters.driven.http.tracing import (
    ATTEMPT_CTX_KEY,
    TimedTCPConnector,
    active_attempt,
    build_trace_config,
)
from resilient_http.adapters.driven.http.transport import AiohttpAttempt, to_transport_error
from resilient_http.core.errors import TransportError
from resilient_http.ports.http import HttpPort
from resilient_http.ports.transport import Signal, SocketInfo

__all__ = []


def recorder(attempt: AiohttpAttempt) -> list[tuple[Signal, tuple]]:
    """Subscribe to every signal of ``attempt`` and record deliveries."""
    seen: list[tuple[Signal, tuple]] = []
    for signal in Signal:
        attempt.signals.once(signal, lambda *args, s=signal: seen.append((s, args)))
    return seen


@pytest.mark.parametrize(
    "exc,code",
    [
        (aiohttp.ServerDisconnectedError(), "ECONNRESET"),
        (aiohttp.ClientPayloadError("truncated"), "ECONNRESET"),
        (asyncio.TimeoutError(), "ETIMEDOUT"),
        (ConnectionRefusedError(errno.ECONNREFUSED, "refused"), "ECONNREFUSED"),
        (BrokenPipeError(errno.EPIPE, "pipe"), "EPIPE"),
        (socket.gaierror(socket.EAI_NONAME, "unknown host"), "ENOTFOUND"),
        (socket.gaierror(socket.EAI_AGAIN, "try again"), "EAI_AGAIN"),
        (aiohttp.ClientError("weird"), None),
    ],
)
def test_to_transport_error_codes(exc: BaseException, code: str | None) -> None:
    """aiohttp and OS exceptions should map to stable codes."""
    error = to_transport_error(exc)

    assert isinstance(error, TransportError)
    assert error.code == code
    assert error.message


def test_to_transport_error_unwraps_connector_error() -> None:
    """ClientConnectorError should be classified by its OS error."""
    exc = aiohttp.ClientConnectorError(Mock(), OSError(errno.ENETUNREACH, "unreachable"))

    assert to_transport_error(exc).code == "ENETUNREACH"


def test_to_transport_error_keeps_transport_errors() -> None:
    """Already-mapped errors should pass through."""
    error = TransportError("x", code="EPIPE")

    assert to_transport_error(error) is error


def test_secure_connection_signals() -> None:
    """A new https connection should report TCP and TLS completion."""
    attempt = AiohttpAttempt(Mock(), HttpPort(url="https://example.com/"))
    seen = recorder(attempt)

    attempt.connection_acquired(reused=False)
    attempt.dns_resolved()
    attempt.connection_established()

    assert [signal for signal, _ in seen] == [
        Signal.SOCKET_ACQUIRED,
        Signal.DNS_RESOLVED,
        Signal.TCP_CONNECTED,
        Signal.TLS_HANDSHAKE_COMPLETE,
    ]
    assert seen[0][1] == (SocketInfo(reused=False, secure=True),)


def test_tls_handshake_measured_after_socket_connect() -> None:
    """With the connector hook, TCP completes before the handshake ends."""
    attempt = AiohttpAttempt(Mock(), HttpPort(url="https://example.com/"))
    seen = recorder(attempt)

    attempt.connection_acquired(reused=False)
    attempt.socket_connected()
    assert [signal for signal, _ in seen][-1] is Signal.TCP_CONNECTED

    attempt.connection_established()

    assert [signal for signal, _ in seen] == [
        Signal.SOCKET_ACQUIRED,
        Signal.TCP_CONNECTED,
        Signal.TLS_HANDSHAKE_COMPLETE,
    ]


def test_plain_connection_skips_tls_signal() -> None:
    """http connections never report a TLS handshake."""
    attempt = AiohttpAttempt(Mock(), HttpPort(url="http://example.com/"))
    seen = recorder(attempt)

    attempt.connection_established()

    assert [signal for signal, _ in seen] == [Signal.TCP_CONNECTED]


def test_upload_finished_after_whole_body() -> None:
    """UPLOAD_FINISHED should fire once every body byte was written."""
    attempt = AiohttpAttempt(Mock(), HttpPort(url="http://x/", method="POST", payload={"a": 1}))
    seen = recorder(attempt)
    body = b'{"a": 1}'

    attempt.headers_sent()
    attempt.chunk_sent(body[:3])
    assert seen == []

    attempt.chunk_sent(body[3:])
    attempt.headers_received()

    assert [signal for signal, _ in seen] == [
        Signal.UPLOAD_FINISHED,
        Signal.RESPONSE_HEADERS_RECEIVED,
    ]


def test_upload_finished_on_headers_without_body() -> None:
    """Requests without body are fully sent with their headers."""
    attempt = AiohttpAttempt(Mock(), HttpPort(url="http://x/"))
    seen = recorder(attempt)

    attempt.headers_sent()

    assert [signal for signal, _ in seen] == [Signal.UPLOAD_FINISHED]


def test_json_payload_sets_content_type() -> None:
    """JSON payloads should default the content type."""
    attempt = AiohttpAttempt(Mock(), HttpPort(url="http://x/", method="PUT", payload=[1]))

    assert attempt._headers["content-type"] == "application/json"
    assert attempt._body == b"[1]"


@pytest.mark.asyncio
async def test_failure_before_response_emits_error() -> None:
    """Connection failures should emit ERROR and raise a TransportError."""
    session = Mock()
    session.request = AsyncMock(side_effect=ConnectionResetError(errno.ECONNRESET, "reset"))
    attempt = AiohttpAttempt(session, HttpPort(url="http://x/"))
    seen = recorder(attempt)

    with pytest.raises(TransportError) as exc_info:
        await attempt.run()

    assert exc_info.value.code == "ECONNRESET"
    assert seen == [(Signal.ERROR, (exc_info.value,))]


@pytest.mark.asyncio
async def test_body_failure_emits_response_error() -> None:
    """Body read failures should emit RESPONSE_ERROR."""
    resp = Mock()
    resp.read = AsyncMock(side_effect=aiohttp.ClientPayloadError("cut"))
    session = Mock()
    session.request = AsyncMock(return_value=resp)
    attempt = AiohttpAttempt(session, HttpPort(url="http://x/"))
    seen = recorder(attempt)

    with pytest.raises(TransportError):
        await attempt.run()

    assert [signal for signal, _ in seen] == [Signal.RESPONSE_ERROR]
    resp.release.assert_called_once()


@pytest.mark.asyncio
async def test_trace_hooks_route_to_attempt() -> None:
    """Trace hooks should call back into the attempt named in the request context."""
    trace_config = build_trace_config()
    attempt = Mock()
    ctx = SimpleNamespace(trace_request_ctx={ATTEMPT_CTX_KEY: attempt})

    await trace_config.on_connection_reuseconn[0](Mock(), ctx, Mock())
    await trace_config.on_request_end[0](Mock(), ctx, Mock())

    attempt.connection_acquired.assert_called_once_with(reused=True)
    attempt.headers_received.assert_called_once_with()


@pytest.mark.asyncio
async def test_trace_hooks_ignore_foreign_requests() -> None:
    """Requests without an attempt context should be ignored."""
    trace_config = build_trace_config()
    ctx = SimpleNamespace(trace_request_ctx=None)

    await trace_config.on_connection_create_start[0](Mock(), ctx, Mock())
    await trace_config.on_request_chunk_sent[0](Mock(), ctx, Mock())


@pytest.mark.asyncio
async def test_connector_reports_socket_connect_of_active_attempt() -> None:
    """The protocol factory should mark the TCP connect of the running attempt."""
    attempt = Mock()
    factory = Mock(return_value="protocol")
    wrapped_create = AsyncMock(return_value=("transport", "protocol"))
    connector = TimedTCPConnector()

    try:
        with patch.object(aiohttp.TCPConnector, "_wrap_create_connection", wrapped_create):
            token = active_attempt.set(attempt)
            try:
                await connector._wrap_create_connection(factory, req=Mock(), timeout=Mock())
            finally:
                active_attempt.reset(token)
    finally:
        await connector.close()

    connected_protocol = wrapped_create.call_args[0][0]
    attempt.socket_connected.assert_not_called()
    assert connected_protocol() == "protocol"
    attempt.socket_connected.assert_called_once_with()
    factory.assert_called_once_with()


@pytest.mark.asyncio
async def test_connector_passes_factory_through_without_attempt() -> None:
    """Connections opened outside an attempt should be left untouched."""
    factory = Mock()
    wrapped_create = AsyncMock(return_value=("transport", "protocol"))
    connector = TimedTCPConnector()

    try:
        with patch.object(aiohttp.TCPConnector, "_wrap_create_connection", wrapped_create):
            await connector._wrap_create_connection(factory, req=Mock(), timeout=Mock())
    finally:
        await connector.close()

    assert wrapped_create.call_args[0][0] is factory


@pytest.mark.asyncio
async def test_request_runs_without_redirects_and_with_active_attempt() -> None:
    """The attempt should be visible to the connector while the request runs."""
    seen_attempts: list[object] = []
    resp = Mock(status=302, headers={"Location": "/elsewhere"})
    resp.read = AsyncMock(return_value=b"")

    async def request(*args: object, **kwargs: object) -> Mock:
        seen_attempts.append(active_attempt.get())
        return resp

    session = Mock()
    session.request = AsyncMock(side_effect=request)
    attempt = AiohttpAttempt(session, HttpPort(url="http://x/"))

    raw = await attempt.run()

    assert raw.status == 302
    assert seen_attempts == [attempt]
    assert session.request.call_args.kwargs["allow_redirects"] is False
    assert active_attempt.get() is None
