"""aiohttp trace hooks forwarding connection events to the owning attempt."""

from __future__ import annotations

from collections.abc import Callable
from contextvars import ContextVar
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

import aiohttp

if TYPE_CHECKING:
    from resilient_http.adapters.driven.http.transport import AiohttpAttempt

__all__ = ["ATTEMPT_CTX_KEY", "TimedTCPConnector", "active_attempt", "build_trace_config"]

# Key under which the attempt is passed via ``trace_request_ctx``
ATTEMPT_CTX_KEY = "attempt"

# Attempt performing a request in the current task
active_attempt: ContextVar[AiohttpAttempt | None] = ContextVar("active_attempt", default=None)


def _attempt_of(trace_config_ctx: SimpleNamespace) -> AiohttpAttempt | None:
    """Return the attempt a traced request belongs to, if any."""
    request_ctx = getattr(trace_config_ctx, "trace_request_ctx", None)
    if not request_ctx:
        return None
    return request_ctx.get(ATTEMPT_CTX_KEY)


async def _on_connection_create_start(
    session: aiohttp.ClientSession, ctx: SimpleNamespace, params: Any
) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.connection_acquired(reused=False)


async def _on_connection_reuseconn(
    session: aiohttp.ClientSession, ctx: SimpleNamespace, params: Any
) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.connection_acquired(reused=True)


async def _on_dns_resolved(session: aiohttp.ClientSession, ctx: SimpleNamespace, params: Any) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.dns_resolved()


async def _on_connection_create_end(
    session: aiohttp.ClientSession, ctx: SimpleNamespace, params: Any
) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.connection_established()


async def _on_request_headers_sent(
    session: aiohttp.ClientSession, ctx: SimpleNamespace, params: Any
) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.headers_sent()


async def _on_request_chunk_sent(
    session: aiohttp.ClientSession, ctx: SimpleNamespace, params: aiohttp.TraceRequestChunkSentParams
) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.chunk_sent(params.chunk)


async def _on_request_end(
    session: aiohttp.ClientSession, ctx: SimpleNamespace, params: aiohttp.TraceRequestEndParams
) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.headers_received()


async def _on_response_chunk_received(
    session: aiohttp.ClientSession, ctx: SimpleNamespace, params: Any
) -> None:
    attempt = _attempt_of(ctx)
    if attempt is not None:
        attempt.touch()


def build_trace_config() -> aiohttp.TraceConfig:
    """Create the TraceConfig to install on the client session.

    Requests opt in by passing ``trace_request_ctx={ATTEMPT_CTX_KEY: attempt}``;
    other requests on the same session are ignored.

    Returns:
        Configured TraceConfig.
    """
    trace_config = aiohttp.TraceConfig()
    trace_config.on_connection_create_start.append(_on_connection_create_start)
    trace_config.on_connection_reuseconn.append(_on_connection_reuseconn)
    trace_config.on_dns_resolvehost_end.append(_on_dns_resolved)
    trace_config.on_dns_cache_hit.append(_on_dns_resolved)
    trace_config.on_connection_create_end.append(_on_connection_create_end)
    trace_config.on_request_headers_sent.append(_on_request_headers_sent)
    trace_config.on_request_chunk_sent.append(_on_request_chunk_sent)
    trace_config.on_request_end.append(_on_request_end)
    trace_config.on_response_chunk_received.append(_on_response_chunk_received)
    return trace_config


class TimedTCPConnector(aiohttp.TCPConnector):
    """TCPConnector reporting the end of the TCP connect ahead of TLS.

    asyncio builds the connection protocol as soon as the socket is
    connected and before the TLS handshake starts, so the wrapped protocol
    factory marks the TCP checkpoint of the attempt running in this task.
    ``on_connection_create_end`` then fires once the handshake is done.
    """

    async def _wrap_create_connection(
        self, protocol_factory: Callable[[], Any], *args: Any, **kwargs: Any
    ) -> Any:
        attempt = active_attempt.get()
        if attempt is None:
            return await super()._wrap_create_connection(protocol_factory, *args, **kwargs)

        def connected_protocol() -> Any:
            attempt.socket_connected()
            return protocol_factory()

        return await super()._wrap_create_connection(connected_protocol, *args, **kwargs)
