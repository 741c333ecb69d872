"""HTTP client adapter with lifecycle supervision, retry and metrics integration."""

import asyncio
import logging
from types import TracebackType
from typing import Any

import aiohttp

from resilient_http.adapters.driven.http.tracing import TimedTCPConnector, build_trace_config
from resilient_http.adapters.driven.http.transport import AiohttpAttempt
from resilient_http.core.executor import execute
from resilient_http.core.response_builder import Response
from resilient_http.ports.http import HttpPort
from resilient_http.ports.metrics import CallRecordDto, MetricsPort
from resilient_http.ports.options import ExecuteOptions
from resilient_http.ports.transport import AttemptFactory

__all__ = ["HttpClient"]

logger = logging.getLogger(__name__)


class HttpClient:
    """HTTP client performing supervised, optionally retried calls.

    Features:
    - Per-phase timings and independent deadlines per attempt.
    - Retry under a pluggable backoff policy with failure history.
    - Metrics collection (latency, failure rate, attempts).
    - Context manager for proper resource cleanup.
    """

    def __init__(
        self,
        metrics: MetricsPort | None = None,
        options: ExecuteOptions | None = None,
    ) -> None:
        """Initialize HTTP client.

        Args:
            metrics: Optional metrics collector to track calls.
            options: Default options for calls that do not pass their own.
        """
        self.metrics = metrics
        self.options = options or ExecuteOptions()
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "HttpClient":
        """Enter async context manager (start session).

        Returns:
            Self for use in async with statement.
        """
        # Deadlines are enforced per attempt; no session-wide timeout applies
        self.session = aiohttp.ClientSession(
            connector=TimedTCPConnector(),
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=None),
            trace_configs=[build_trace_config()],
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Exit async context manager (close session).

        Args:
            exc_type: Exception type if raised in context.
            exc: Exception instance if raised in context.
            tb: Traceback if raised in context.
        """
        if self.session:
            await self.session.close()

    def attempt_factory(self, req: HttpPort) -> AttemptFactory:
        """Return a factory creating a fresh attempt for ``req`` on every call.

        Raises:
            RuntimeError: If session not initialized.
        """
        session = self.session
        if session is None:
            raise RuntimeError("Session not initialized; use 'async with' context manager")

        def make_attempt() -> AiohttpAttempt:
            return AiohttpAttempt(session, req)

        return make_attempt

    async def request(self, req: HttpPort, options: ExecuteOptions | None = None) -> Response:
        """Perform a call and record metrics.

        Args:
            req: HTTP request object.
            options: Per-call options; defaults to the client's options.

        Returns:
            HTTP response.

        Raises:
            AttemptFailure: Transport, timeout or response failure.
        """
        factory = self.attempt_factory(req)
        loop = asyncio.get_running_loop()
        started = loop.time()

        try:
            response = await execute(factory, options or self.options)
        except Exception as exc:
            self._record(
                started,
                is_failed=True,
                status_code=getattr(exc, "status_code", None),
                attempt_count=getattr(exc, "attempt_count", None),
            )
            raise

        self._record(
            started,
            is_failed=False,
            status_code=response.status_code,
            attempt_count=response.attempt_count,
        )
        return response

    async def get(self, url: str, **kwargs: Any) -> Response:
        return await self._call("GET", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> Response:
        return await self._call("DELETE", url, **kwargs)

    async def post(self, url: str, payload: Any = None, **kwargs: Any) -> Response:
        return await self._call("POST", url, payload=payload, **kwargs)

    async def put(self, url: str, payload: Any = None, **kwargs: Any) -> Response:
        return await self._call("PUT", url, payload=payload, **kwargs)

    async def patch(self, url: str, payload: Any = None, **kwargs: Any) -> Response:
        return await self._call("PATCH", url, payload=payload, **kwargs)

    async def _call(
        self,
        method: str,
        url: str,
        payload: Any = None,
        headers: dict[str, str] | None = None,
        options: ExecuteOptions | None = None,
    ) -> Response:
        req = HttpPort(url=url, method=method, payload=payload, headers=headers or {})
        return await self.request(req, options)

    def _record(
        self,
        started: float,
        is_failed: bool,
        status_code: int | None,
        attempt_count: int | None,
    ) -> None:
        if not self.metrics:
            return
        self.metrics.update(
            CallRecordDto(
                started_at_sec=started,
                finished_at_sec=asyncio.get_running_loop().time(),
                is_failed=is_failed,
                status_code=status_code,
                attempt_count=attempt_count or 1,
            )
        )
        logger.info(f"HTTP metrics: {self.metrics}")
