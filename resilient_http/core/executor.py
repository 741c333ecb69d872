"""Attempt execution and retry orchestration."""

import asyncio
import dataclasses
import logging

from resilient_http.core.classifier import is_retriable
from resilient_http.core.errors import format_ms
from resilient_http.core.lifecycle import LifecycleObserver
from resilient_http.core.response_builder import Response, build_response
from resilient_http.ports.options import ExecuteOptions
from resilient_http.ports.transport import AttemptFactory

__all__ = ["RetryOrchestrator", "execute", "run_attempt"]

logger = logging.getLogger(__name__)


async def execute(attempt_factory: AttemptFactory, options: ExecuteOptions | None = None) -> Response:
    """Perform one call, retrying when a backoff policy is configured.

    Without ``retry_backoff`` a single attempt runs and its result or error
    passes through untouched. With it, failures are retried under the policy
    and the result (or the terminal error) carries ``failed_attempts`` and
    ``attempt_count``.

    Args:
        attempt_factory: Returns a fresh transport operation per attempt.
        options: Timing, deadline and retry options.

    Returns:
        The successful Response.

    Raises:
        AttemptFailure: Transport, timeout or response failure.
    """
    options = options or ExecuteOptions()
    if options.retry_backoff is None:
        return await run_attempt(attempt_factory, options)
    return await RetryOrchestrator(attempt_factory, options).run()


async def run_attempt(attempt_factory: AttemptFactory, options: ExecuteOptions) -> Response:
    """Run exactly one attempt, observed only when timings or deadlines are requested."""
    attempt = attempt_factory()
    observer = LifecycleObserver(attempt, options) if options.observes_lifecycle else None

    if observer is not None:
        observer.attach()
    try:
        raw = await attempt.run()
    finally:
        if observer is not None:
            observer.detach()

    timings = observer.timings if observer is not None and options.measure_timings else None
    return build_response(raw, timings=timings)


class RetryOrchestrator:
    """Runs attempts one at a time until success or a terminal failure.

    The loop is bounded only by the backoff policy: a policy that never
    returns None retries forever.
    """

    def __init__(self, attempt_factory: AttemptFactory, options: ExecuteOptions) -> None:
        if options.retry_backoff is None:
            raise ValueError("RetryOrchestrator requires a retry_backoff policy")
        self._attempt_factory = attempt_factory
        self._options = options
        self._backoff = options.retry_backoff
        self._failed_attempts: list[BaseException] = []
        self._finalized: tuple[BaseException, ...] | None = None

    @property
    def failed_attempts(self) -> tuple[BaseException, ...]:
        return tuple(self._failed_attempts)

    async def run(self) -> Response:
        while True:
            attempt_number = len(self._failed_attempts) + 1
            logger.debug(f"Starting attempt {attempt_number}")
            try:
                response = await run_attempt(self._attempt_factory, self._options)
            except Exception as error:
                if not is_retriable(error):
                    logger.debug(f"Attempt {attempt_number} failed terminally: {error!r}")
                    self._finalize(error)
                    raise

                # First failure is evaluated at index -1
                delay_ms = self._backoff(len(self._failed_attempts) - 1, error)
                if delay_ms is None or delay_ms is False:
                    logger.debug(f"Backoff stopped retries after attempt {attempt_number}: {error!r}")
                    self._finalize(error)
                    raise

                self._failed_attempts.append(error)
                logger.warning(
                    f"Attempt {attempt_number} failed ({error}); "
                    f"retrying in {format_ms(delay_ms)}ms"
                )
                await asyncio.sleep(max(0, delay_ms) / 1000)
            else:
                return self._finalize_response(response)

    def _frozen_log(self) -> tuple[BaseException, ...]:
        if self._finalized is None:
            self._finalized = tuple(self._failed_attempts)
        return self._finalized

    def _finalize(self, error: BaseException) -> None:
        failed_attempts = self._frozen_log()
        error.failed_attempts = failed_attempts  # type: ignore[attr-defined]
        error.attempt_count = len(failed_attempts) + 1  # type: ignore[attr-defined]

    def _finalize_response(self, response: Response) -> Response:
        failed_attempts = self._frozen_log()
        return dataclasses.replace(
            response,
            failed_attempts=failed_attempts,
            attempt_count=len(failed_attempts) + 1,
        )
