"""Application entrypoint: perform one supervised call configured from the environment."""

import asyncio
import logging

from resilient_http.adapters.driven.config.settings import load_settings
from resilient_http.adapters.driven.http.client import HttpClient
from resilient_http.adapters.driven.logging.logging_config import configure_logs
from resilient_http.adapters.driven.metrics.http_metrics import Metrics
from resilient_http.core.errors import AttemptFailure
from resilient_http.core.response_builder import Response

__all__ = ["main", "run"]

logger = logging.getLogger(__name__)


async def main() -> int:
    """Perform the configured call.

    Startup sequence:
    1. Configure logging.
    2. Load and validate configuration.
    3. Perform the call (timings, deadlines and retries per configuration).
    4. Report the response or the terminal failure with its attempt history.

    Returns:
        0 on a successful response, 1 otherwise.
    """
    try:
        configure_logs()
    except ValueError as exc:
        configure_logs(logging.INFO)
        logger.warning(f"{exc}; falling back to INFO")
    logger.info("Starting resilient HTTP call...")

    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        logger.error(
            "Configuration error: %s\n"
            "Hint: check TARGET_URL, the TIMEOUT_*_MS and RETRY_* variables, "
            "and that PAYLOAD_FILE_PATH (if set) exists and is valid JSON.",
            exc,
        )
        return 1

    metrics = Metrics()

    async with HttpClient(metrics=metrics, options=settings.to_execute_options()) as http:
        try:
            response = await http.request(settings.to_http_port())
        except AttemptFailure as exc:
            report_failure(exc)
            return 1

    report_response(response)
    return 0


def report_response(response: Response) -> None:
    """Log status, body, timings and retry history of a response."""
    logger.info(f"Response status {response.status_code}: {response.body!r}")
    if response.timings is not None:
        timings = response.timings.as_dict()
        phases = ", ".join(f"{name}={value:.1f}ms" for name, value in timings.items())
        logger.info(f"Timings: {phases}")
    if response.failed_attempts:
        logger.info(
            f"Succeeded after {response.attempt_count} attempts; "
            f"failures: {[str(e) for e in response.failed_attempts]}"
        )


def report_failure(exc: AttemptFailure) -> None:
    """Log a terminal failure with its attempt history."""
    logger.error(f"Call failed ({exc.kind.value}): {exc}")
    if exc.failed_attempts:
        for index, failure in enumerate(exc.failed_attempts, start=1):
            logger.error(f"  attempt {index}: {failure}")


def run() -> None:
    """Console script entrypoint."""
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutdown requested by user (Ctrl+C).")


if __name__ == "__main__":
    run()
