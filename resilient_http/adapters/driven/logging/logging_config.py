"""Console logging setup for the HTTP engine."""

import logging
import os

__all__ = ["configure_logs"]

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s"
_DATE_FORMAT = "%d/%m/%y %H:%M:%S"

# Library loggers that would otherwise report every connection and request
_QUIET_LOGGERS = ("aiohttp", "aiohttp.client", "aiohttp.access", "asyncio")

_handler: logging.Handler | None = None


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def configure_logs(level: int | str | None = None) -> None:
    """Configure console logging for attempts, deadlines and retries.

    Sets up:
    - Root logger at ``level``, else ``LOG_LEVEL`` from the environment, else INFO.
    - aiohttp and asyncio loggers at WARNING level.
    - ``resilient_http`` loggers at DEBUG level, so attempt starts, expired
      deadlines and backoff delays reach the root handler's threshold.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Root logger level, as a number or a name such as ``"debug"``.

    Raises:
        ValueError: If the level name is unknown.
    """
    global _handler

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    root.addHandler(_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("resilient_http").setLevel(logging.DEBUG)
