"""Configuration loading from environment variables and files."""

import json
import logging
import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, field_validator

from resilient_http.core.backoff import exponential_backoff
from resilient_http.ports.http import HttpPort
from resilient_http.ports.options import ExecuteOptions

__all__ = ["Settings", "load_settings"]

load_dotenv()

logger = logging.getLogger(__name__)
_http_url_adapter = TypeAdapter(HttpUrl)

_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


class Settings(BaseModel):
    """Runtime configuration for one call.

    Attributes:
        target_url: HTTP(S) endpoint to call.
        http_method: HTTP method.
        payload_file_path: Optional path to a JSON file used as request body.
        payload: Request body (loaded from file).
        measure_timings: Attach per-phase timings to the response.
        timeout_request_ms: Deadline until the request is fully sent.
        timeout_response_ms: Deadline from upload completion until headers arrive.
        timeout_idle_socket_ms: Maximum connection inactivity.
        timeout_total_ms: Deadline for the whole attempt.
        retry_limit: Highest retry index of the default backoff; None disables retries.
        retry_min_delay_ms: Base backoff delay.
        retry_max_delay_ms: Maximum backoff delay.
        retry_jitter: Randomize backoff delays.
        retry_fast_first: First retry after 1ms.
    """

    target_url: str = Field(..., description="HTTP(S) endpoint to call.")
    http_method: str = Field(default="GET", description="HTTP method.")
    payload_file_path: str | None = Field(
        default=None, description="Path to JSON file containing the request body."
    )
    payload: Any = Field(default=None, description="Request body (populated from file).")
    measure_timings: bool = False
    timeout_request_ms: float | None = Field(default=None, gt=0)
    timeout_response_ms: float | None = Field(default=None, gt=0)
    timeout_idle_socket_ms: float | None = Field(default=None, gt=0)
    timeout_total_ms: float | None = Field(default=None, gt=0)
    retry_limit: int | None = Field(default=None, ge=0)
    retry_min_delay_ms: float = Field(default=100, ge=0)
    retry_max_delay_ms: float = Field(default=1000, ge=0)
    retry_jitter: bool = True
    retry_fast_first: bool = False

    @field_validator("target_url")
    @classmethod
    def validate_target_url(cls, v: str) -> str:
        """Validate that target is a valid HTTP(S) URL.

        Args:
            v: Endpoint URL to validate.

        Returns:
            The validated URL.

        Raises:
            ValueError: If URL is invalid or not http(s).
        """
        try:
            url = _http_url_adapter.validate_python(v)
            if url.scheme not in ("http", "https"):
                raise ValueError("Only http:// and https:// endpoints allowed")
        except Exception as e:
            raise ValueError(f"Invalid target URL: {e}") from e
        return v

    @field_validator("http_method")
    @classmethod
    def validate_http_method(cls, v: str) -> str:
        method = v.upper()
        if method not in _METHODS:
            raise ValueError(f"Unsupported HTTP method: {v}")
        return method

    def load_payload(self) -> None:
        """Load the request body from the JSON payload file, if configured.

        Raises:
            ValueError: If file not found or invalid JSON.
        """
        if self.payload_file_path is None:
            return
        try:
            with open(self.payload_file_path) as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ValueError(f"Payload file not found: {self.payload_file_path}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Payload file contains invalid JSON: {self.payload_file_path}") from e

        self.payload = data
        logger.debug(f"Loaded request body from {self.payload_file_path}")

    def to_http_port(self) -> HttpPort:
        return HttpPort(url=self.target_url, method=self.http_method, payload=self.payload)

    def to_execute_options(self) -> ExecuteOptions:
        """Build the options for ``execute`` from these settings."""
        retry_backoff = None
        if self.retry_limit is not None:
            retry_backoff = exponential_backoff(
                limit=self.retry_limit,
                min_delay=self.retry_min_delay_ms,
                max_delay=self.retry_max_delay_ms,
                jitter=self.retry_jitter,
                fast_first=self.retry_fast_first,
            )
        return ExecuteOptions(
            measure_timings=self.measure_timings,
            timeout_request=self.timeout_request_ms,
            timeout_response=self.timeout_response_ms,
            timeout_idle_socket=self.timeout_idle_socket_ms,
            timeout_total=self.timeout_total_ms,
            retry_backoff=retry_backoff,
        )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise RuntimeError(f"{name} must be a boolean (got: {raw})")


def _env_number(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
        if value <= 0:
            raise ValueError("Must be positive")
    except ValueError as e:
        raise RuntimeError(f"{name} must be a positive number (got: {raw})") from e
    return value


def load_settings() -> Settings:
    """Load and validate settings from environment and files.

    Required environment variables:
    - TARGET_URL: Valid HTTP(S) URL to call.

    Optional:
    - HTTP_METHOD, PAYLOAD_FILE_PATH, MEASURE_TIMINGS.
    - TIMEOUT_REQUEST_MS, TIMEOUT_RESPONSE_MS, TIMEOUT_IDLE_SOCKET_MS, TIMEOUT_TOTAL_MS.
    - RETRY_LIMIT (enables retries), RETRY_MIN_DELAY_MS, RETRY_MAX_DELAY_MS,
      RETRY_JITTER, RETRY_FAST_FIRST.

    Returns:
        Validated Settings object.

    Raises:
        RuntimeError: If required env vars missing or invalid.
        ValueError: If configuration is invalid.
    """
    try:
        target_url = os.environ["TARGET_URL"]
    except KeyError as e:
        raise RuntimeError(f"Missing required environment variable: {e.args[0]}") from e

    retry_limit_raw = os.getenv("RETRY_LIMIT")
    retry_limit: int | None = None
    if retry_limit_raw:
        try:
            retry_limit = int(retry_limit_raw)
            if retry_limit < 0:
                raise ValueError("Must not be negative")
        except ValueError as e:
            raise RuntimeError(
                f"RETRY_LIMIT must be a non-negative integer (got: {retry_limit_raw})"
            ) from e

    optional: dict[str, Any] = {}
    min_delay = _env_number("RETRY_MIN_DELAY_MS")
    if min_delay is not None:
        optional["retry_min_delay_ms"] = min_delay
    max_delay = _env_number("RETRY_MAX_DELAY_MS")
    if max_delay is not None:
        optional["retry_max_delay_ms"] = max_delay

    settings = Settings(
        target_url=target_url,
        http_method=os.getenv("HTTP_METHOD", "GET"),
        payload_file_path=os.getenv("PAYLOAD_FILE_PATH") or None,
        measure_timings=_env_bool("MEASURE_TIMINGS", False),
        timeout_request_ms=_env_number("TIMEOUT_REQUEST_MS"),
        timeout_response_ms=_env_number("TIMEOUT_RESPONSE_MS"),
        timeout_idle_socket_ms=_env_number("TIMEOUT_IDLE_SOCKET_MS"),
        timeout_total_ms=_env_number("TIMEOUT_TOTAL_MS"),
        retry_limit=retry_limit,
        retry_jitter=_env_bool("RETRY_JITTER", True),
        retry_fast_first=_env_bool("RETRY_FAST_FIRST", False),
        **optional,
    )

    # Load and validate payload file
    settings.load_payload()

    logger.info(
        f"Client configured: {settings.http_method} {settings.target_url}, "
        f"timings={settings.measure_timings}, "
        f"retries={'<disabled>' if settings.retry_limit is None else settings.retry_limit}"
    )

    return settings
