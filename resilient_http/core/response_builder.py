"""Build a Response (or a classified ResponseError) from a buffered attempt."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from resilient_http.core.errors import FailureKind, ResponseError
from resilient_http.core.phase_timer import PhaseTimings
from resilient_http.ports.transport import RawResponse

__all__ = ["Response", "build_response", "normalize_headers"]

JSON_CONTENT_TYPE = "application/json"


@dataclass(slots=True, frozen=True)
class Response:
    """Successful (or status-rejected) HTTP response.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers with lower-cased names.
        body: Parsed JSON value, raw text, or None when empty.
        timings: Phase timings, only when timing was requested.
        failed_attempts: Prior failures, only on the retry path.
        attempt_count: ``len(failed_attempts) + 1``, only on the retry path.
    """

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    timings: PhaseTimings | None = None
    failed_attempts: tuple[BaseException, ...] | None = None
    attempt_count: int | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code <= 299


def normalize_headers(headers: Mapping[str, str] | Sequence[tuple[str, str]]) -> dict[str, str]:
    """Lower-case header names; repeated headers are joined with ``", "``."""
    pairs = headers.items() if isinstance(headers, Mapping) else headers
    normalized: dict[str, str] = {}
    for name, value in pairs:
        key = name.lower()
        normalized[key] = f"{normalized[key]}, {value}" if key in normalized else value
    return normalized


def build_response(raw: RawResponse, timings: PhaseTimings | None = None) -> Response:
    """Turn a buffered attempt into a Response.

    A JSON content type with a malformed body is rejected even on a 2xx
    status; otherwise non-2xx statuses are rejected.

    Args:
        raw: Final status, headers and body bytes.
        timings: Phase timings to attach, if measured.

    Returns:
        The built Response (2xx only).

    Raises:
        ResponseError: ``UNPARSEABLE_BODY`` or ``NON_SUCCESS_STATUS``.
    """
    headers = normalize_headers(raw.headers)
    text = raw.body.decode("utf-8", errors="replace") if raw.body else ""
    body: Any = text or None

    if text and JSON_CONTENT_TYPE in headers.get("content-type", ""):
        try:
            body = json.loads(text)
        except ValueError:
            response = Response(raw.status, headers, text, timings)
            raise ResponseError(
                "Failed to parse response body", response, FailureKind.UNPARSEABLE_BODY
            ) from None

    response = Response(raw.status, headers, body, timings)
    if not response.ok:
        raise ResponseError("Non-2xx status code", response, FailureKind.NON_SUCCESS_STATUS)
    return response
