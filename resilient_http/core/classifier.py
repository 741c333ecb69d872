"""Retriability of attempt failures."""

import errno

from resilient_http.core.errors import AttemptFailure, FailureKind

__all__ = ["RETRIABLE_ERROR_CODES", "error_code", "is_retriable", "is_status_code_retriable"]

# Transport codes considered transient network conditions
RETRIABLE_ERROR_CODES = frozenset(
    {
        "ETIMEDOUT",
        "ECONNRESET",
        "EADDRINUSE",
        "ECONNREFUSED",
        "EPIPE",
        "ENOTFOUND",
        "ENETUNREACH",
        "EAI_AGAIN",
    }
)

_STATUS_KINDS = (FailureKind.NON_SUCCESS_STATUS, FailureKind.UNPARSEABLE_BODY)


def is_status_code_retriable(status_code: int) -> bool:
    if status_code >= 500:
        return True
    if status_code == 408:  # Request timeout
        return True
    if status_code == 429:  # Too many requests
        return True
    return False


def error_code(error: BaseException) -> str | None:
    """Return the transport code of ``error`` (``code`` attribute or errno name)."""
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code
    if isinstance(error, OSError) and error.errno is not None:
        return errno.errorcode.get(error.errno)
    return None


def is_retriable(error: BaseException) -> bool:
    """Decide whether ``error`` may be retried.

    Status-bearing failures are judged by status only, transport failures by
    their code only.
    """
    if isinstance(error, AttemptFailure):
        if error.kind in _STATUS_KINDS:
            return is_status_code_retriable(error.status_code or 0)
        return error.code in RETRIABLE_ERROR_CODES

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        return is_status_code_retriable(status_code)
    return error_code(error) in RETRIABLE_ERROR_CODES
