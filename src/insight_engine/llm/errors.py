"""Error taxonomy for remote generation and user-facing messages."""

from __future__ import annotations

from enum import Enum

import requests

from .types import MalformedOutputError, ProviderError


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    SERVICE_OVERLOADED = "service_overloaded"
    MALFORMED_OUTPUT = "malformed_output"
    POLICY_BLOCKED = "policy_blocked"
    AUTH_FAILURE = "auth_failure"
    NETWORK_ERROR = "network_error"
    UNKNOWN = "unknown"


DEFAULT_RETRYABLE = frozenset(
    {
        ErrorKind.RATE_LIMITED.value,
        ErrorKind.SERVICE_OVERLOADED.value,
        ErrorKind.MALFORMED_OUTPUT.value,
    }
)

USER_MESSAGES = {
    ErrorKind.POLICY_BLOCKED: "Content was flagged by safety filters. Please rephrase your description.",
    ErrorKind.RATE_LIMITED: "API rate limit reached. Please wait a moment and try again.",
    ErrorKind.SERVICE_OVERLOADED: "The AI service is overloaded right now. Please try again shortly.",
    ErrorKind.NETWORK_ERROR: "Network error. Please check your connection and try again.",
    ErrorKind.AUTH_FAILURE: "The AI service rejected our credentials. Please contact support.",
    ErrorKind.MALFORMED_OUTPUT: "Failed to improve content. Please try again.",
    ErrorKind.UNKNOWN: "Failed to improve content. Please try again.",
}

POLICY_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "CONTENT_FILTER"}

_MESSAGE_MARKERS: list[tuple[ErrorKind, tuple[str, ...]]] = [
    (ErrorKind.POLICY_BLOCKED, ("safety", "blocked")),
    (ErrorKind.RATE_LIMITED, ("quota", "rate limit", "rate_limit", "resource_exhausted", "too many requests")),
    (ErrorKind.SERVICE_OVERLOADED, ("overloaded", "unavailable", "503")),
    (ErrorKind.AUTH_FAILURE, ("api key", "api_key", "unauthorized", "permission", "unauthenticated", "forbidden")),
    (ErrorKind.NETWORK_ERROR, ("network", "fetch", "connection", "timed out", "timeout")),
]


class GenerationError(RuntimeError):
    """A remote generation that failed for good, tagged with its classification."""

    def __init__(self, kind: ErrorKind, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.kind = kind
        self.attempts = attempts

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]


def _kind_for_status(status: int) -> ErrorKind | None:
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status in (500, 502, 503, 504):
        return ErrorKind.SERVICE_OVERLOADED
    if status in (401, 403):
        return ErrorKind.AUTH_FAILURE
    return None


def classify_error(exc: BaseException) -> ErrorKind:
    """Maps any exception raised around a remote call onto an ErrorKind."""
    if isinstance(exc, GenerationError):
        return exc.kind
    if isinstance(exc, MalformedOutputError):
        return ErrorKind.MALFORMED_OUTPUT

    status = getattr(exc, "status", None)
    if status is None:
        status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        kind = _kind_for_status(status)
        if kind is not None:
            return kind

    finish_reason = getattr(exc, "finish_reason", None)
    if finish_reason and str(finish_reason).upper() in POLICY_FINISH_REASONS:
        return ErrorKind.POLICY_BLOCKED

    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return ErrorKind.NETWORK_ERROR

    message = str(exc).lower()
    for kind, markers in _MESSAGE_MARKERS:
        if any(marker in message for marker in markers):
            return kind

    # Wrapper without a recognisable message: classify what it wraps.
    cause = exc.__cause__
    if isinstance(exc, ProviderError) and cause is not None and cause is not exc:
        return classify_error(cause)
    return ErrorKind.UNKNOWN


def is_retryable(kind: ErrorKind, retryable: frozenset[str] | None = None) -> bool:
    allowed = retryable if retryable is not None else DEFAULT_RETRYABLE
    return kind.value in allowed
