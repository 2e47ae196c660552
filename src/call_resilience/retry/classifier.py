"""
Error classification for retry policy.

Maps an arbitrary failure to an ErrorKind. Upstream providers (OpenAI,
PostgREST, GoTrue, raw sockets) expose no shared error taxonomy, so the
contract is substring matching on the lower-cased message text, evaluated
in priority order:

    1. RATE_LIMIT:  "rate limit", "429", "quota"
    2. TEMPORARY:   "timeout", "connection", "network", "500", "502", "503",
                    "504", "econnreset", "enotfound"
    3. PERMANENT:   "400", "401", "403", "404", "invalid", "unauthorized",
                    "forbidden", "not found"
    4. UNKNOWN:     everything else

Exceptions raised at an integration boundary may carry an explicit
``error_kind`` tag (see ``call_resilience.llm.exceptions``); a tag always
wins over the message text.
"""

from typing import Any

from call_resilience.models.enums import ErrorKind

RATE_LIMIT_MARKERS = ("rate limit", "429", "quota")
TEMPORARY_MARKERS = (
    "timeout",
    "connection",
    "network",
    "500",
    "502",
    "503",
    "504",
    "econnreset",
    "enotfound",
)
PERMANENT_MARKERS = (
    "400",
    "401",
    "403",
    "404",
    "invalid",
    "unauthorized",
    "forbidden",
    "not found",
)

_RULES: tuple[tuple[tuple[str, ...], ErrorKind], ...] = (
    (RATE_LIMIT_MARKERS, ErrorKind.RATE_LIMIT),
    (TEMPORARY_MARKERS, ErrorKind.TEMPORARY),
    (PERMANENT_MARKERS, ErrorKind.PERMANENT),
)


def error_message(error: Any) -> str:
    """Best-effort message text for any raised value (never raises)."""
    if error is None:
        return ""
    try:
        return str(error)
    except Exception:
        return type(error).__name__


def classify(error: Any) -> ErrorKind:
    """
    Classify a failure into exactly one ErrorKind.

    Total and side-effect free: empty, ``None`` and unrecognized input all
    yield UNKNOWN.

    Args:
        error: Exception (or any value) raised by a wrapped operation

    Returns:
        ErrorKind for retry decisions
    """
    tagged = getattr(error, "error_kind", None)
    if isinstance(tagged, ErrorKind):
        return tagged

    message = error_message(error).lower()
    for markers, kind in _RULES:
        if any(marker in message for marker in markers):
            return kind
    return ErrorKind.UNKNOWN


def should_retry(kind: ErrorKind) -> bool:
    """PERMANENT errors fail fast; every other kind is retryable."""
    return kind is not ErrorKind.PERMANENT
