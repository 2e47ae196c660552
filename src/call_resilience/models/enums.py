"""
Enumerations shared across the resilience layer.

All enums are closed taxonomies - no values outside these sets are permitted.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """
    Retry-policy-relevant classification of a failure.

    Every error raised by a wrapped operation maps to exactly one kind.
    UNKNOWN is the catch-all and is retried like TEMPORARY.
    """

    TEMPORARY = "TEMPORARY"
    PERMANENT = "PERMANENT"
    RATE_LIMIT = "RATE_LIMIT"
    UNKNOWN = "UNKNOWN"


class CircuitStatus(str, Enum):
    """Circuit breaker state for a single named dependency."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class ResponseStatus(str, Enum):
    """
    Envelope status carried in ``meta.status``.

    OK and WARNING are only valid with ``success=True``; ERROR only with
    ``success=False``.
    """

    OK = "OK"
    ERROR = "ERROR"
    WARNING = "WARNING"
