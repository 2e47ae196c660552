"""
Custom exceptions for the LLM client layer.

Each exception carries an ``error_kind`` tag consumed by the classifier, and
a message that still contains the HTTP status (``"OpenAI API error: 429 - ..."``)
so text-based classification reaches the same verdict.
"""

from call_resilience.models.enums import ErrorKind


class LLMClientError(Exception):
    """
    Base exception for all LLM client errors.

    All LLM-specific exceptions inherit from this to allow catching
    any LLM-related error with a single except clause.
    """

    error_kind = ErrorKind.UNKNOWN

    def __init__(self, message: str, details: dict | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code


class LLMConnectionError(LLMClientError):
    """
    Raised when the provider cannot be reached (DNS, refused, reset).

    Retried with backoff.
    """

    error_kind = ErrorKind.TEMPORARY


class LLMTimeoutError(LLMConnectionError):
    """Raised when the request exceeds the client timeout."""


class LLMRateLimitError(LLMClientError):
    """
    Raised on HTTP 429 or quota exhaustion.

    Retried with the 5s rate-limit floor on the base delay.
    """

    error_kind = ErrorKind.RATE_LIMIT


class LLMGenerationError(LLMClientError):
    """
    Raised when the provider fails server-side (5xx, overloaded).

    Retried with backoff.
    """

    error_kind = ErrorKind.TEMPORARY


class LLMRequestError(LLMClientError):
    """
    Raised when the provider rejects the request (4xx other than 429).

    Bad key, unknown model, malformed payload: retrying cannot help.
    """

    error_kind = ErrorKind.PERMANENT


class LLMEmptyResponseError(LLMClientError):
    """Raised when a 200 response carries no assistant content."""
