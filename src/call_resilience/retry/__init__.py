"""
Retry executor with error classification.

Failures are classified into ErrorKind values that drive the retry policy:

1. **PERMANENT**: fail fast, no further attempts
2. **TEMPORARY / UNKNOWN**: exponential backoff with jitter
3. **RATE_LIMIT**: same backoff with a 5s floor on the base delay

Main Components:
    - classify: Total mapping from any error to an ErrorKind
    - RetryExecutor: Sequential retry loop (outcome-returning and raising forms)
    - RetryConfig: Immutable backoff policy
    - RetryOutcome: Result, last error, attempts and duration

Usage:
    >>> from call_resilience.retry import RetryExecutor
    >>> executor = RetryExecutor()
    >>> outcome = await executor.execute_with_retry(operation, {"max_retries": 2})
"""

from call_resilience.retry.classifier import classify, error_message, should_retry
from call_resilience.retry.config import (
    DEFAULT_RETRY_CONFIG,
    PROVIDER_RETRY_CONFIG,
    RetryConfig,
)
from call_resilience.retry.executor import RetryExecutor
from call_resilience.retry.outcome import RetryOutcome

__all__ = [
    "classify",
    "error_message",
    "should_retry",
    "RetryConfig",
    "DEFAULT_RETRY_CONFIG",
    "PROVIDER_RETRY_CONFIG",
    "RetryExecutor",
    "RetryOutcome",
]
