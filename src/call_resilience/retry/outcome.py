"""
Retry outcome tracking.

This module defines the RetryOutcome dataclass returned by
``RetryExecutor.execute_with_retry`` instead of raising.
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from call_resilience.models.enums import ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """
    Result of a retried operation.

    Attributes:
        success: True if any attempt succeeded
        result: Return value of the successful attempt
        error: Last error raised (failures only)
        attempts: Attempts actually made (>= 1)
        total_duration_ms: Wall-clock time from first attempt to final result
        error_kind: Classification of the last error (failures only)
    """

    success: bool
    attempts: int
    total_duration_ms: int
    result: Optional[T] = None
    error: Optional[BaseException] = None
    error_kind: Optional[ErrorKind] = None

    def __post_init__(self) -> None:
        """Validate outcome invariants."""
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")

        if self.total_duration_ms < 0:
            raise ValueError("total_duration_ms must be >= 0")

        if self.success and self.error is not None:
            raise ValueError("successful outcome must not carry an error")

        if not self.success and self.error is None:
            raise ValueError("failed outcome must carry an error")
