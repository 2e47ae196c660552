"""
Retry configuration value object.

RetryConfig is frozen: a single ``execute_with_retry`` call never sees its
policy change mid-flight. Per-call overrides produce a new instance.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any, Union

from call_resilience.config import Settings


@dataclass(frozen=True)
class RetryConfig:
    """
    Backoff policy for a retried operation.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay_ms: Delay before the first retry
        max_delay_ms: Upper bound for any single delay
        backoff_multiplier: Exponential growth factor between retries
        jitter: Apply a +/-10% uniform perturbation to each delay
    """

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        """Validate policy invariants."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")

        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError("max_delay_ms must be >= base_delay_ms")

        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be > 1")

    def merged(self, overrides: "RetryConfigLike") -> "RetryConfig":
        """Return this policy with per-call overrides applied."""
        if overrides is None:
            return self
        if isinstance(overrides, RetryConfig):
            return overrides

        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown retry config fields: {', '.join(sorted(unknown))}")
        return replace(self, **dict(overrides))

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryConfig":
        """Generic retry policy from application settings."""
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            base_delay_ms=settings.RETRY_BASE_DELAY_MS,
            max_delay_ms=settings.RETRY_MAX_DELAY_MS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            jitter=settings.RETRY_JITTER,
        )

    @classmethod
    def provider_from_settings(cls, settings: Settings) -> "RetryConfig":
        """Conservative policy for externally throttled providers."""
        return cls(
            max_retries=settings.PROVIDER_MAX_RETRIES,
            base_delay_ms=settings.PROVIDER_BASE_DELAY_MS,
            max_delay_ms=settings.PROVIDER_MAX_DELAY_MS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            jitter=settings.RETRY_JITTER,
        )


RetryConfigLike = Union[RetryConfig, Mapping[str, Any], None]

DEFAULT_RETRY_CONFIG = RetryConfig()
PROVIDER_RETRY_CONFIG = RetryConfig(max_retries=2, base_delay_ms=2000, max_delay_ms=15000)
