"""
Circuit state and configuration value objects.

A CircuitState is never mutated in place: every transition stores a new
instance, so snapshots handed out by ``get_all_circuit_stats`` stay valid.
"""

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Union

from call_resilience.config import Settings
from call_resilience.models.enums import CircuitStatus


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """
    Trip and recovery policy for a circuit.

    Attributes:
        failure_threshold: Consecutive failures that open the circuit
        recovery_timeout_ms: Time an OPEN circuit rejects calls before a trial call
        monitoring_window_ms: Reserved for sliding-window counting; failures are
            currently counted since the last reset regardless of this value
    """

    failure_threshold: int = 3
    recovery_timeout_ms: int = 30000
    monitoring_window_ms: int = 60000

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.recovery_timeout_ms < 0:
            raise ValueError("recovery_timeout_ms must be >= 0")
        if self.monitoring_window_ms < 0:
            raise ValueError("monitoring_window_ms must be >= 0")

    def merged(self, overrides: "BreakerConfigLike") -> "CircuitBreakerConfig":
        """Return this policy with per-call overrides applied."""
        if overrides is None:
            return self
        if isinstance(overrides, CircuitBreakerConfig):
            return overrides

        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown circuit config fields: {', '.join(sorted(unknown))}")
        return replace(self, **dict(overrides))

    @classmethod
    def from_settings(cls, settings: Settings) -> "CircuitBreakerConfig":
        return cls(
            failure_threshold=settings.CIRCUIT_FAILURE_THRESHOLD,
            recovery_timeout_ms=settings.CIRCUIT_RECOVERY_TIMEOUT_MS,
            monitoring_window_ms=settings.CIRCUIT_MONITORING_WINDOW_MS,
        )


BreakerConfigLike = Union[CircuitBreakerConfig, Mapping[str, Any], None]


@dataclass(frozen=True)
class CircuitState:
    """
    State of one named circuit.

    Attributes:
        status: CLOSED, OPEN or HALF_OPEN
        failure_count: Failures since the last successful call or reset
        last_failure_time_ms: Epoch ms of the most recent failure (0 = never)
        next_attempt_time_ms: Epoch ms after which an OPEN circuit allows a trial call
    """

    status: CircuitStatus = CircuitStatus.CLOSED
    failure_count: int = 0
    last_failure_time_ms: int = 0
    next_attempt_time_ms: int = 0

    def __post_init__(self) -> None:
        if self.failure_count < 0:
            raise ValueError("failure_count must be >= 0")

    @classmethod
    def closed(cls) -> "CircuitState":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CircuitState":
        return cls(
            status=CircuitStatus(data.get("status", CircuitStatus.CLOSED.value)),
            failure_count=int(data.get("failure_count", 0)),
            last_failure_time_ms=int(data.get("last_failure_time_ms", 0)),
            next_attempt_time_ms=int(data.get("next_attempt_time_ms", 0)),
        )
