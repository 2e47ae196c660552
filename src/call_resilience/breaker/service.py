"""
Circuit breaker for outbound dependencies.

State machine per named circuit:

    CLOSED     calls pass; success resets the failure count, failure
               increments it; reaching the threshold opens the circuit
    OPEN       calls are short-circuited (fallback or CircuitOpenError)
               until ``next_attempt_time_ms``; then one trial call is let through
    HALF_OPEN  trial success closes the circuit; trial failure re-opens it
               with a fresh recovery timeout

The breaker never sleeps: a denied call returns or raises immediately.

Every transition is computed by ``CircuitStore.update`` from the state as
stored when the call finishes, not from the snapshot taken when it started,
so overlapping calls each count and a late result from a call admitted
before the circuit opened cannot close it again.

Usage:
    breaker = CircuitBreaker()
    reply = await breaker.execute_with_breaker(
        "openai-chat",
        lambda: client.chat_completion(messages),
        fallback=lambda: canned_reply(),
    )
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Optional, TypeVar

import structlog

from call_resilience.breaker.exceptions import CircuitOpenError
from call_resilience.breaker.state import BreakerConfigLike, CircuitBreakerConfig, CircuitState
from call_resilience.breaker.store import CircuitMutation, CircuitStore, InMemoryCircuitStore
from call_resilience.models.enums import CircuitStatus
from call_resilience.monitoring.metrics import (
    circuit_fallbacks_total,
    circuit_open,
    circuit_transitions_total,
)
from call_resilience.retry.classifier import error_message

logger = structlog.get_logger(__name__)

T = TypeVar("T")

IDLE_CIRCUIT_TTL_MS = 10 * 60 * 1000


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class CircuitBreaker:
    """
    Per-dependency circuit breaker backed by an injectable store.

    Attributes:
        store: Name -> CircuitState storage
        default_config: Policy used when a call supplies no override
        idle_ttl_ms: Age after the last failure at which the sweep drops a circuit
    """

    def __init__(
        self,
        store: Optional[CircuitStore] = None,
        default_config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], int] = _epoch_ms,
        idle_ttl_ms: int = IDLE_CIRCUIT_TTL_MS,
    ):
        self.store: CircuitStore = store if store is not None else InMemoryCircuitStore()
        self.default_config = default_config or CircuitBreakerConfig()
        self.idle_ttl_ms = idle_ttl_ms
        self._clock = clock

    async def execute_with_breaker(
        self,
        circuit_name: str,
        operation: Callable[[], Awaitable[T]],
        fallback: Optional[Callable[[], Awaitable[T]]] = None,
        config: BreakerConfigLike = None,
    ) -> T:
        """
        Run ``operation`` under the named circuit.

        Args:
            circuit_name: Dependency name (one circuit per name)
            operation: Zero-argument coroutine factory
            fallback: Producer used when the call is denied or fails
            config: Full CircuitBreakerConfig or mapping of field overrides

        Returns:
            Operation result, or fallback result

        Raises:
            CircuitOpenError: Circuit is OPEN and no fallback was supplied
            Exception: The operation's own error when no fallback was supplied
        """
        policy = self.default_config.merged(config)
        state = await self.get_circuit_state(circuit_name)

        if state.status is CircuitStatus.OPEN:
            now = self._clock()
            _, state = await self._apply(circuit_name, lambda current: _begin_trial(current, now))
            if state.status is CircuitStatus.OPEN:
                logger.info(
                    "Circuit open, call short-circuited",
                    circuit=circuit_name,
                    retry_in_ms=state.next_attempt_time_ms - now,
                    fallback=fallback is not None,
                )
                if fallback is not None:
                    circuit_fallbacks_total.labels(circuit=circuit_name, reason="circuit_open").inc()
                    return await fallback()
                raise CircuitOpenError(circuit_name, state.next_attempt_time_ms)

        trial_call = state.status is CircuitStatus.HALF_OPEN

        try:
            result = await operation()
        except Exception as exc:
            await self._record_failure(circuit_name, policy, exc, trial_call)
            if fallback is not None:
                circuit_fallbacks_total.labels(circuit=circuit_name, reason="operation_failed").inc()
                logger.info("Using fallback after failure", circuit=circuit_name)
                return await fallback()
            raise

        _, current = await self._apply(circuit_name, _record_success)
        if trial_call and current.status is CircuitStatus.CLOSED:
            logger.info("Circuit recovery successful, circuit CLOSED", circuit=circuit_name)
        return result

    async def get_circuit_state(self, circuit_name: str) -> CircuitState:
        """Current state of a circuit, creating it CLOSED on first use."""
        state = await self.store.get(circuit_name)
        if state is None:
            _, state = await self.store.update(
                circuit_name, lambda current: CircuitState.closed() if current is None else None
            )
        return state

    async def reset_circuit(self, circuit_name: str) -> CircuitState:
        """Force a circuit back to CLOSED with a zero failure count."""
        _, state = await self._apply(circuit_name, lambda current: CircuitState.closed())
        logger.info("Circuit manually reset", circuit=circuit_name)
        return state

    async def get_all_circuit_stats(self) -> dict[str, CircuitState]:
        """Snapshot of every known circuit."""
        return await self.store.items()

    async def cleanup_inactive_circuits(self) -> list[str]:
        """
        Drop circuits whose last failure is older than ``idle_ttl_ms``.

        Circuits that never failed (``last_failure_time_ms == 0``) are kept.

        Returns:
            Names of removed circuits
        """
        now = self._clock()
        removed: list[str] = []
        for name, state in (await self.store.items()).items():
            if state.last_failure_time_ms > 0 and now - state.last_failure_time_ms > self.idle_ttl_ms:
                await self.store.delete(name)
                circuit_open.labels(circuit=name).set(0)
                removed.append(name)
                logger.info("Cleaned up inactive circuit", circuit=name)
        return removed

    async def _record_failure(
        self,
        circuit_name: str,
        policy: CircuitBreakerConfig,
        error: Exception,
        trial_call: bool,
    ) -> None:
        now = self._clock()
        previous, state = await self._apply(circuit_name, lambda current: _count_failure(current, policy, now))

        logger.warning(
            "Circuit recorded failure",
            circuit=circuit_name,
            failure_count=state.failure_count,
            failure_threshold=policy.failure_threshold,
            trial=trial_call,
            error=error_message(error),
        )
        if state.status is CircuitStatus.OPEN and previous is not CircuitStatus.OPEN:
            logger.error(
                "Circuit OPEN",
                circuit=circuit_name,
                recovery_timeout_ms=policy.recovery_timeout_ms,
            )

    async def _apply(
        self, circuit_name: str, mutate: CircuitMutation
    ) -> tuple[CircuitStatus, CircuitState]:
        """Run one atomic transition and report a status change."""
        previous, current = await self.store.update(circuit_name, mutate)
        previous_status = previous.status if previous else CircuitStatus.CLOSED
        current = current or CircuitState.closed()

        if current.status is not previous_status:
            circuit_transitions_total.labels(circuit=circuit_name, to_state=current.status.value).inc()
            logger.info(
                "Circuit state changed",
                circuit=circuit_name,
                from_state=previous_status.value,
                to_state=current.status.value,
            )
        circuit_open.labels(circuit=circuit_name).set(1 if current.status is CircuitStatus.OPEN else 0)
        return previous_status, current


def _begin_trial(current: Optional[CircuitState], now: int) -> Optional[CircuitState]:
    """OPEN past its deadline becomes HALF_OPEN; anything else is left alone."""
    if current is not None and current.status is CircuitStatus.OPEN and now >= current.next_attempt_time_ms:
        return replace(current, status=CircuitStatus.HALF_OPEN)
    return None


def _record_success(current: Optional[CircuitState]) -> Optional[CircuitState]:
    # An OPEN circuit only closes through a trial call
    if current is None or current.status is CircuitStatus.OPEN:
        return None
    if current.status is CircuitStatus.CLOSED and current.failure_count == 0:
        return None
    return CircuitState.closed()


def _count_failure(
    current: Optional[CircuitState], policy: CircuitBreakerConfig, now: int
) -> CircuitState:
    current = current or CircuitState.closed()
    failure_count = current.failure_count + 1

    if current.status is CircuitStatus.OPEN:
        # Already opened by another call: count it, keep the deadline
        return replace(current, failure_count=failure_count, last_failure_time_ms=now)

    if failure_count >= policy.failure_threshold:
        return CircuitState(
            status=CircuitStatus.OPEN,
            failure_count=failure_count,
            last_failure_time_ms=now,
            next_attempt_time_ms=now + policy.recovery_timeout_ms,
        )

    if current.status is CircuitStatus.HALF_OPEN:
        # Below threshold after a trial call: stay OPEN with the elapsed deadline
        # so the next call is let through as a trial again.
        return replace(
            current,
            status=CircuitStatus.OPEN,
            failure_count=failure_count,
            last_failure_time_ms=now,
        )

    return replace(current, failure_count=failure_count, last_failure_time_ms=now)
