"""
Retry executor with classification-driven backoff.

Wraps an async operation and re-invokes it on failure. Each failure is
classified before deciding what to do:

    PERMANENT                     -> abort immediately (fail-fast)
    TEMPORARY / RATE_LIMIT / UNKNOWN -> wait and retry while attempts remain

Delay for retry after attempt ``n``:

    base  = max(base_delay_ms, 5000) if RATE_LIMIT else base_delay_ms
    delay = min(base * backoff_multiplier ** (n - 1), max_delay_ms)
    delay += uniform(-10%, +10%) of delay      (jitter enabled)
    delay = max(delay, 100)

Usage:
    executor = RetryExecutor()
    outcome = await executor.execute_with_retry(fetch_embeddings, {"max_retries": 5})
    if outcome.success:
        use(outcome.result)
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import structlog

from call_resilience.models.enums import ErrorKind
from call_resilience.monitoring.metrics import retry_attempts_total, retry_outcomes_total
from call_resilience.retry.classifier import classify, error_message, should_retry
from call_resilience.retry.config import (
    DEFAULT_RETRY_CONFIG,
    PROVIDER_RETRY_CONFIG,
    RetryConfig,
    RetryConfigLike,
)
from call_resilience.retry.outcome import RetryOutcome

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RATE_LIMIT_MIN_DELAY_MS = 5000
MIN_DELAY_MS = 100
JITTER_RATIO = 0.1


class RetryExecutor:
    """
    Sequential retry loop around a single async operation.

    Attempts never overlap: each delay depends on the previous attempt's
    classified error. Sleep, randomness and clock are injectable so tests
    can drive the loop without real waiting.

    Attributes:
        default_config: Policy used when a call supplies no override
        provider_config: Policy used by ``retry_provider_operation``
    """

    def __init__(
        self,
        default_config: RetryConfig = DEFAULT_RETRY_CONFIG,
        provider_config: RetryConfig = PROVIDER_RETRY_CONFIG,
        classifier: Callable[[BaseException], ErrorKind] = classify,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.default_config = default_config
        self.provider_config = provider_config
        self._classify = classifier
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._clock = clock

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfigLike = None,
        context: Optional[str] = None,
    ) -> RetryOutcome[T]:
        """
        Run ``operation`` until it succeeds, fails permanently, or retries run out.

        Never raises for operation failures; ``asyncio.CancelledError`` and
        other BaseExceptions propagate untouched.

        Args:
            operation: Zero-argument coroutine factory (called once per attempt)
            config: Full RetryConfig or mapping of field overrides
            context: Label for log events (e.g., "OpenAI-chat")

        Returns:
            RetryOutcome with result or last error, attempts and duration
        """
        policy = self.default_config.merged(config)
        label = context or "Operation"
        start = self._clock()
        attempt = 0

        while True:
            attempt += 1
            try:
                result = await operation()
            except Exception as exc:
                kind = self._classify(exc)
                retryable = should_retry(kind)
                has_budget = attempt <= policy.max_retries

                if not retryable:
                    decision = "abort"
                elif has_budget:
                    decision = "retry"
                else:
                    decision = "exhausted"
                retry_attempts_total.labels(error_kind=kind.value, decision=decision).inc()

                logger.warning(
                    "Retry attempt failed",
                    context=label,
                    attempt=attempt,
                    max_attempts=policy.max_retries + 1,
                    error=error_message(exc),
                    error_kind=kind.value,
                    will_retry=decision == "retry",
                )

                if decision != "retry":
                    if decision == "abort":
                        logger.info("Retry aborted on permanent error", context=label, attempt=attempt)
                    return self._failure(exc, kind, attempt, start, label)

                delay_ms = self.calculate_delay(attempt, policy, kind)
                logger.debug(
                    "Scheduling retry",
                    context=label,
                    next_attempt=attempt + 1,
                    delay_ms=round(delay_ms),
                )
                await self._sleep(delay_ms / 1000)
                continue

            duration_ms = self._elapsed_ms(start)
            if attempt > 1:
                logger.info(
                    "Operation succeeded after retry",
                    context=label,
                    attempts=attempt,
                    total_duration_ms=duration_ms,
                )
            retry_outcomes_total.labels(success="true", retried=str(attempt > 1).lower()).inc()
            return RetryOutcome(
                success=True,
                result=result,
                attempts=attempt,
                total_duration_ms=duration_ms,
            )

    async def execute_or_raise(
        self,
        operation: Callable[[], Awaitable[T]],
        config: RetryConfigLike = None,
        context: Optional[str] = None,
    ) -> T:
        """Same policy as ``execute_with_retry`` but re-raises the final error."""
        outcome = await self.execute_with_retry(operation, config, context)
        if not outcome.success:
            raise outcome.error
        return outcome.result

    async def retry_provider_operation(
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        config: RetryConfigLike = None,
    ) -> T:
        """
        Retry an externally throttled provider call with exception semantics.

        Uses the conservative provider policy (2 retries, 2s base, 15s cap
        by default) and re-raises the last error on failure.

        Raises:
            Exception: The final error raised by ``operation``
        """
        policy = self.provider_config.merged(config)
        return await self.execute_or_raise(operation, policy, f"OpenAI-{operation_name}")

    def calculate_delay(self, attempt: int, config: RetryConfig, kind: ErrorKind) -> float:
        """
        Delay in milliseconds before the retry that follows ``attempt``.

        Args:
            attempt: 1-indexed number of the attempt that just failed
            config: Active retry policy
            kind: Classification of the failure

        Returns:
            Delay in milliseconds (>= 100)
        """
        base = config.base_delay_ms
        if kind is ErrorKind.RATE_LIMIT:
            base = max(base, RATE_LIMIT_MIN_DELAY_MS)

        delay = min(base * config.backoff_multiplier ** (attempt - 1), config.max_delay_ms)

        if config.jitter:
            delay += self._rng.uniform(-1.0, 1.0) * delay * JITTER_RATIO

        return max(delay, MIN_DELAY_MS)

    def _failure(
        self,
        error: Exception,
        kind: ErrorKind,
        attempts: int,
        start: float,
        label: str,
    ) -> RetryOutcome:
        duration_ms = self._elapsed_ms(start)
        logger.error(
            "Operation failed",
            context=label,
            attempts=attempts,
            total_duration_ms=duration_ms,
            error_kind=kind.value,
            final_error=error_message(error),
        )
        retry_outcomes_total.labels(success="false", retried=str(attempts > 1).lower()).inc()
        return RetryOutcome(
            success=False,
            error=error,
            error_kind=kind,
            attempts=attempts,
            total_duration_ms=duration_ms,
        )

    def _elapsed_ms(self, start: float) -> int:
        return max(int((self._clock() - start) * 1000), 0)
