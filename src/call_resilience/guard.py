"""
Single entry point combining the circuit breaker and the retry executor.

The breaker sits outside the retry loop: one breaker failure is recorded per
exhausted (or fail-fast) retry sequence, not per attempt, and an OPEN circuit
skips the retry loop entirely.

    caller = ResilientCaller(CircuitBreaker(), RetryExecutor())
    reply = await caller.call_provider(
        "openai-chat",
        lambda: client.chat_completion(request),
        "chat",
        fallback=canned_reply,
    )
"""

from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

from call_resilience.breaker.service import CircuitBreaker
from call_resilience.breaker.state import BreakerConfigLike
from call_resilience.retry.config import RetryConfigLike
from call_resilience.retry.executor import RetryExecutor

T = TypeVar("T")


class ResilientCaller:
    """``breaker(retry(operation))`` with shared breaker and executor instances."""

    def __init__(self, breaker: CircuitBreaker, retry_executor: RetryExecutor):
        self.breaker = breaker
        self.retry_executor = retry_executor

    async def call(
        self,
        circuit_name: str,
        operation: Callable[[], Awaitable[T]],
        fallback: Optional[Callable[[], Awaitable[T]]] = None,
        retry_config: RetryConfigLike = None,
        breaker_config: BreakerConfigLike = None,
        context: Optional[str] = None,
    ) -> T:
        """
        Run ``operation`` with the default retry policy inside the named circuit.

        Raises:
            CircuitOpenError: Circuit denied the call and no fallback was given
            Exception: Final operation error when no fallback was given
        """

        async def _with_retry() -> T:
            return await self.retry_executor.execute_or_raise(
                operation, retry_config, context or circuit_name
            )

        return await self.breaker.execute_with_breaker(
            circuit_name, _with_retry, fallback, breaker_config
        )

    async def call_provider(
        self,
        circuit_name: str,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        fallback: Optional[Callable[[], Awaitable[T]]] = None,
        retry_config: RetryConfigLike = None,
        breaker_config: BreakerConfigLike = None,
    ) -> T:
        """Same as ``call`` but with the conservative provider retry policy."""

        async def _with_retry() -> T:
            return await self.retry_executor.retry_provider_operation(
                operation, operation_name, retry_config
            )

        return await self.breaker.execute_with_breaker(
            circuit_name, _with_retry, fallback, breaker_config
        )
