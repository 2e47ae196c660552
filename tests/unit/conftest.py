"""Unit test fixtures (mocks and stubs).

Provides mock objects and controllable time sources so retry and breaker
behavior is tested without real waiting.
"""

import random
from unittest.mock import AsyncMock

import pytest

from call_resilience.auth.models import AuthenticatedUser
from call_resilience.breaker.service import CircuitBreaker
from call_resilience.breaker.store import InMemoryCircuitStore
from call_resilience.retry.executor import RetryExecutor


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep that records requested delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def retry_executor(no_sleep) -> RetryExecutor:
    """RetryExecutor with recorded sleeps and a seeded random source."""
    return RetryExecutor(sleep=no_sleep, rng=random.Random(42))


@pytest.fixture
def breaker(clock) -> CircuitBreaker:
    return CircuitBreaker(store=InMemoryCircuitStore(), clock=clock)


@pytest.fixture
def mock_llm_client(chat_response):
    """Mock BaseLLMClient returning a valid reply."""
    mock = AsyncMock()
    mock.chat_completion = AsyncMock(return_value=chat_response)
    mock.health_check = AsyncMock(return_value=True)
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def mock_verifier():
    """IdentityVerifier accepting every token as user-123."""
    mock = AsyncMock()
    mock.get_user = AsyncMock(return_value=AuthenticatedUser(id="user-123", email="user@example.com"))
    return mock


@pytest.fixture
def mock_async_redis():
    """Mock AsyncRedis client for unit tests (async)."""
    mock = AsyncMock()
    mock.hgetall = AsyncMock(return_value={})
    mock.hset = AsyncMock(return_value=4)
    mock.delete = AsyncMock(return_value=1)
    return mock
