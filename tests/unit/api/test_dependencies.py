"""
Unit tests for API dependency injection.
"""

from unittest.mock import MagicMock, patch

import pytest

from call_resilience.api.dependencies import (
    build_circuit_store,
    get_circuit_breaker,
    get_llm_client,
    get_question_generator,
    get_resilient_caller,
    get_retry_executor,
    get_settings,
)
from call_resilience.breaker.service import CircuitBreaker
from call_resilience.breaker.store import InMemoryCircuitStore, RedisCircuitStore
from call_resilience.config import Settings
from call_resilience.generation import QuestionGenerator
from call_resilience.guard import ResilientCaller
from call_resilience.llm.base_client import BaseLLMClient
from call_resilience.retry.executor import RetryExecutor


def test_get_settings():
    """Test settings singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    # Should be same instance (cached)
    assert settings1 is settings2
    assert isinstance(settings1, Settings)


def test_get_circuit_breaker():
    """Breaker must be shared so in-memory circuit state survives across requests."""
    breaker1 = get_circuit_breaker()
    breaker2 = get_circuit_breaker()

    assert breaker1 is breaker2
    assert isinstance(breaker1, CircuitBreaker)


def test_get_llm_client():
    client1 = get_llm_client()
    client2 = get_llm_client()

    assert client1 is client2
    assert isinstance(client1, BaseLLMClient)


def test_get_retry_executor():
    executor = get_retry_executor()

    assert executor is get_retry_executor()
    assert isinstance(executor, RetryExecutor)
    assert executor.provider_config.max_retries == get_settings().PROVIDER_MAX_RETRIES


def test_resilient_caller_and_generator_composition(test_settings):
    breaker = CircuitBreaker()
    executor = RetryExecutor()

    caller = get_resilient_caller(breaker, executor)
    generator = get_question_generator(MagicMock(), caller, test_settings)

    assert isinstance(caller, ResilientCaller)
    assert caller.breaker is breaker
    assert isinstance(generator, QuestionGenerator)
    assert generator.caller is caller


def test_memory_store_backend(test_settings):
    assert isinstance(build_circuit_store(test_settings), InMemoryCircuitStore)


def test_redis_store_backend(test_settings):
    test_settings.CIRCUIT_STORE_BACKEND = "redis"
    test_settings.CIRCUIT_REDIS_KEY_PREFIX = "cb:"

    with patch("call_resilience.api.dependencies.RedisClient") as mock_redis_client:
        store = build_circuit_store(test_settings)

    assert isinstance(store, RedisCircuitStore)
    assert store.key_prefix == "cb:"
    mock_redis_client.get_async_client.assert_called_once_with(test_settings)


def test_unknown_store_backend(test_settings):
    test_settings.CIRCUIT_STORE_BACKEND = "etcd"

    with pytest.raises(ValueError, match="etcd"):
        build_circuit_store(test_settings)
