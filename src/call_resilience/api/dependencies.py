"""
FastAPI dependency injection for the call-resilience service.

Provides singleton instances of stateful resources (circuit breaker, LLM
client, auth gate) and factory functions for lightweight compositions.
"""

from datetime import timedelta
from functools import lru_cache

from fastapi import Depends

from call_resilience.auth.gate import AuthValidationGate
from call_resilience.auth.supabase import SupabaseAuthBackend
from call_resilience.breaker.service import CircuitBreaker
from call_resilience.breaker.state import CircuitBreakerConfig
from call_resilience.breaker.store import CircuitStore, InMemoryCircuitStore, RedisCircuitStore
from call_resilience.config import Settings, settings
from call_resilience.generation import QuestionGenerator
from call_resilience.guard import ResilientCaller
from call_resilience.llm.base_client import BaseLLMClient
from call_resilience.llm.openai_client import OpenAIClient
from call_resilience.persistence.redis_client import RedisClient
from call_resilience.retry.config import RetryConfig
from call_resilience.retry.executor import RetryExecutor


@lru_cache()
def get_settings() -> Settings:
    """Get settings singleton."""
    return settings


def build_circuit_store(settings: Settings) -> CircuitStore:
    """
    Circuit store for the configured backend.

    Raises:
        ValueError: Unknown CIRCUIT_STORE_BACKEND
    """
    backend = settings.CIRCUIT_STORE_BACKEND.lower()
    if backend == "memory":
        return InMemoryCircuitStore()
    if backend == "redis":
        return RedisCircuitStore(
            RedisClient.get_async_client(settings),
            key_prefix=settings.CIRCUIT_REDIS_KEY_PREFIX,
        )
    raise ValueError(f"Unknown circuit store backend: {settings.CIRCUIT_STORE_BACKEND}")


@lru_cache()
def get_circuit_breaker() -> CircuitBreaker:
    """
    Get the process-wide circuit breaker.

    Must be a singleton: with the in-memory store, circuit state lives in
    this instance.
    """
    settings = get_settings()
    return CircuitBreaker(
        store=build_circuit_store(settings),
        default_config=CircuitBreakerConfig.from_settings(settings),
        idle_ttl_ms=settings.CIRCUIT_IDLE_TTL_MS,
    )


@lru_cache()
def get_retry_executor() -> RetryExecutor:
    settings = get_settings()
    return RetryExecutor(
        default_config=RetryConfig.from_settings(settings),
        provider_config=RetryConfig.provider_from_settings(settings),
    )


@lru_cache()
def get_llm_client() -> BaseLLMClient:
    """
    Get singleton LLM client with connection pooling.

    The client keeps one httpx connection pool for the process.
    """
    return OpenAIClient.from_settings(get_settings())


@lru_cache()
def get_auth_gate() -> AuthValidationGate:
    """Auth gate backed by Supabase for identity, roles and the usage log."""
    settings = get_settings()
    backend = SupabaseAuthBackend.from_settings(settings)
    return AuthValidationGate(
        verifier=backend,
        role_store=backend,
        usage_log=backend,
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window=timedelta(seconds=settings.RATE_LIMIT_WINDOW_SECONDS),
    )


def get_resilient_caller(
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    retry_executor: RetryExecutor = Depends(get_retry_executor),
) -> ResilientCaller:
    """
    Compose breaker and retry executor.

    Note: not cached, it holds no state of its own.
    """
    return ResilientCaller(breaker, retry_executor)


def get_question_generator(
    llm_client: BaseLLMClient = Depends(get_llm_client),
    caller: ResilientCaller = Depends(get_resilient_caller),
    settings: Settings = Depends(get_settings),
) -> QuestionGenerator:
    return QuestionGenerator.from_settings(llm_client, caller, settings)
