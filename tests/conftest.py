"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
"""

import pytest

from call_resilience.config import Settings
from call_resilience.models.llm_models import ChatCompletionResponse

VALID_QUESTIONS_JSON = (
    '{"questions": [{"id": "q1", "question": "Which court reviews administrative acts?", '
    '"options": ["A", "B", "C", "D"], "correct_answer": 2, '
    '"explanation": "Administrative courts review them.", "difficulty": "beginner"}]}'
)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.REQUIRE_AUTH = False
    """
    return Settings(
        # === Application ===
        APP_NAME="Call Resilience Layer (Test)",
        APP_VERSION="0.1.0",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Circuit breaker ===
        CIRCUIT_FAILURE_THRESHOLD=3,
        CIRCUIT_RECOVERY_TIMEOUT_MS=30000,
        CIRCUIT_STORE_BACKEND="memory",

        # === Redis ===
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,

        # === Auth ===
        REQUIRE_AUTH=True,
        ADMIN_ROLES=["admin"],
        SUPABASE_URL="http://localhost:54321",
        SUPABASE_SERVICE_ROLE_KEY="test-service-role-key",

        # === LLM ===
        OPENAI_API_KEY="sk-test",
        OPENAI_BASE_URL="https://llm.test/v1",
        OPENAI_MODEL="gpt-4.1-2025-04-14",

        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def chat_response() -> ChatCompletionResponse:
    """A well-formed LLM reply containing one question."""
    return ChatCompletionResponse(
        content=VALID_QUESTIONS_JSON,
        model="gpt-4.1-2025-04-14",
        finish_reason="stop",
        prompt_tokens=120,
        completion_tokens=80,
        total_tokens=200,
        latency_ms=850,
    )
