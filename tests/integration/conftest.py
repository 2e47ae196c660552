"""Integration test fixtures.

The FastAPI app runs in-process with TestClient. External collaborators
(identity provider, usage log, LLM) are replaced through dependency_overrides;
breaker, retry executor, formatter and auth gate are the real implementations.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from call_resilience.api import dependencies as deps
from call_resilience.auth.gate import AuthValidationGate
from call_resilience.auth.models import AuthenticatedUser
from call_resilience.breaker.service import CircuitBreaker
from call_resilience.main import app
from call_resilience.retry.executor import RetryExecutor


@pytest.fixture
def identity():
    """Verifier, role store and usage log in one mock (like SupabaseAuthBackend)."""
    backend = AsyncMock()
    backend.get_user = AsyncMock(return_value=AuthenticatedUser(id="user-123", email="user@example.com"))
    backend.get_roles = AsyncMock(return_value=["student"])
    backend.count_requests_since = AsyncMock(return_value=0)
    backend.record_usage = AsyncMock()
    return backend


@pytest.fixture
def llm_client(chat_response):
    mock = AsyncMock()
    mock.chat_completion = AsyncMock(return_value=chat_response)
    return mock


@pytest.fixture
def circuit_breaker():
    return CircuitBreaker()


@pytest.fixture
def api_client(test_settings, identity, llm_client, circuit_breaker):
    """TestClient with external services overridden; no startup events run."""
    gate = AuthValidationGate(identity, identity, identity)
    executor = RetryExecutor(sleep=AsyncMock(return_value=None))

    app.dependency_overrides = {
        deps.get_settings: lambda: test_settings,
        deps.get_auth_gate: lambda: gate,
        deps.get_circuit_breaker: lambda: circuit_breaker,
        deps.get_retry_executor: lambda: executor,
        deps.get_llm_client: lambda: llm_client,
    }
    yield TestClient(app)
    app.dependency_overrides = {}
