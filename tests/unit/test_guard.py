"""
Unit tests for ResilientCaller (breaker around retry).
"""

from unittest.mock import AsyncMock

import pytest

from call_resilience.breaker.exceptions import CircuitOpenError
from call_resilience.guard import ResilientCaller
from call_resilience.models.enums import CircuitStatus


@pytest.fixture
def caller(breaker, retry_executor):
    return ResilientCaller(breaker, retry_executor)


@pytest.mark.asyncio
async def test_success_after_retry_leaves_circuit_closed(caller, breaker):
    operation = AsyncMock(side_effect=[Exception("timeout"), "ok"])

    assert await caller.call("dep", operation) == "ok"

    state = await breaker.get_circuit_state("dep")
    assert state.status is CircuitStatus.CLOSED
    assert state.failure_count == 0


@pytest.mark.asyncio
async def test_one_breaker_failure_per_exhausted_sequence(caller, breaker):
    operation = AsyncMock(side_effect=Exception("503"))

    with pytest.raises(Exception, match="503"):
        await caller.call("dep", operation, retry_config={"max_retries": 2})

    assert operation.await_count == 3
    assert (await breaker.get_circuit_state("dep")).failure_count == 1


@pytest.mark.asyncio
async def test_permanent_error_fails_fast_through_breaker(caller, breaker):
    operation = AsyncMock(side_effect=Exception("401 unauthorized"))

    with pytest.raises(Exception, match="401"):
        await caller.call("dep", operation)

    operation.assert_awaited_once()


@pytest.mark.asyncio
async def test_open_circuit_skips_retry_loop(caller, breaker):
    failing = AsyncMock(side_effect=Exception("503"))
    for _ in range(3):
        with pytest.raises(Exception):
            await caller.call("dep", failing, retry_config={"max_retries": 0})

    operation = AsyncMock(return_value="live")
    with pytest.raises(CircuitOpenError):
        await caller.call("dep", operation)
    operation.assert_not_awaited()


@pytest.mark.asyncio
async def test_fallback_after_exhaustion(caller):
    fallback = AsyncMock(return_value="canned")

    result = await caller.call(
        "dep", AsyncMock(side_effect=Exception("timeout")), fallback=fallback, retry_config={"max_retries": 1}
    )

    assert result == "canned"


@pytest.mark.asyncio
async def test_call_provider_uses_provider_policy(caller, no_sleep):
    operation = AsyncMock(side_effect=Exception("503"))

    with pytest.raises(Exception):
        await caller.call_provider("openai-chat", operation, "chat")

    assert operation.await_count == 3
    assert no_sleep.await_count == 2


@pytest.mark.asyncio
async def test_breaker_config_passed_through(caller, breaker):
    with pytest.raises(Exception):
        await caller.call(
            "dep",
            AsyncMock(side_effect=Exception("503")),
            retry_config={"max_retries": 0},
            breaker_config={"failure_threshold": 1},
        )

    assert (await breaker.get_circuit_state("dep")).status is CircuitStatus.OPEN
