"""
Unit tests for the CircuitBreaker state machine.

Time is driven by the FakeClock fixture from tests/unit/conftest.py.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from call_resilience.breaker.exceptions import CircuitOpenError
from call_resilience.breaker.service import CircuitBreaker
from call_resilience.breaker.state import CircuitBreakerConfig, CircuitState
from call_resilience.models.enums import CircuitStatus

CIRCUIT = "openai-chat"


async def trip(breaker: CircuitBreaker, times: int = 3) -> None:
    """Fail ``times`` calls on CIRCUIT without a fallback."""
    for _ in range(times):
        with pytest.raises(RuntimeError):
            await breaker.execute_with_breaker(CIRCUIT, AsyncMock(side_effect=RuntimeError("503")))


class TestClosedState:

    @pytest.mark.asyncio
    async def test_success_passes_through(self, breaker):
        result = await breaker.execute_with_breaker(CIRCUIT, AsyncMock(return_value="ok"))

        assert result == "ok"
        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.CLOSED
        assert state.failure_count == 0

    @pytest.mark.asyncio
    async def test_failure_reraised_without_fallback(self, breaker):
        error = RuntimeError("boom")

        with pytest.raises(RuntimeError) as exc_info:
            await breaker.execute_with_breaker(CIRCUIT, AsyncMock(side_effect=error))

        assert exc_info.value is error
        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.CLOSED
        assert state.failure_count == 1
        assert state.last_failure_time_ms > 0

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        await trip(breaker, times=2)

        await breaker.execute_with_breaker(CIRCUIT, AsyncMock(return_value="ok"))

        assert (await breaker.get_circuit_state(CIRCUIT)).failure_count == 0

    @pytest.mark.asyncio
    async def test_failure_uses_fallback_when_supplied(self, breaker):
        fallback = AsyncMock(return_value="canned")

        result = await breaker.execute_with_breaker(
            CIRCUIT, AsyncMock(side_effect=RuntimeError("boom")), fallback=fallback
        )

        assert result == "canned"
        fallback.assert_awaited_once()
        assert (await breaker.get_circuit_state(CIRCUIT)).failure_count == 1


class TestOpenState:

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, breaker, clock):
        await trip(breaker)

        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.OPEN
        assert state.failure_count == 3
        assert state.next_attempt_time_ms == clock() + 30000

    @pytest.mark.asyncio
    async def test_open_serves_fallback_without_calling_operation(self, breaker):
        await trip(breaker)
        operation = AsyncMock(return_value="live")
        fallback = AsyncMock(return_value="canned")

        result = await breaker.execute_with_breaker(CIRCUIT, operation, fallback=fallback)

        assert result == "canned"
        operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_open_without_fallback_raises_circuit_open(self, breaker, clock):
        await trip(breaker)
        operation = AsyncMock()

        with pytest.raises(CircuitOpenError, match=f"Circuit breaker is OPEN for {CIRCUIT}") as exc_info:
            await breaker.execute_with_breaker(CIRCUIT, operation)

        assert exc_info.value.next_attempt_time_ms == clock() + 30000
        operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_circuits_are_independent(self, breaker):
        await trip(breaker)

        result = await breaker.execute_with_breaker("supabase", AsyncMock(return_value="ok"))

        assert result == "ok"

    @pytest.mark.asyncio
    async def test_per_call_threshold_override(self, breaker):
        with pytest.raises(RuntimeError):
            await breaker.execute_with_breaker(
                CIRCUIT, AsyncMock(side_effect=RuntimeError("x")), config={"failure_threshold": 1}
            )

        assert (await breaker.get_circuit_state(CIRCUIT)).status is CircuitStatus.OPEN


class TestRecovery:

    @pytest.mark.asyncio
    async def test_trial_call_success_closes_circuit(self, breaker, clock):
        await trip(breaker)
        clock.advance(30000)
        operation = AsyncMock(return_value="recovered")

        result = await breaker.execute_with_breaker(CIRCUIT, operation)

        assert result == "recovered"
        operation.assert_awaited_once()
        state = await breaker.get_circuit_state(CIRCUIT)
        assert state == CircuitState.closed()

    @pytest.mark.asyncio
    async def test_trial_call_moves_through_half_open(self, breaker, clock):
        await trip(breaker)
        clock.advance(30000)
        seen = []

        async def operation():
            seen.append((await breaker.get_circuit_state(CIRCUIT)).status)
            return "ok"

        await breaker.execute_with_breaker(CIRCUIT, operation)

        assert seen == [CircuitStatus.HALF_OPEN]

    @pytest.mark.asyncio
    async def test_trial_call_failure_reopens_with_fresh_timeout(self, breaker, clock):
        await trip(breaker)
        clock.advance(30000)

        with pytest.raises(RuntimeError):
            await breaker.execute_with_breaker(CIRCUIT, AsyncMock(side_effect=RuntimeError("still down")))

        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.OPEN
        assert state.failure_count == 4
        assert state.next_attempt_time_ms == clock() + 30000

    @pytest.mark.asyncio
    async def test_trial_call_failure_below_threshold_stays_open_pending(self, clock):
        """After a higher threshold is configured, a failed trial call keeps the elapsed deadline."""
        breaker = CircuitBreaker(clock=clock)
        await breaker.store.set(
            CIRCUIT,
            CircuitState(
                status=CircuitStatus.OPEN,
                failure_count=1,
                last_failure_time_ms=clock(),
                next_attempt_time_ms=clock() + 1000,
            ),
        )
        clock.advance(1000)

        with pytest.raises(RuntimeError):
            await breaker.execute_with_breaker(
                CIRCUIT, AsyncMock(side_effect=RuntimeError("x")), config={"failure_threshold": 5}
            )

        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.OPEN
        assert state.failure_count == 2
        assert state.next_attempt_time_ms <= clock()

        # next call is allowed through as another trial call
        operation = AsyncMock(return_value="ok")
        assert await breaker.execute_with_breaker(CIRCUIT, operation) == "ok"
        operation.assert_awaited_once()


class TestConcurrentCalls:

    @staticmethod
    def gated_failure(gate: asyncio.Event):
        async def operation():
            await gate.wait()
            raise RuntimeError("503")

        return operation

    @pytest.mark.asyncio
    async def test_overlapping_failures_all_count(self, breaker):
        gate = asyncio.Event()
        calls = [
            asyncio.create_task(breaker.execute_with_breaker(CIRCUIT, self.gated_failure(gate)))
            for _ in range(5)
        ]
        await asyncio.sleep(0)
        gate.set()

        results = await asyncio.gather(*calls, return_exceptions=True)

        assert all(isinstance(result, RuntimeError) for result in results)
        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.OPEN
        assert state.failure_count == 5

    @pytest.mark.asyncio
    async def test_late_failure_keeps_circuit_open(self, breaker, clock):
        gate = asyncio.Event()
        in_flight = asyncio.create_task(breaker.execute_with_breaker(CIRCUIT, self.gated_failure(gate)))
        await asyncio.sleep(0)

        await trip(breaker)
        opened = await breaker.get_circuit_state(CIRCUIT)

        gate.set()
        with pytest.raises(RuntimeError):
            await in_flight

        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.OPEN
        assert state.failure_count == 4
        assert state.next_attempt_time_ms == opened.next_attempt_time_ms

    @pytest.mark.asyncio
    async def test_late_success_does_not_close_open_circuit(self, breaker):
        gate = asyncio.Event()

        async def slow_success():
            await gate.wait()
            return "late"

        in_flight = asyncio.create_task(breaker.execute_with_breaker(CIRCUIT, slow_success))
        await asyncio.sleep(0)
        await trip(breaker)

        gate.set()
        assert await in_flight == "late"

        assert (await breaker.get_circuit_state(CIRCUIT)).status is CircuitStatus.OPEN

    @pytest.mark.asyncio
    async def test_failure_after_reset_counts_from_zero(self, breaker):
        gate = asyncio.Event()
        in_flight = asyncio.create_task(breaker.execute_with_breaker(CIRCUIT, self.gated_failure(gate)))
        await asyncio.sleep(0)
        await trip(breaker, times=2)
        await breaker.reset_circuit(CIRCUIT)

        gate.set()
        with pytest.raises(RuntimeError):
            await in_flight

        state = await breaker.get_circuit_state(CIRCUIT)
        assert state.status is CircuitStatus.CLOSED
        assert state.failure_count == 1


class TestManagement:

    @pytest.mark.asyncio
    async def test_state_created_lazily(self, breaker):
        assert await breaker.get_all_circuit_stats() == {}

        state = await breaker.get_circuit_state("new")

        assert state == CircuitState.closed()
        assert "new" in await breaker.get_all_circuit_stats()

    @pytest.mark.asyncio
    async def test_reset_circuit(self, breaker):
        await trip(breaker)

        state = await breaker.reset_circuit(CIRCUIT)

        assert state == CircuitState.closed()
        assert await breaker.execute_with_breaker(CIRCUIT, AsyncMock(return_value="ok")) == "ok"

    @pytest.mark.asyncio
    async def test_cleanup_removes_only_stale_failed_circuits(self, breaker, clock):
        await breaker.get_circuit_state("never-failed")
        await trip(breaker, times=1)
        clock.advance(10 * 60 * 1000 + 1)
        with pytest.raises(RuntimeError):
            await breaker.execute_with_breaker("recent", AsyncMock(side_effect=RuntimeError("x")))

        removed = await breaker.cleanup_inactive_circuits()

        assert removed == [CIRCUIT]
        assert set(await breaker.get_all_circuit_stats()) == {"never-failed", "recent"}

    @pytest.mark.asyncio
    async def test_cleanup_keeps_circuit_at_exact_ttl(self, breaker, clock):
        await trip(breaker, times=1)
        clock.advance(10 * 60 * 1000)

        assert await breaker.cleanup_inactive_circuits() == []


class TestCircuitBreakerConfig:

    @pytest.mark.parametrize(
        "kwargs",
        [{"failure_threshold": 0}, {"recovery_timeout_ms": -1}, {"monitoring_window_ms": -5}],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            CircuitBreakerConfig(**kwargs)

    def test_unknown_override_rejected(self):
        with pytest.raises(ValueError, match="threshold"):
            CircuitBreakerConfig().merged({"threshold": 2})

    def test_from_settings(self, test_settings):
        assert CircuitBreakerConfig.from_settings(test_settings) == CircuitBreakerConfig()

    def test_state_dict_roundtrip_from_redis_strings(self):
        state = CircuitState.from_dict(
            {"status": "OPEN", "failure_count": "3", "last_failure_time_ms": "10", "next_attempt_time_ms": "20"}
        )
        assert state == CircuitState(CircuitStatus.OPEN, 3, 10, 20)
        assert state.to_dict()["status"] == "OPEN"
