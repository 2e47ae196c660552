"""
Background sweep of idle circuits.

Runs ``CircuitBreaker.cleanup_inactive_circuits`` on a fixed interval so the
name -> state mapping cannot grow without bound. Started and stopped from the
application lifespan.
"""

import asyncio
from typing import Optional

import structlog

from call_resilience.breaker.service import CircuitBreaker

logger = structlog.get_logger(__name__)


class CircuitSweeper:
    """Periodic idle-circuit cleanup as an asyncio task."""

    def __init__(self, breaker: CircuitBreaker, interval_seconds: float = 300.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.breaker = breaker
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="circuit-sweeper")
        logger.info("Circuit sweeper started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Circuit sweeper stopped")

    async def sweep_once(self) -> list[str]:
        removed = await self.breaker.cleanup_inactive_circuits()
        if removed:
            logger.info("Circuit sweep removed idle circuits", removed=removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep_once()
            except Exception:
                # A failing store must not kill the sweeper; next tick retries.
                logger.exception("Circuit sweep failed")
