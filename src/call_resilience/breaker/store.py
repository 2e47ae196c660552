"""
Circuit state stores.

The breaker keeps its name -> CircuitState mapping behind a small async
interface so the storage can be swapped:

- InMemoryCircuitStore: per-process dict (default, one per breaker instance)
- RedisCircuitStore: one Redis hash per circuit, shared by all workers

``update`` is the read-modify-write primitive: the mutation sees the state
as stored at write time, never an earlier snapshot. The in-memory store runs
it without yielding to the event loop; the Redis store runs it in a
WATCH/MULTI transaction and retries when another writer got there first.
"""

from collections.abc import Callable
from typing import Optional, Protocol

import structlog
from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import WatchError

from call_resilience.breaker.state import CircuitState

logger = structlog.get_logger(__name__)

# Receives the stored state (None if absent); returns the replacement or None to keep it
CircuitMutation = Callable[[Optional[CircuitState]], Optional[CircuitState]]


class CircuitStore(Protocol):
    """Async keyed storage for circuit states."""

    async def get(self, name: str) -> Optional[CircuitState]:
        ...

    async def set(self, name: str, state: CircuitState) -> None:
        ...

    async def update(
        self, name: str, mutate: CircuitMutation
    ) -> tuple[Optional[CircuitState], Optional[CircuitState]]:
        """Atomically apply ``mutate``; returns ``(previous, current)``."""
        ...

    async def delete(self, name: str) -> None:
        ...

    async def items(self) -> dict[str, CircuitState]:
        ...


class InMemoryCircuitStore:
    """Dict-backed store; state lives as long as the process."""

    def __init__(self) -> None:
        self._circuits: dict[str, CircuitState] = {}

    async def get(self, name: str) -> Optional[CircuitState]:
        return self._circuits.get(name)

    async def set(self, name: str, state: CircuitState) -> None:
        self._circuits[name] = state

    async def update(
        self, name: str, mutate: CircuitMutation
    ) -> tuple[Optional[CircuitState], Optional[CircuitState]]:
        previous = self._circuits.get(name)
        current = mutate(previous)
        if current is None:
            return previous, previous
        self._circuits[name] = current
        return previous, current

    async def delete(self, name: str) -> None:
        self._circuits.pop(name, None)

    async def items(self) -> dict[str, CircuitState]:
        return dict(self._circuits)

    def __len__(self) -> int:
        return len(self._circuits)


class RedisCircuitStore:
    """
    Redis-backed store sharing circuit state across worker processes.

    Each circuit is a hash at ``<key_prefix><name>`` with the CircuitState
    fields. The client must be created with ``decode_responses=True``.

    Attributes:
        redis: Async Redis client
        key_prefix: Namespace for circuit keys
    """

    def __init__(self, redis: AsyncRedis, key_prefix: str = "circuit:") -> None:
        self.redis = redis
        self.key_prefix = key_prefix

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    async def get(self, name: str) -> Optional[CircuitState]:
        data = await self.redis.hgetall(self._key(name))
        if not data:
            return None
        return CircuitState.from_dict(data)

    async def set(self, name: str, state: CircuitState) -> None:
        await self.redis.hset(self._key(name), mapping=state.to_dict())

    async def update(
        self, name: str, mutate: CircuitMutation
    ) -> tuple[Optional[CircuitState], Optional[CircuitState]]:
        key = self._key(name)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    data = await pipe.hgetall(key)
                    previous = CircuitState.from_dict(data) if data else None
                    current = mutate(previous)
                    if current is None:
                        await pipe.unwatch()
                        return previous, previous
                    pipe.multi()
                    pipe.hset(key, mapping=current.to_dict())
                    await pipe.execute()
                    return previous, current
                except WatchError:
                    logger.debug("Circuit changed during update, retrying", circuit=name)
                    continue

    async def delete(self, name: str) -> None:
        await self.redis.delete(self._key(name))

    async def items(self) -> dict[str, CircuitState]:
        circuits: dict[str, CircuitState] = {}
        async for key in self.redis.scan_iter(match=f"{self.key_prefix}*"):
            data = await self.redis.hgetall(key)
            if data:
                circuits[key[len(self.key_prefix):]] = CircuitState.from_dict(data)
        logger.debug("Loaded circuits from Redis", count=len(circuits))
        return circuits
