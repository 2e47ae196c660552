"""
Circuit breaker for named outbound dependencies.

- service.py: CircuitBreaker state machine (CLOSED / OPEN / HALF_OPEN)
- state.py: CircuitState and CircuitBreakerConfig value objects
- store.py: In-memory and Redis circuit state stores
- sweeper.py: Background cleanup of idle circuits
- exceptions.py: CircuitOpenError
"""

from call_resilience.breaker.exceptions import CircuitOpenError
from call_resilience.breaker.service import CircuitBreaker
from call_resilience.breaker.state import CircuitBreakerConfig, CircuitState
from call_resilience.breaker.store import CircuitStore, InMemoryCircuitStore, RedisCircuitStore
from call_resilience.breaker.sweeper import CircuitSweeper

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitStore",
    "InMemoryCircuitStore",
    "RedisCircuitStore",
    "CircuitSweeper",
    "CircuitOpenError",
]
