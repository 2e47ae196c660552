"""Connection management for external state stores."""

from call_resilience.persistence.redis_client import RedisClient

__all__ = ["RedisClient"]
