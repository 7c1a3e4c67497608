"""Auxiliary storage operations (event deduplication)."""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from crmflow.core.config import get_settings
from crmflow.core.exceptions import StorageUnavailableError
from crmflow.storage.redis_client import RedisKeys, get_redis


class IdempotencyStore:
    """Remembers processed event ids so redelivered messages are ignored."""

    def __init__(self, redis: Redis | None = None, ttl_seconds: int | None = None):
        self._redis = redis
        self._ttl = ttl_seconds or get_settings().event_dedup_ttl_seconds

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def is_processed(self, event_id: str) -> bool:
        """Check if event has been processed."""
        try:
            return await self.redis.exists(RedisKeys.processed(event_id)) > 0
        except RedisError as e:
            raise StorageUnavailableError("check_processed", e) from e

    async def mark_processed(self, event_id: str) -> bool:
        """Mark event as processed.

        Returns:
            True if newly marked, False if already seen
        """
        try:
            result = await self.redis.set(RedisKeys.processed(event_id), "1", nx=True, ex=self._ttl)
        except RedisError as e:
            raise StorageUnavailableError("mark_processed", e) from e
        return bool(result)
