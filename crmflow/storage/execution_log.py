"""Append-only execution log storage."""

from redis.asyncio import Redis
from redis.exceptions import RedisError

from crmflow.core.exceptions import StorageUnavailableError
from crmflow.models.execution import ExecutionRecord
from crmflow.storage.redis_client import RedisKeys, get_redis


class ExecutionLog:
    """Per-rule audit trail of action attempts, newest first.

    Records are only ever appended; retention belongs to whoever archives
    the audit trail.
    """

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def append(self, record: ExecutionRecord) -> None:
        """Append a record. Records are never updated or removed afterwards.

        Raises:
            StorageUnavailableError: If Redis cannot be reached
        """
        try:
            await self.redis.lpush(RedisKeys.executions(record.rule_id), record.model_dump_json())
        except RedisError as e:
            raise StorageUnavailableError("append_execution", e) from e

    async def list_for_rule(self, rule_id: str, limit: int | None = None) -> list[ExecutionRecord]:
        """Get records for a rule, newest first.

        Args:
            rule_id: Rule ID
            limit: Maximum records to return (all records if None)
        """
        end = -1 if limit is None else limit - 1
        try:
            entries = await self.redis.lrange(RedisKeys.executions(rule_id), 0, end)
        except RedisError as e:
            raise StorageUnavailableError("list_executions", e) from e
        return [ExecutionRecord.model_validate_json(entry) for entry in entries]

    async def count_for_rule(self, rule_id: str) -> int:
        try:
            return await self.redis.llen(RedisKeys.executions(rule_id))
        except RedisError as e:
            raise StorageUnavailableError("count_executions", e) from e
