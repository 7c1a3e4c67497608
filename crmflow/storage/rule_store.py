"""Workflow rule storage operations."""

import json
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from crmflow.core.exceptions import ConfigurationError, StorageUnavailableError
from crmflow.core.logging import get_logger
from crmflow.models.rule import WorkflowRule
from crmflow.observability.metrics import RULES_REJECTED
from crmflow.storage.redis_client import RedisKeys, get_redis

logger = get_logger(__name__)


def parse_rule(raw: str | bytes | Mapping[str, Any]) -> WorkflowRule:
    """Parse a stored rule eagerly into a validated model.

    Args:
        raw: Rule as JSON text or an already-decoded mapping

    Returns:
        Validated rule

    Raises:
        ConfigurationError: On malformed JSON, unknown operators, unknown
            triggers or any other shape error
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ConfigurationError(f"Rule is not valid JSON: {e}") from e
    else:
        data = raw

    rule_id = data.get("rule_id") if isinstance(data, Mapping) else None
    try:
        return WorkflowRule.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid rule {rule_id or '<unknown>'}: {problems}", rule_id=rule_id) from e


@contextmanager
def _storage_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except RedisError as e:
        logger.error("Rule storage unavailable", operation=operation, error=str(e))
        raise StorageUnavailableError(operation, e) from e


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RuleStore:
    """Rule storage operations using Redis."""

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    @property
    def redis(self) -> Redis:
        return self._redis or get_redis()

    async def create(self, rule: WorkflowRule) -> WorkflowRule:
        """Create a new rule."""
        with _storage_guard("create_rule"):
            await self.redis.hset(
                RedisKeys.rule_detail(rule.rule_id),
                mapping={
                    "config": rule.model_dump_json(),
                    "active": str(rule.is_active).lower(),
                    "version": str(rule.metadata.version),
                    "created_at": str(int(rule.metadata.created_at.timestamp() * 1000)),
                    "updated_at": str(int(rule.metadata.updated_at.timestamp() * 1000)),
                },
            )
            await self.redis.sadd(RedisKeys.RULE_ALL, rule.rule_id)
            await self.redis.sadd(RedisKeys.rule_index(rule.trigger_event.value), rule.rule_id)
            await self._publish_update("create", rule.rule_id)
        return rule

    async def get(self, rule_id: str) -> WorkflowRule | None:
        """Get a rule by ID.

        Raises:
            ConfigurationError: If the stored rule is malformed
        """
        with _storage_guard("get_rule"):
            data = await self.redis.hget(RedisKeys.rule_detail(rule_id), "config")
        if not data:
            return None
        return parse_rule(data)

    async def update(self, rule_id: str, rule: WorkflowRule) -> WorkflowRule | None:
        """Replace an existing rule, bumping its version."""
        existing = await self.get(rule_id)
        if not existing:
            return None

        rule.metadata.updated_at = _utc_now()
        rule.metadata.version = existing.metadata.version + 1

        with _storage_guard("update_rule"):
            if existing.trigger_event != rule.trigger_event:
                await self.redis.srem(RedisKeys.rule_index(existing.trigger_event.value), rule_id)
                await self.redis.sadd(RedisKeys.rule_index(rule.trigger_event.value), rule_id)

            await self.redis.hset(
                RedisKeys.rule_detail(rule_id),
                mapping={
                    "config": rule.model_dump_json(),
                    "active": str(rule.is_active).lower(),
                    "version": str(rule.metadata.version),
                    "updated_at": str(int(rule.metadata.updated_at.timestamp() * 1000)),
                },
            )
            await self._publish_update("update", rule_id)
        return rule

    async def delete(self, rule_id: str) -> bool:
        """Delete a rule. Its execution history is kept."""
        existing = await self.get(rule_id)
        if not existing:
            return False

        with _storage_guard("delete_rule"):
            await self.redis.srem(RedisKeys.rule_index(existing.trigger_event.value), rule_id)
            await self.redis.srem(RedisKeys.RULE_ALL, rule_id)
            await self.redis.delete(RedisKeys.rule_detail(rule_id))
            await self._publish_update("delete", rule_id)
        return True

    async def list_all(self) -> list[WorkflowRule]:
        """List all loadable rules, skipping malformed ones."""
        with _storage_guard("list_rules"):
            rule_ids = await self.redis.smembers(RedisKeys.RULE_ALL)
        return await self._load_many(rule_ids, active_only=False)

    async def list_by_trigger(self, trigger: str, include_inactive: bool = False) -> list[WorkflowRule]:
        """List rules bound to a trigger.

        Args:
            trigger: Trigger name
            include_inactive: Also return inactive rules (management API)

        Returns:
            Rules ordered by priority descending, then rule_id

        Raises:
            ValueError: If trigger is empty
            StorageUnavailableError: If Redis cannot be reached
        """
        if not trigger:
            raise ValueError("trigger name must be non-empty")

        with _storage_guard("list_rules_by_trigger"):
            rule_ids = await self.redis.smembers(RedisKeys.rule_index(trigger))
        rules = await self._load_many(rule_ids, active_only=not include_inactive)
        return [rule for rule in rules if rule.trigger_event.value == trigger]

    async def list_active_by_trigger(self, trigger: str) -> list[WorkflowRule]:
        """Active rules for a trigger, read fresh from storage."""
        return await self.list_by_trigger(trigger, include_inactive=False)

    async def set_active(self, rule_id: str, active: bool) -> bool:
        """Set rule active status."""
        rule = await self.get(rule_id)
        if not rule:
            return False

        rule.is_active = active
        rule.metadata.updated_at = _utc_now()

        with _storage_guard("set_rule_active"):
            await self.redis.hset(
                RedisKeys.rule_detail(rule_id),
                mapping={
                    "config": rule.model_dump_json(),
                    "active": str(active).lower(),
                    "updated_at": str(int(rule.metadata.updated_at.timestamp() * 1000)),
                },
            )
            await self._publish_update("update", rule_id)
        return True

    async def get_version(self) -> int:
        """Get global rules version number."""
        with _storage_guard("get_rules_version"):
            version = await self.redis.get(RedisKeys.RULE_VERSION)
        return int(version) if version else 0

    async def _load_many(self, rule_ids: set[str], active_only: bool) -> list[WorkflowRule]:
        rules: list[WorkflowRule] = []
        for rule_id in sorted(rule_ids):
            with _storage_guard("load_rule"):
                data = await self.redis.hget(RedisKeys.rule_detail(rule_id), "config")
            if not data:
                continue
            try:
                rule = parse_rule(data)
            except ConfigurationError as e:
                RULES_REJECTED.inc()
                logger.error("Rule rejected at load", rule_id=rule_id, error=str(e))
                continue
            if active_only and not rule.is_active:
                continue
            rules.append(rule)

        rules.sort(key=lambda r: (-r.priority, r.rule_id))
        return rules

    async def _publish_update(self, action: str, rule_id: str) -> None:
        """Bump the rules version and announce the change."""
        await self.redis.incr(RedisKeys.RULE_VERSION)
        message = json.dumps({
            "action": action,
            "rule_id": rule_id,
            "timestamp": int(_utc_now().timestamp() * 1000),
        })
        await self.redis.publish(RedisKeys.RULE_UPDATE_CHANNEL, message)
