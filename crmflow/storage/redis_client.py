"""Redis connection pool and key layout."""

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from crmflow.core.config import get_settings
from crmflow.core.logging import get_logger

logger = get_logger(__name__)

# One pool per process, shared by the rule store, execution log and dedup store
_pool: redis.ConnectionPool | None = None


async def init_redis_pool() -> None:
    """Create the shared connection pool. Safe to call twice."""
    global _pool
    if _pool is not None:
        return

    settings = get_settings()
    _pool = redis.ConnectionPool.from_url(
        settings.redis_url,
        decode_responses=True,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
    )
    logger.info("Redis pool created", max_connections=settings.redis_max_connections)


async def close_redis_pool() -> None:
    """Disconnect every pooled connection."""
    global _pool
    if _pool is None:
        return
    await _pool.disconnect()
    _pool = None
    logger.info("Redis pool closed")


def get_redis() -> Redis:
    """Client bound to the shared pool.

    Raises:
        RuntimeError: If init_redis_pool() has not run
    """
    if _pool is None:
        raise RuntimeError("Redis pool not initialized. Call init_redis_pool() first.")
    return redis.Redis(connection_pool=_pool)


async def ping_redis(client: Redis | None = None) -> bool:
    """Whether Redis answers a PING. Used by the health endpoint."""
    try:
        return bool(await (client or get_redis()).ping())
    except (RedisError, RuntimeError) as e:
        logger.warning("Redis ping failed", error=str(e))
        return False


_PREFIX = "crmflow"


class RedisKeys:
    """Key layout; everything lives under the ``crmflow:`` prefix.

    rules:detail:{rule_id}   hash  config JSON, active flag, version, timestamps
    rules:index:{trigger}    set   rule ids bound to a trigger
    rules:all                set   every rule id
    rules:version            int   bumped on every rule write
    rules:update             chan  rule change announcements
    executions:{rule_id}     list  execution records, newest first
    processed:{event_id}     str   dedup marker with TTL
    """

    RULE_ALL = f"{_PREFIX}:rules:all"
    RULE_VERSION = f"{_PREFIX}:rules:version"
    RULE_UPDATE_CHANNEL = f"{_PREFIX}:rules:update"

    @staticmethod
    def rule_detail(rule_id: str) -> str:
        return f"{_PREFIX}:rules:detail:{rule_id}"

    @staticmethod
    def rule_index(trigger: str) -> str:
        return f"{_PREFIX}:rules:index:{trigger}"

    @staticmethod
    def executions(rule_id: str) -> str:
        return f"{_PREFIX}:executions:{rule_id}"

    @staticmethod
    def processed(event_id: str) -> str:
        return f"{_PREFIX}:processed:{event_id}"
