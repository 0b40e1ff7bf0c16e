"""Redis client lifecycle for the notification pub/sub publisher."""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


async def init_redis(redis_url: str) -> aioredis.Redis | None:
    """Create an async Redis client, or return None when Redis is disabled or unreachable.

    Notifications are best-effort, so an unreachable Redis at startup
    degrades to the logging notifier instead of failing the boot.
    """
    if not redis_url:
        logger.info("Redis disabled; notifications will only be logged")
        return None

    client = aioredis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    try:
        await client.ping()
    except (RedisError, OSError):
        logger.warning("Redis unreachable at %s; falling back to log notifications", redis_url, exc_info=True)
        await client.aclose()
        return None
    return client


async def close_redis(client: aioredis.Redis | None) -> None:
    """Close the async Redis client connection if one was opened."""
    if client is not None:
        await client.aclose()
