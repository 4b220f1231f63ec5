"""Shared Redis connection for request rate limiting.

Redis holds only short-lived counters. Balances never touch it; every coin
movement goes through PostgreSQL, so losing Redis degrades throttling and
nothing else.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Return the process-wide client, creating it lazily."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


async def ping_redis() -> bool:
    """Probe Redis at startup; an outage is logged, not fatal."""
    try:
        return bool(await (await get_redis()).ping())
    except RedisError as exc:
        logger.warning("Redis unreachable at %s, rate limiting will fail open: %s", settings.REDIS_URL, exc)
        return False


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None
