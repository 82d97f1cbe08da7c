"""Shared async Redis connection.

Usage:
    from libs.common.redis import get_redis

    redis = await get_redis()
    await redis.set("key", "value", ex=60)
"""

from typing import Optional

import redis.asyncio as aioredis
from libs.common.config import get_settings

_client: Optional[aioredis.Redis] = None


async def get_redis() -> aioredis.Redis:
    """Return the process-wide Redis client, creating it on first use."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
