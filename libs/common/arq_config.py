"""ARQ (Async Redis Queue) configuration utilities.

Parses the Redis connection settings from the application config into
ARQ-compatible RedisSettings and opens enqueue pools for producers.
"""

from urllib.parse import urlparse

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from libs.common.config import get_settings


def get_redis_settings() -> RedisSettings:
    """Parse REDIS_URL from application settings into ARQ RedisSettings."""
    settings = get_settings()
    parsed = urlparse(settings.REDIS_URL)

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or "0"),
        password=parsed.password,
        ssl=parsed.scheme == "rediss",
    )


async def create_queue_pool() -> ArqRedis:
    """Open a connection pool used to enqueue jobs."""
    return await create_pool(get_redis_settings())
