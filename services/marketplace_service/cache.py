"""Read-through cache for orders and featured products.

Every method is best-effort: a Redis outage is logged and treated as a miss,
never surfaced to the caller. The relational store stays authoritative.

Usage:
    cache = MarketplaceCache(RedisCacheBackend())
    await cache.set_order(order)
    cached = await cache.get_order(order.id)
"""

import json
import uuid
from typing import Optional, Protocol

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.common.redis import get_redis
from pydantic import TypeAdapter, ValidationError
from services.marketplace_service.schemas import CachedOrder, OrderRecord, ProductRecord

logger = get_logger(__name__)

FEATURED_PRODUCTS_KEY = "products:featured"

_products_adapter = TypeAdapter(list[ProductRecord])


def order_key(order_id: uuid.UUID) -> str:
    return f"order:{order_id}"


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class RedisCacheBackend:
    """CacheBackend on the shared ``redis.asyncio`` client."""

    async def get(self, key: str) -> Optional[str]:
        redis = await get_redis()
        return await redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        redis = await get_redis()
        await redis.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        redis = await get_redis()
        await redis.delete(key)


class MarketplaceCache:
    def __init__(
        self,
        backend: CacheBackend,
        order_ttl_seconds: Optional[int] = None,
        featured_ttl_seconds: Optional[int] = None,
    ):
        settings = get_settings()
        self.backend = backend
        self.order_ttl_seconds = order_ttl_seconds or settings.ORDER_CACHE_TTL_SECONDS
        self.featured_ttl_seconds = (
            featured_ttl_seconds or settings.FEATURED_CACHE_TTL_SECONDS
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def get_order(self, order_id: uuid.UUID) -> Optional[CachedOrder]:
        key = order_key(order_id)
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return CachedOrder.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed cache entry {key}: {e}")
            return None

    async def set_order(self, order: OrderRecord) -> bool:
        key = order_key(order.id)
        cached = CachedOrder(**order.model_dump(), cached_at=utc_now())
        try:
            await self.backend.set(
                key, cached.model_dump_json(), self.order_ttl_seconds
            )
            logger.debug(f"Cached {key}")
            return True
        except Exception as e:
            logger.warning(f"Failed to cache {key}: {e}")
            return False

    async def invalidate_order(self, order_id: uuid.UUID) -> bool:
        key = order_key(order_id)
        try:
            await self.backend.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Failed to invalidate {key}: {e}")
            return False

    # ------------------------------------------------------------------
    # Featured products
    # ------------------------------------------------------------------

    async def get_featured(self) -> Optional[list[ProductRecord]]:
        try:
            raw = await self.backend.get(FEATURED_PRODUCTS_KEY)
        except Exception as e:
            logger.warning(f"Cache read failed for {FEATURED_PRODUCTS_KEY}: {e}")
            return None
        if raw is None:
            return None
        try:
            return _products_adapter.validate_python(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding malformed featured products entry: {e}")
            return None

    async def set_featured(self, products: list[ProductRecord]) -> bool:
        try:
            await self.backend.set(
                FEATURED_PRODUCTS_KEY,
                _products_adapter.dump_json(products).decode(),
                self.featured_ttl_seconds,
            )
            return True
        except Exception as e:
            logger.warning(f"Failed to cache featured products: {e}")
            return False

    async def invalidate_featured(self) -> bool:
        try:
            await self.backend.delete(FEATURED_PRODUCTS_KEY)
            return True
        except Exception as e:
            logger.warning(f"Failed to invalidate featured products: {e}")
            return False
