"""Unit tests for the order and featured-products cache."""

import uuid
from decimal import Decimal

import pytest
from services.marketplace_service.cache import (
    FEATURED_PRODUCTS_KEY,
    MarketplaceCache,
    RedisCacheBackend,
    order_key,
)
from services.marketplace_service.models import OrderStatus
from services.marketplace_service.schemas import OrderItemRecord, OrderRecord, ProductRecord
from tests.fakes import FakeCacheBackend


def _order() -> OrderRecord:
    return OrderRecord(
        id=uuid.uuid4(),
        user_id="buyer-1",
        total=Decimal("150.00"),
        status=OrderStatus.PENDING,
        items=[
            OrderItemRecord(
                id=uuid.uuid4(),
                product_id=uuid.uuid4(),
                quantity=3,
                price_at_purchase=Decimal("50.00"),
                product_name="Basket",
                store_id=uuid.uuid4(),
                store_name="Kigali Crafts",
            )
        ],
    )


def _product(**overrides) -> ProductRecord:
    values = dict(
        id=uuid.uuid4(),
        store_id=uuid.uuid4(),
        name="Basket",
        price=Decimal("50.00"),
        stock=4,
        in_stock=True,
        is_featured=True,
    )
    values.update(overrides)
    return ProductRecord(**values)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_order_cached_with_ttl_and_items():
    backend = FakeCacheBackend()
    cache = MarketplaceCache(backend, order_ttl_seconds=3600)
    order = _order()

    assert await cache.set_order(order) is True
    cached = await cache.get_order(order.id)

    assert backend.ttls[order_key(order.id)] == 3600
    assert cached.cached_at is not None
    assert cached.to_record() == order


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalidate_order_removes_entry():
    backend = FakeCacheBackend()
    cache = MarketplaceCache(backend)
    order = _order()
    await cache.set_order(order)

    await cache.invalidate_order(order.id)

    assert await cache.get_order(order.id) is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cache_outage_is_a_miss_not_an_error():
    backend = FakeCacheBackend()
    backend.fail = True
    cache = MarketplaceCache(backend)
    order = _order()

    assert await cache.set_order(order) is False
    assert await cache.get_order(order.id) is None
    assert await cache.invalidate_order(order.id) is False
    assert await cache.get_featured() is None
    assert await cache.set_featured([_product()]) is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_malformed_entry_is_discarded():
    backend = FakeCacheBackend()
    cache = MarketplaceCache(backend)
    order_id = uuid.uuid4()
    backend.values[order_key(order_id)] = '{"not": "an order"}'
    backend.values[FEATURED_PRODUCTS_KEY] = "not json"

    assert await cache.get_order(order_id) is None
    assert await cache.get_featured() is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_featured_products_round_trip_with_short_ttl():
    backend = FakeCacheBackend()
    cache = MarketplaceCache(backend, featured_ttl_seconds=300)
    products = [_product(), _product(name="Mat")]

    await cache.set_featured(products)

    assert backend.ttls[FEATURED_PRODUCTS_KEY] == 300
    assert await cache.get_featured() == products
    await cache.invalidate_featured()
    assert await cache.get_featured() is None


class FakeRedis:
    def __init__(self):
        self.calls = []
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.calls.append(("set", key, ex))
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_redis_backend_sets_expiry(monkeypatch):
    fake = FakeRedis()

    async def fake_get_redis():
        return fake

    monkeypatch.setattr("services.marketplace_service.cache.get_redis", fake_get_redis)
    backend = RedisCacheBackend()

    await backend.set("order:1", "{}", 3600)

    assert fake.calls == [("set", "order:1", 3600)]
    assert await backend.get("order:1") == "{}"
    await backend.delete("order:1")
    assert await backend.get("order:1") is None
