"""Unit tests for the cart, checkout and featured catalog."""

import uuid

import pytest
from services.marketplace_service.cache import FEATURED_PRODUCTS_KEY
from services.marketplace_service.errors import (
    InsufficientStock,
    NotFound,
    ProductNotFound,
)
from services.marketplace_service.models import OrderStatus, PaymentStatus
from tests.fakes import paypack_error


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_cart_creates_one_cart_per_user(services, db):
    first = await services.carts.get_cart("buyer-1")
    second = await services.carts.get_cart("buyer-1")

    assert first.id == second.id
    assert first.items == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_item_accumulates_quantity_up_to_stock(services, db, store):
    product = db.add_product(store, stock=3)

    await services.carts.add_item("buyer-1", product.id, 2)
    cart = await services.carts.add_item("buyer-1", product.id, 1)

    assert [(i.product_id, i.quantity) for i in cart.items] == [(product.id, 3)]

    with pytest.raises(InsufficientStock):
        await services.carts.add_item("buyer-1", product.id, 1)
    with pytest.raises(ProductNotFound):
        await services.carts.add_item("buyer-1", uuid.uuid4(), 1)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_remove_item(services, db, store):
    keep = db.add_product(store, name="Keep")
    drop = db.add_product(store, name="Drop")
    await services.carts.add_item("buyer-1", keep.id, 1)
    await services.carts.add_item("buyer-1", drop.id, 1)

    cart = await services.carts.remove_item("buyer-1", drop.id)

    assert [i.product_id for i in cart.items] == [keep.id]
    with pytest.raises(NotFound):
        await services.carts.remove_item("someone-else", keep.id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_checkout_places_order_and_starts_payment(services, db, store, gateway):
    product = db.add_product(store, price="1500.00", stock=5)
    cart = db.add_cart("buyer-1", [(product.id, 2)])

    result = await services.checkout.checkout(
        "buyer-1", cart.id, "250781234567", customer_email="buyer@example.com"
    )

    assert result.payment_error is None
    assert result.payment.transaction_id == "pp-1"
    assert result.order.status == OrderStatus.PENDING
    assert db.order(result.order.id).payment_status == PaymentStatus.PENDING
    assert db.product(product.id).stock == 3
    assert cart.id not in db.tables.carts
    assert gateway.payments[0]["phone"] == "250781234567"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_checkout_keeps_order_when_payment_initiation_fails(
    services, db, store, gateway
):
    product = db.add_product(store, stock=5)
    cart = db.add_cart("buyer-1", [(product.id, 1)])
    gateway.error = paypack_error("Insufficient balance")

    result = await services.checkout.checkout("buyer-1", cart.id, "250781234567")

    assert result.payment is None
    assert result.payment_error
    stored = db.order(result.order.id)
    assert stored.status == OrderStatus.PENDING
    assert stored.payment_status is None
    assert db.product(product.id).stock == 4


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_product(services, db, store):
    product = db.add_product(store)

    assert (await services.catalog.get_product(product.id)).id == product.id
    with pytest.raises(ProductNotFound):
        await services.catalog.get_product(uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_featured_products_are_cached_until_stock_changes(
    services, db, store, cache_backend
):
    from services.marketplace_service.schemas import OrderItemRequest

    featured = db.add_product(store, name="Featured", stock=1, is_featured=True)
    db.add_product(store, name="Plain")

    first = await services.catalog.list_featured_products()
    assert [p.id for p in first] == [featured.id]
    assert FEATURED_PRODUCTS_KEY in cache_backend.values

    db.add_product(store, name="Later", is_featured=True)
    assert [p.id for p in await services.catalog.list_featured_products()] == [
        featured.id
    ]

    await services.orders.create_order(
        "buyer-1", [OrderItemRequest(product_id=featured.id, quantity=1)]
    )
    assert FEATURED_PRODUCTS_KEY not in cache_backend.values

    names = [p.name for p in await services.catalog.list_featured_products()]
    assert names == ["Later"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_featured_products_survive_cache_outage(services, db, store, cache_backend):
    featured = db.add_product(store, is_featured=True)
    cache_backend.fail = True

    products = await services.catalog.list_featured_products()

    assert [p.id for p in products] == [featured.id]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_store_owner_updates_price_and_stock(services, db, store, cache_backend):
    from decimal import Decimal

    from services.marketplace_service.schemas import ProductUpdate

    product = db.add_product(store, price="1000.00", stock=2, is_featured=True)
    await services.catalog.list_featured_products()
    assert FEATURED_PRODUCTS_KEY in cache_backend.values

    sold_out = await services.catalog.update_product(
        product.id, ProductUpdate(price=Decimal("1200.00"), stock=0), "seller-1"
    )

    assert sold_out.price == Decimal("1200.00")
    assert sold_out.stock == 0
    assert sold_out.in_stock is False
    assert FEATURED_PRODUCTS_KEY not in cache_backend.values
    assert await services.catalog.list_featured_products() == []

    restocked = await services.catalog.update_product(
        product.id, ProductUpdate(stock=4), "seller-1"
    )
    assert restocked.in_stock is True
    assert db.product(product.id).stock == 4


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_store_owner_or_admin_updates_product(services, db, store):
    from services.marketplace_service.schemas import ProductUpdate

    product = db.add_product(store, name="Basket")

    with pytest.raises(ProductNotFound):
        await services.catalog.update_product(
            product.id, ProductUpdate(name="Hijacked"), "seller-2"
        )
    with pytest.raises(ProductNotFound):
        await services.catalog.update_product(
            uuid.uuid4(), ProductUpdate(name="Ghost"), "seller-1"
        )
    assert db.product(product.id).name == "Basket"

    renamed = await services.catalog.update_product(
        product.id, ProductUpdate(name="Large Basket"), "ops", is_admin=True
    )
    assert renamed.name == "Large Basket"
    assert renamed.stock == product.stock
