"""Unit tests for review creation and average rating recompute."""

import uuid
from decimal import Decimal

import pytest
from services.marketplace_service.errors import InvalidOrder, NotFound
from services.marketplace_service.models import OrderStatus
from services.marketplace_service.schemas import OrderItemRequest
from services.marketplace_service.services.review_service import average_rating


async def _completed_order(services, db, product, user_id="buyer-1"):
    order = await services.orders.create_order(
        user_id, [OrderItemRequest(product_id=product.id, quantity=1)]
    )
    return db.set_order(order.id, status=OrderStatus.COMPLETED)


def test_average_rating_rounds_half_up_to_one_decimal():
    assert average_rating([]) is None
    assert average_rating([5]) == Decimal("5.0")
    assert average_rating([4, 5]) == Decimal("4.5")
    assert average_rating([4, 4, 5]) == Decimal("4.3")
    assert average_rating([1, 2, 2, 2, 2, 2, 2, 2]) == Decimal("1.9")
    assert average_rating([3, 4, 4, 4]) == Decimal("3.8")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_review_updates_average(services, db, store):
    product = db.add_product(store)
    first = await _completed_order(services, db, product, user_id="buyer-1")
    second = await _completed_order(services, db, product, user_id="buyer-2")

    await services.reviews.create_review("buyer-1", product.id, first.id, 4, "Nice")
    assert db.product(product.id).average_rating == Decimal("4.0")

    await services.reviews.create_review("buyer-2", product.id, second.id, 5)
    assert db.product(product.id).average_rating == Decimal("4.5")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_review_requires_completed_owned_order_with_product(services, db, store):
    product = db.add_product(store)
    other = db.add_product(store, name="Other")
    pending = await services.orders.create_order(
        "buyer-1", [OrderItemRequest(product_id=product.id, quantity=1)]
    )
    completed = await _completed_order(services, db, product)

    with pytest.raises(InvalidOrder):
        await services.reviews.create_review("buyer-1", product.id, pending.id, 5)
    with pytest.raises(InvalidOrder):
        await services.reviews.create_review("intruder", product.id, completed.id, 5)
    with pytest.raises(InvalidOrder):
        await services.reviews.create_review("buyer-1", other.id, completed.id, 5)
    with pytest.raises(InvalidOrder):
        await services.reviews.create_review("buyer-1", product.id, uuid.uuid4(), 5)

    assert db.tables.reviews == {}
    assert db.product(product.id).average_rating is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_duplicate_review_and_bad_rating_rejected(services, db, store):
    product = db.add_product(store)
    order = await _completed_order(services, db, product)

    with pytest.raises(InvalidOrder):
        await services.reviews.create_review("buyer-1", product.id, order.id, 6)
    with pytest.raises(InvalidOrder):
        await services.reviews.create_review("buyer-1", product.id, order.id, 0)

    await services.reviews.create_review("buyer-1", product.id, order.id, 3)
    with pytest.raises(InvalidOrder):
        await services.reviews.create_review("buyer-1", product.id, order.id, 5)

    assert len(db.tables.reviews) == 1
    assert db.product(product.id).average_rating == Decimal("3.0")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_and_delete_recompute_average(services, db, store):
    product = db.add_product(store)
    first = await _completed_order(services, db, product, user_id="buyer-1")
    second = await _completed_order(services, db, product, user_id="buyer-2")
    mine = await services.reviews.create_review("buyer-1", product.id, first.id, 2)
    await services.reviews.create_review("buyer-2", product.id, second.id, 5)
    assert db.product(product.id).average_rating == Decimal("3.5")

    updated = await services.reviews.update_review("buyer-1", mine.id, rating=4)
    assert updated.rating == 4
    assert db.product(product.id).average_rating == Decimal("4.5")

    await services.reviews.delete_review("buyer-1", mine.id)
    assert db.product(product.id).average_rating == Decimal("5.0")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deleting_last_review_clears_average(services, db, store):
    product = db.add_product(store)
    order = await _completed_order(services, db, product)
    review = await services.reviews.create_review("buyer-1", product.id, order.id, 4)

    await services.reviews.delete_review("buyer-1", review.id)

    assert db.product(product.id).average_rating is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_only_author_can_change_review(services, db, store):
    product = db.add_product(store)
    order = await _completed_order(services, db, product)
    review = await services.reviews.create_review("buyer-1", product.id, order.id, 4)

    with pytest.raises(NotFound):
        await services.reviews.update_review("intruder", review.id, rating=1)
    with pytest.raises(NotFound):
        await services.reviews.delete_review("intruder", review.id)

    assert db.product(product.id).average_rating == Decimal("4.0")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_product_reviews_newest_first(services, db, store):
    product = db.add_product(store)
    first = await _completed_order(services, db, product, user_id="buyer-1")
    second = await _completed_order(services, db, product, user_id="buyer-2")
    older = await services.reviews.create_review("buyer-1", product.id, first.id, 4)
    newer = await services.reviews.create_review("buyer-2", product.id, second.id, 5)

    reviews = await services.reviews.list_product_reviews(product.id)

    assert [r.id for r in reviews] == [newer.id, older.id]
