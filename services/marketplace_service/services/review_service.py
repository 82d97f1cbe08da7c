"""Product reviews and the denormalized average rating."""

import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from libs.common.logging import get_logger
from services.marketplace_service.errors import InvalidOrder, NotFound
from services.marketplace_service.models import OrderStatus
from services.marketplace_service.repositories import Database, Repositories
from services.marketplace_service.schemas import ReviewRecord

logger = get_logger(__name__)


def average_rating(ratings: list[int]) -> Optional[Decimal]:
    """Mean rating to one decimal place, or None when there are no ratings."""
    if not ratings:
        return None
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


async def _refresh_rating(repos: Repositories, product_id: uuid.UUID) -> Optional[Decimal]:
    rating = average_rating(await repos.reviews.ratings_for_product(product_id))
    await repos.products.set_average_rating(product_id, rating)
    return rating


class ReviewService:
    def __init__(self, db: Database):
        self.db = db

    async def create_review(
        self,
        user_id: str,
        product_id: uuid.UUID,
        order_id: uuid.UUID,
        rating: int,
        comment: Optional[str] = None,
    ) -> ReviewRecord:
        if not 1 <= rating <= 5:
            raise InvalidOrder("Rating must be between 1 and 5")

        async with self.db.transaction() as repos:
            order = await repos.orders.get(order_id)
            if (
                order is None
                or order.user_id != user_id
                or order.status != OrderStatus.COMPLETED
                or all(item.product_id != product_id for item in order.items)
            ):
                raise InvalidOrder(
                    "You can only review products from your completed orders"
                )
            if await repos.reviews.exists(
                user_id=user_id, product_id=product_id, order_id=order_id
            ):
                raise InvalidOrder("You have already reviewed this product")

            review = await repos.reviews.create(
                user_id=user_id,
                product_id=product_id,
                order_id=order_id,
                rating=rating,
                comment=comment,
            )
            new_average = await _refresh_rating(repos, product_id)

        logger.info(
            f"Review {review.id} added for product {product_id}, "
            f"average rating now {new_average}"
        )
        return review

    async def update_review(
        self,
        user_id: str,
        review_id: uuid.UUID,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> ReviewRecord:
        if rating is not None and not 1 <= rating <= 5:
            raise InvalidOrder("Rating must be between 1 and 5")

        values = {}
        if rating is not None:
            values["rating"] = rating
        if comment is not None:
            values["comment"] = comment

        async with self.db.transaction() as repos:
            review = await repos.reviews.get(review_id)
            if review is None or review.user_id != user_id:
                raise NotFound("Review not found or not owned by user")
            if not values:
                return review
            updated = await repos.reviews.update(review_id, **values)
            await _refresh_rating(repos, review.product_id)
        return updated

    async def delete_review(self, user_id: str, review_id: uuid.UUID) -> None:
        async with self.db.transaction() as repos:
            review = await repos.reviews.get(review_id)
            if review is None or review.user_id != user_id:
                raise NotFound("Review not found or not owned by user")
            await repos.reviews.delete(review_id)
            await _refresh_rating(repos, review.product_id)
        logger.info(f"Review {review_id} deleted by {user_id}")

    async def list_product_reviews(self, product_id: uuid.UUID) -> list[ReviewRecord]:
        async with self.db.transaction() as repos:
            return await repos.reviews.list_for_product(product_id)
