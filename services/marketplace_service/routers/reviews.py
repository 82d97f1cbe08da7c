"""Product reviews router."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from services.marketplace_service.container import MarketplaceServices
from services.marketplace_service.dependencies import get_marketplace_services
from services.marketplace_service.schemas import ReviewCreate, ReviewRecord, ReviewUpdate

router = APIRouter(tags=["reviews"])


@router.post(
    "/products/{product_id}/reviews",
    response_model=ReviewRecord,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    product_id: uuid.UUID,
    payload: ReviewCreate,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    """Review a product from one of the caller's completed orders."""
    return await services.reviews.create_review(
        current_user.user_id,
        product_id,
        payload.order_id,
        payload.rating,
        payload.comment,
    )


@router.get("/products/{product_id}/reviews", response_model=list[ReviewRecord])
async def list_product_reviews(
    product_id: uuid.UUID,
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.reviews.list_product_reviews(product_id)


@router.patch("/reviews/{review_id}", response_model=ReviewRecord)
async def update_review(
    review_id: uuid.UUID,
    payload: ReviewUpdate,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.reviews.update_review(
        current_user.user_id, review_id, payload.rating, payload.comment
    )


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    await services.reviews.delete_review(current_user.user_id, review_id)
