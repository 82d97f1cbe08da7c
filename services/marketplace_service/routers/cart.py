"""Cart and checkout router."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from services.marketplace_service.container import MarketplaceServices
from services.marketplace_service.dependencies import get_marketplace_services
from services.marketplace_service.schemas import (
    AddCartItemRequest,
    CartRecord,
    CheckoutRequest,
    CheckoutResponse,
)

router = APIRouter(tags=["cart"])


@router.get("/cart", response_model=CartRecord)
async def get_cart(
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.carts.get_cart(current_user.user_id)


@router.post("/cart/items", response_model=CartRecord)
async def add_cart_item(
    payload: AddCartItemRequest,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.carts.add_item(
        current_user.user_id, payload.product_id, payload.quantity
    )


@router.delete("/cart/items/{product_id}", response_model=CartRecord)
async def remove_cart_item(
    product_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.carts.remove_item(current_user.user_id, product_id)


@router.post(
    "/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED
)
async def checkout(
    payload: CheckoutRequest,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    """Convert the cart into an order and start the mobile-money payment."""
    return await services.checkout.checkout(
        current_user.user_id,
        payload.cart_id,
        payload.phone,
        customer_email=current_user.email,
    )
