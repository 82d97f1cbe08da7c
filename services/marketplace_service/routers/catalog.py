"""Catalog router: public product reads and seller edits."""

import uuid

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_seller
from libs.auth.models import AuthUser
from services.marketplace_service.container import MarketplaceServices
from services.marketplace_service.dependencies import get_marketplace_services
from services.marketplace_service.schemas import ProductRecord, ProductUpdate

router = APIRouter(prefix="/products", tags=["catalog"])


@router.get("/featured", response_model=list[ProductRecord])
async def list_featured_products(
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.catalog.list_featured_products()


@router.get("/{product_id}", response_model=ProductRecord)
async def get_product(
    product_id: uuid.UUID,
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.catalog.get_product(product_id)


@router.patch("/{product_id}", response_model=ProductRecord)
async def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    current_user: AuthUser = Depends(require_seller),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    """Update price, stock or listing details of a product in your store."""
    return await services.catalog.update_product(
        product_id,
        payload,
        current_user.user_id,
        is_admin=current_user.is_admin,
    )
