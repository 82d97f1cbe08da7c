"""Orders router: placement, history, cancellation and status changes."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_current_user, require_seller
from libs.auth.models import AuthUser
from services.marketplace_service.container import MarketplaceServices
from services.marketplace_service.dependencies import (
    get_marketplace_services,
    order_access,
)
from services.marketplace_service.models import OrderStatus
from services.marketplace_service.schemas import (
    CreateOrderRequest,
    OrderRecord,
    OrderStatusHistoryRecord,
    PaginatedOrders,
    UpdateOrderStatusRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderRecord, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: CreateOrderRequest,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    """Place an order; stock is reserved atomically with the order row."""
    return await services.orders.create_order(
        current_user.user_id, payload.items, customer_email=current_user.email
    )


@router.get("", response_model=PaginatedOrders)
async def list_my_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.orders.list_user_orders(
        current_user.user_id, status=status_filter, page=page, limit=limit
    )


@router.get("/stores/{store_id}", response_model=PaginatedOrders)
async def list_store_orders(
    store_id: uuid.UUID,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: AuthUser = Depends(require_seller),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    """Orders containing at least one item sold by the store."""
    return await services.orders.list_store_orders(
        store_id,
        order_access(current_user),
        status=status_filter,
        page=page,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderRecord)
async def get_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.orders.get_order_by_id(order_id, current_user.user_id)


@router.get("/{order_id}/history", response_model=list[OrderStatusHistoryRecord])
async def get_order_history(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.orders.get_order_history(order_id, current_user.user_id)


@router.post("/{order_id}/cancel", response_model=OrderRecord)
async def cancel_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.orders.cancel_order(order_id, current_user.user_id)


@router.patch("/{order_id}/status", response_model=OrderRecord)
async def update_order_status(
    order_id: uuid.UUID,
    payload: UpdateOrderStatusRequest,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.orders.update_order_status(
        order_id, order_access(current_user), payload.status, payload.comment
    )
