"""Marketplace service models package."""

from services.marketplace_service.models.catalog import Product, Review, Store
from services.marketplace_service.models.commerce import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderStatusHistory,
)
from services.marketplace_service.models.enums import OrderStatus, PaymentStatus

__all__ = [
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "PaymentStatus",
    "Product",
    "Review",
    "Store",
]
