"""Marketplace service routers package."""

from services.marketplace_service.routers.cart import router as cart_router
from services.marketplace_service.routers.catalog import router as catalog_router
from services.marketplace_service.routers.orders import router as orders_router
from services.marketplace_service.routers.payments import router as payments_router
from services.marketplace_service.routers.reviews import router as reviews_router

__all__ = [
    "cart_router",
    "catalog_router",
    "orders_router",
    "payments_router",
    "reviews_router",
]
