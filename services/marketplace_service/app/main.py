"""FastAPI application for the Marketplace Service."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from libs.common.logging import get_logger
from libs.common.middleware import add_request_context_middleware
from services.marketplace_service.errors import MarketplaceError
from services.marketplace_service.routers import (
    cart_router,
    catalog_router,
    orders_router,
    payments_router,
    reviews_router,
)

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the Marketplace Service FastAPI app."""
    app = FastAPI(
        title="Marketplace Service",
        version="0.1.0",
        description="Multi-store marketplace - orders, payments, reviews.",
    )
    add_request_context_middleware(app)

    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(
        request: Request, exc: MarketplaceError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "detail": exc.message},
        )

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "marketplace"}

    app.include_router(catalog_router)
    app.include_router(reviews_router)
    app.include_router(cart_router)
    app.include_router(orders_router)
    app.include_router(payments_router)

    return app


app = create_app()
