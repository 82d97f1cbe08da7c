"""FastAPI dependencies for the marketplace service."""

from functools import lru_cache

from libs.auth.models import AuthUser
from services.marketplace_service.container import MarketplaceServices, build_services
from services.marketplace_service.services.order_workflow import OrderAccess


@lru_cache
def get_marketplace_services() -> MarketplaceServices:
    """Process-wide services bundle, built on first request."""
    return build_services()


def order_access(user: AuthUser) -> OrderAccess:
    return OrderAccess(actor_id=user.user_id, is_admin=user.is_admin)
