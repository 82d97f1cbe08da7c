"""Wires the marketplace services to their collaborators.

The HTTP app and the arq worker each build one ``MarketplaceServices``;
tests build theirs from in-memory fakes.
"""

from dataclasses import dataclass
from typing import Optional

from libs.db.session import get_session_factory
from services.marketplace_service.cache import (
    CacheBackend,
    MarketplaceCache,
    RedisCacheBackend,
)
from services.marketplace_service.jobs import ArqJobQueue, JobQueue, RetryPolicy
from services.marketplace_service.notifications import EmailNotifier, Notifier
from services.marketplace_service.payment_gateway import (
    PaymentGateway,
    get_paypack_client,
)
from services.marketplace_service.repositories import Database, SqlAlchemyDatabase
from services.marketplace_service.services.cart_service import (
    CartService,
    CheckoutService,
)
from services.marketplace_service.services.catalog_service import CatalogService
from services.marketplace_service.services.order_workflow import OrderWorkflow
from services.marketplace_service.services.payment_service import PaymentService
from services.marketplace_service.services.review_service import ReviewService


@dataclass
class MarketplaceServices:
    db: Database
    cache: MarketplaceCache
    queue: JobQueue
    orders: OrderWorkflow
    payments: PaymentService
    reviews: ReviewService
    catalog: CatalogService
    carts: CartService
    checkout: CheckoutService


def build_services(
    db: Optional[Database] = None,
    cache_backend: Optional[CacheBackend] = None,
    queue: Optional[JobQueue] = None,
    gateway: Optional[PaymentGateway] = None,
    notifier: Optional[Notifier] = None,
    retry_policy: Optional[RetryPolicy] = None,
    callback_url: Optional[str] = None,
) -> MarketplaceServices:
    db = db or SqlAlchemyDatabase(get_session_factory())
    cache = MarketplaceCache(cache_backend or RedisCacheBackend())
    queue = queue or ArqJobQueue()
    gateway = gateway or get_paypack_client()
    notifier = notifier or EmailNotifier()

    orders = OrderWorkflow(db, cache, queue, notifier, retry_policy=retry_policy)
    payments = PaymentService(
        db, gateway, cache, notifier, orders, callback_url=callback_url
    )
    return MarketplaceServices(
        db=db,
        cache=cache,
        queue=queue,
        orders=orders,
        payments=payments,
        reviews=ReviewService(db),
        catalog=CatalogService(db, cache),
        carts=CartService(db),
        checkout=CheckoutService(orders, payments),
    )
