"""Cached catalog reads and seller product edits."""

import uuid

from libs.common.logging import get_logger
from services.marketplace_service.cache import MarketplaceCache
from services.marketplace_service.errors import ProductNotFound
from services.marketplace_service.repositories import Database
from services.marketplace_service.schemas import ProductRecord, ProductUpdate

logger = get_logger(__name__)

FEATURED_LIMIT = 12


class CatalogService:
    def __init__(self, db: Database, cache: MarketplaceCache):
        self.db = db
        self.cache = cache

    async def get_product(self, product_id: uuid.UUID) -> ProductRecord:
        async with self.db.transaction() as repos:
            product = await repos.products.get(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    async def list_featured_products(self) -> list[ProductRecord]:
        cached = await self.cache.get_featured()
        if cached is not None:
            return cached

        async with self.db.transaction() as repos:
            products = await repos.products.list_featured(FEATURED_LIMIT)
        await self.cache.set_featured(products)
        return products

    async def update_product(
        self,
        product_id: uuid.UUID,
        changes: ProductUpdate,
        actor_id: str,
        is_admin: bool = False,
    ) -> ProductRecord:
        """
        Edit a product on behalf of its store owner (or an admin).

        Existing order items keep their ``price_at_purchase``; only future
        orders see a new price.
        """
        values = changes.model_dump(exclude_unset=True, exclude_none=True)

        async with self.db.transaction() as repos:
            product = await repos.products.get(product_id, for_update=True)
            if product is None:
                raise ProductNotFound(product_id)
            if not is_admin:
                store = await repos.stores.get(product.store_id)
                if store is None or store.owner_id != actor_id:
                    raise ProductNotFound(product_id)
            if not values:
                return product

            if "stock" in values:
                values["in_stock"] = values["stock"] > 0
            updated = await repos.products.update(product_id, **values)

        logger.info(
            f"Product {product_id} updated by {actor_id}",
            extra={"extra_fields": {"fields": sorted(values)}},
        )
        await self.cache.invalidate_featured()
        return updated
