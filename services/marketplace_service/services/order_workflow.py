"""Order lifecycle: placement, cancellation, status transitions and reads.

All writes for one operation happen inside a single ``Database.transaction()``.
Side effects that must not undo a committed order (job enqueue, cache writes,
emails) run after the commit and only log on failure.
"""

import math
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.marketplace_service.cache import MarketplaceCache
from services.marketplace_service.errors import (
    InsufficientStock,
    InvalidOrder,
    InvalidTransition,
    MarketplaceError,
    NotFound,
    OrderCreationFailed,
    ProductNotFound,
    StockConflict,
)
from services.marketplace_service.jobs import JobQueue, ProcessOrderJob, RetryPolicy
from services.marketplace_service.models import OrderStatus, PaymentStatus
from services.marketplace_service.notifications import Notifier
from services.marketplace_service.repositories import Database, Repositories
from services.marketplace_service.schemas import (
    NewOrder,
    NewOrderItem,
    OrderItemRequest,
    OrderRecord,
    OrderStatusHistoryRecord,
    PaginatedOrders,
)

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def check_transition(current: OrderStatus, new: OrderStatus) -> None:
    if current.is_terminal:
        raise InvalidTransition(
            f"Order is already {current.value} and can no longer change status"
        )
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change order status from {current.value} to {new.value}"
        )


def merge_items(items: Iterable[OrderItemRequest]) -> dict[uuid.UUID, int]:
    """Collapse repeated product ids into one line, summing quantities."""
    merged: dict[uuid.UUID, int] = {}
    for item in items:
        if item.quantity <= 0:
            raise InvalidOrder(f"Quantity for product {item.product_id} must be positive")
        merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
    if not merged:
        raise InvalidOrder("Order must contain at least one item")
    return merged


@dataclass
class OrderAccess:
    """Who is acting on an order, as established by the HTTP layer."""

    actor_id: str
    is_admin: bool = False


class OrderWorkflow:
    def __init__(
        self,
        db: Database,
        cache: MarketplaceCache,
        queue: JobQueue,
        notifier: Notifier,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.db = db
        self.cache = cache
        self.queue = queue
        self.notifier = notifier
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    async def create_order(
        self,
        user_id: str,
        items: list[OrderItemRequest],
        customer_email: Optional[str] = None,
    ) -> OrderRecord:
        requested = merge_items(items)
        order = await self._place_order(user_id, customer_email, requested=requested)
        await self._after_order_placed(order)
        return order

    async def create_order_from_cart(
        self,
        user_id: str,
        cart_id: uuid.UUID,
        customer_email: Optional[str] = None,
    ) -> OrderRecord:
        """Turn a cart into an order; the cart is deleted in the same commit."""
        order = await self._place_order(user_id, customer_email, cart_id=cart_id)
        await self._after_order_placed(order)
        return order

    async def _place_order(
        self,
        user_id: str,
        customer_email: Optional[str],
        requested: Optional[dict[uuid.UUID, int]] = None,
        cart_id: Optional[uuid.UUID] = None,
    ) -> OrderRecord:
        try:
            async with self.db.transaction() as repos:
                if cart_id is not None:
                    cart = await repos.carts.get(cart_id)
                    if cart is None or cart.user_id != user_id:
                        raise NotFound("Cart not found")
                    if not cart.items:
                        raise InvalidOrder("Cart is empty")
                    requested = merge_items(
                        OrderItemRequest(product_id=i.product_id, quantity=i.quantity)
                        for i in cart.items
                    )

                products = {
                    p.id: p for p in await repos.products.get_many(requested.keys())
                }
                for product_id in requested:
                    if product_id not in products:
                        raise ProductNotFound(product_id)

                for product_id, quantity in requested.items():
                    available = products[product_id].stock
                    if quantity > available:
                        raise InsufficientStock(product_id, quantity, available)

                new_items = [
                    NewOrderItem(
                        product_id=product_id,
                        quantity=quantity,
                        price_at_purchase=products[product_id].price,
                    )
                    for product_id, quantity in requested.items()
                ]
                total = sum(
                    (item.price_at_purchase * item.quantity for item in new_items),
                    Decimal("0"),
                )

                order = await repos.orders.create(
                    NewOrder(
                        user_id=user_id,
                        customer_email=customer_email,
                        total=total,
                        items=new_items,
                    )
                )
                await repos.orders.add_history(
                    order.id, OrderStatus.PENDING, "Order placed"
                )
                for item in new_items:
                    await repos.products.decrement_stock(item.product_id, item.quantity)

                if cart_id is not None:
                    await repos.carts.delete(cart_id)
        except MarketplaceError:
            raise
        except StockConflict as e:
            logger.warning(
                f"Stock conflict while placing order for user {user_id}: {e}",
                extra={"extra_fields": {"product_id": str(e.product_id)}},
            )
            raise OrderCreationFailed(
                "Stock changed while the order was being placed, please retry"
            ) from e
        except Exception as e:
            logger.exception(f"Order creation failed for user {user_id}")
            raise OrderCreationFailed("Order could not be created") from e

        logger.info(
            f"Order {order.id} placed by {user_id}",
            extra={"extra_fields": {"order_id": str(order.id), "total": str(order.total)}},
        )
        return order

    async def _after_order_placed(self, order: OrderRecord) -> None:
        try:
            await self.queue.enqueue(
                ProcessOrderJob(order_id=order.id, user_id=order.user_id),
                self.retry_policy,
            )
        except Exception as e:
            logger.warning(f"Failed to enqueue processing job for order {order.id}: {e}")

        await self.cache.set_order(order)
        await self.cache.invalidate_featured()
        await self.notifier.send_order_confirmation(order)

    # ------------------------------------------------------------------
    # Cancellation and status transitions
    # ------------------------------------------------------------------

    async def cancel_in_transaction(
        self, repos: Repositories, order: OrderRecord, comment: str
    ) -> OrderRecord:
        """Restore stock and mark the order cancelled.

        Caller owns the transaction and must hold the order row lock.
        """
        for item in order.items:
            await repos.products.increment_stock(item.product_id, item.quantity)
        updated = await repos.orders.update(
            order.id, status=OrderStatus.CANCELLED, cancelled_at=utc_now()
        )
        await repos.orders.add_history(order.id, OrderStatus.CANCELLED, comment)
        return updated

    async def publish_status_change(
        self,
        order: OrderRecord,
        comment: Optional[str] = None,
        stock_changed: bool = False,
    ) -> None:
        await self.cache.invalidate_order(order.id)
        if stock_changed:
            await self.cache.invalidate_featured()
        await self.notifier.send_order_status_update(order, comment)

    async def cancel_order(self, order_id: uuid.UUID, user_id: str) -> OrderRecord:
        comment = "Order cancelled by customer"
        async with self.db.transaction() as repos:
            order = await repos.orders.get(order_id, for_update=True)
            if order is None or order.user_id != user_id:
                raise NotFound("Order not found")
            if order.status != OrderStatus.PENDING:
                raise InvalidTransition(
                    f"Only pending orders can be cancelled (order is {order.status.value})"
                )
            cancelled = await self.cancel_in_transaction(repos, order, comment)

        logger.info(f"Order {order_id} cancelled by {user_id}")
        await self.publish_status_change(cancelled, comment, stock_changed=True)
        return cancelled

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        access: OrderAccess,
        new_status: OrderStatus,
        comment: Optional[str] = None,
    ) -> OrderRecord:
        async with self.db.transaction() as repos:
            order = await repos.orders.get(order_id, for_update=True)
            if order is None or not await self._can_manage(repos, order, access):
                raise NotFound("Order not found")

            check_transition(order.status, new_status)
            history_comment = (
                comment
                or f"Order status updated from {order.status.value} to {new_status.value}"
            )

            if new_status == OrderStatus.CANCELLED:
                updated = await self.cancel_in_transaction(repos, order, history_comment)
            else:
                if order.payment_status != PaymentStatus.PAID:
                    raise InvalidTransition(
                        f"Order cannot move to {new_status.value} "
                        "before payment is confirmed"
                    )
                values = {"status": new_status}
                if new_status == OrderStatus.COMPLETED:
                    values["completed_at"] = utc_now()
                updated = await repos.orders.update(order_id, **values)
                await repos.orders.add_history(order_id, new_status, history_comment)

        logger.info(
            f"Order {order_id} moved from {order.status.value} to {new_status.value} "
            f"by {access.actor_id}"
        )
        await self.publish_status_change(
            updated,
            history_comment,
            stock_changed=new_status == OrderStatus.CANCELLED,
        )
        return updated

    async def _can_manage(
        self, repos: Repositories, order: OrderRecord, access: OrderAccess
    ) -> bool:
        if access.is_admin or order.user_id == access.actor_id:
            return True
        for store_id in order.store_ids():
            store = await repos.stores.get(store_id)
            if store and store.owner_id == access.actor_id:
                return True
        return False

    # ------------------------------------------------------------------
    # Background processing
    # ------------------------------------------------------------------

    async def process_order(self, order_id: uuid.UUID) -> Optional[OrderRecord]:
        """Handle a ProcessOrderJob. Non-actionable orders are a logged no-op."""
        advanced = False
        async with self.db.transaction() as repos:
            order = await repos.orders.get(order_id, for_update=True)
            if order is None:
                logger.info(f"Order {order_id} no longer exists, nothing to process")
                return None
            if order.status != OrderStatus.PENDING:
                logger.info(
                    f"Order {order_id} is {order.status.value}, nothing to process"
                )
                return order

            if order.payment_status == PaymentStatus.PAID:
                order = await repos.orders.update(order_id, status=OrderStatus.PROCESSING)
                await repos.orders.add_history(
                    order_id, OrderStatus.PROCESSING, "Payment confirmed"
                )
                advanced = True
            else:
                logger.info(f"Order {order_id} is awaiting payment")

            products = await repos.products.get_many(
                item.product_id for item in order.items
            )

        for product in products:
            if product.stock == 0:
                logger.info(f"Product {product.id} ({product.name}) is sold out")

        if advanced:
            await self.publish_status_change(order, "Payment confirmed")
        return order

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order_by_id(self, order_id: uuid.UUID, user_id: str) -> OrderRecord:
        cached = await self.cache.get_order(order_id)
        if cached is not None and cached.user_id == user_id:
            return cached.to_record()

        async with self.db.transaction() as repos:
            order = await repos.orders.get(order_id)
        if order is None or order.user_id != user_id:
            raise NotFound("Order not found")

        await self.cache.set_order(order)
        return order

    async def get_order_history(
        self, order_id: uuid.UUID, user_id: str
    ) -> list[OrderStatusHistoryRecord]:
        async with self.db.transaction() as repos:
            order = await repos.orders.get(order_id)
            if order is None or order.user_id != user_id:
                raise NotFound("Order not found")
            return await repos.orders.list_history(order_id)

    async def list_user_orders(
        self,
        user_id: str,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PaginatedOrders:
        async with self.db.transaction() as repos:
            orders, total = await repos.orders.list_for_user(
                user_id, status=status, offset=(page - 1) * limit, limit=limit
            )
        return PaginatedOrders(
            items=orders,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
        )

    async def list_store_orders(
        self,
        store_id: uuid.UUID,
        access: OrderAccess,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PaginatedOrders:
        async with self.db.transaction() as repos:
            store = await repos.stores.get(store_id)
            if store is None or (
                not access.is_admin and store.owner_id != access.actor_id
            ):
                raise NotFound("Store not found")
            orders, total = await repos.orders.list_for_store(
                store_id, status=status, offset=(page - 1) * limit, limit=limit
            )
        return PaginatedOrders(
            items=orders,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
        )
