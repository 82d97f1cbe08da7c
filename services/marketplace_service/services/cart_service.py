"""Shopping cart maintenance and checkout."""

import uuid
from typing import Optional

from libs.common.logging import get_logger
from services.marketplace_service.errors import (
    InsufficientStock,
    MarketplaceError,
    NotFound,
    ProductNotFound,
)
from services.marketplace_service.repositories import Database
from services.marketplace_service.schemas import CartRecord, CheckoutResponse
from services.marketplace_service.services.order_workflow import OrderWorkflow
from services.marketplace_service.services.payment_service import PaymentService

logger = get_logger(__name__)


class CartService:
    def __init__(self, db: Database):
        self.db = db

    async def get_cart(self, user_id: str) -> CartRecord:
        """Return the user's active cart, creating an empty one if needed."""
        async with self.db.transaction() as repos:
            cart = await repos.carts.get_for_user(user_id)
            if cart is None:
                cart = await repos.carts.create(user_id)
        return cart

    async def add_item(
        self, user_id: str, product_id: uuid.UUID, quantity: int = 1
    ) -> CartRecord:
        async with self.db.transaction() as repos:
            product = await repos.products.get(product_id)
            if product is None:
                raise ProductNotFound(product_id)

            cart = await repos.carts.get_for_user(user_id)
            if cart is None:
                cart = await repos.carts.create(user_id)

            existing = next(
                (i.quantity for i in cart.items if i.product_id == product_id), 0
            )
            wanted = existing + quantity
            if wanted > product.stock:
                raise InsufficientStock(product_id, wanted, product.stock)

            await repos.carts.set_item(cart.id, product_id, wanted)
            return await repos.carts.get(cart.id)

    async def remove_item(self, user_id: str, product_id: uuid.UUID) -> CartRecord:
        async with self.db.transaction() as repos:
            cart = await repos.carts.get_for_user(user_id)
            if cart is None:
                raise NotFound("Cart not found")
            await repos.carts.remove_item(cart.id, product_id)
            return await repos.carts.get(cart.id)


class CheckoutService:
    """Cart to order, then payment initiation.

    A failed payment initiation leaves the order in place, unpaid, so the
    buyer can retry payment against the same order.
    """

    def __init__(self, workflow: OrderWorkflow, payments: PaymentService):
        self.workflow = workflow
        self.payments = payments

    async def checkout(
        self,
        user_id: str,
        cart_id: uuid.UUID,
        phone: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutResponse:
        order = await self.workflow.create_order_from_cart(
            user_id, cart_id, customer_email=customer_email
        )
        try:
            payment = await self.payments.process_payment(user_id, order.id, phone)
        except MarketplaceError as e:
            logger.warning(f"Checkout payment initiation failed for order {order.id}: {e}")
            return CheckoutResponse(order=order, payment=None, payment_error=e.message)
        return CheckoutResponse(order=order, payment=payment)
