"""Buyer notifications for order and payment events.

Delivery is best-effort everywhere: a failed email is logged and never
changes the outcome of the operation that triggered it.
"""

from typing import Protocol

from libs.common.emails.orders import (
    send_order_confirmation_email,
    send_order_status_update_email,
    send_payment_confirmation_email,
)
from libs.common.logging import get_logger
from services.marketplace_service.schemas import OrderRecord

logger = get_logger(__name__)


class Notifier(Protocol):
    async def send_order_confirmation(self, order: OrderRecord) -> None: ...

    async def send_order_status_update(
        self, order: OrderRecord, comment: str = None
    ) -> None: ...

    async def send_payment_confirmation(self, order: OrderRecord) -> None: ...


class EmailNotifier:
    """Notifier that emails the address captured on the order."""

    async def send_order_confirmation(self, order: OrderRecord) -> None:
        if not order.customer_email:
            return
        try:
            await send_order_confirmation_email(
                to_email=order.customer_email,
                order_id=str(order.id),
                items=[
                    {
                        "name": item.product_name or str(item.product_id),
                        "quantity": item.quantity,
                        "price": item.price_at_purchase,
                    }
                    for item in order.items
                ],
                total=order.total,
            )
        except Exception as e:
            logger.error(f"Failed to send order confirmation for {order.id}: {e}")

    async def send_order_status_update(
        self, order: OrderRecord, comment: str = None
    ) -> None:
        if not order.customer_email:
            return
        try:
            await send_order_status_update_email(
                to_email=order.customer_email,
                order_id=str(order.id),
                status=order.status.value,
                total=order.total,
                comment=comment,
            )
        except Exception as e:
            logger.error(f"Failed to send status update for {order.id}: {e}")

    async def send_payment_confirmation(self, order: OrderRecord) -> None:
        if not order.customer_email:
            return
        try:
            await send_payment_confirmation_email(
                to_email=order.customer_email,
                order_id=str(order.id),
                amount=order.total,
                provider=order.payment_provider or "paypack",
                reference=order.payment_reference or "",
            )
        except Exception as e:
            logger.error(f"Failed to send payment confirmation for {order.id}: {e}")
