"""Payment initiation and reconciliation against Paypack."""

import uuid
from datetime import timedelta
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_ago
from libs.common.logging import get_logger
from services.marketplace_service.cache import MarketplaceCache
from services.marketplace_service.errors import InvalidOrder, PaymentInitiationFailed
from services.marketplace_service.models import OrderStatus, PaymentStatus
from services.marketplace_service.notifications import Notifier
from services.marketplace_service.payment_gateway import (
    PaymentGateway,
    PaypackError,
    outcome_for_status,
)
from services.marketplace_service.repositories import Database
from services.marketplace_service.schemas import OrderRecord, PaymentResponse
from services.marketplace_service.services.order_workflow import OrderWorkflow

logger = get_logger(__name__)

REFUND_REQUIRED_NOTE = "Payment received after cancellation, refund required"
PENDING_PAYMENT_GRACE = timedelta(minutes=2)


class PaymentService:
    def __init__(
        self,
        db: Database,
        gateway: PaymentGateway,
        cache: MarketplaceCache,
        notifier: Notifier,
        workflow: OrderWorkflow,
        callback_url: Optional[str] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.cache = cache
        self.notifier = notifier
        self.workflow = workflow
        self.callback_url = (
            callback_url or f"{get_settings().APP_URL.rstrip('/')}/payments/webhook"
        )

    async def process_payment(
        self, user_id: str, order_id: uuid.UUID, phone: str
    ) -> PaymentResponse:
        """Start a mobile-money payment for an unpaid pending order."""
        async with self.db.transaction() as repos:
            order = await repos.orders.get(order_id)
        if (
            order is None
            or order.user_id != user_id
            or order.payment_status is not None
            or order.status != OrderStatus.PENDING
        ):
            raise InvalidOrder("Order not found or already paid")

        try:
            initiation = await self.gateway.create_payment(
                amount=order.total, phone=phone, callback_url=self.callback_url
            )
        except (PaypackError, httpx.HTTPError) as e:
            logger.error(f"Failed to process payment for order {order_id}: {e}")
            raise PaymentInitiationFailed("Payment processing failed") from e

        async with self.db.transaction() as repos:
            recorded = await repos.orders.mark_payment_pending(
                order_id, initiation.transaction_id, initiation.provider
            )
        if not recorded:
            logger.error(
                f"Order {order_id} was cancelled or paid while payment "
                f"{initiation.transaction_id} was being initiated; refund or void required",
                extra={
                    "extra_fields": {
                        "order_id": str(order_id),
                        "reference": initiation.transaction_id,
                    }
                },
            )
            raise InvalidOrder("Order is no longer awaiting payment")

        await self.cache.invalidate_order(order_id)
        logger.info(
            f"Payment initiated for order {order_id}",
            extra={"extra_fields": {"reference": initiation.transaction_id}},
        )
        return PaymentResponse(
            order_id=order_id,
            transaction_id=initiation.transaction_id,
            status=initiation.status,
            amount=initiation.amount,
            provider=initiation.provider,
        )

    async def reconcile_payment(
        self, reference: str, outcome: PaymentStatus
    ) -> Optional[OrderRecord]:
        """Apply a settled payment outcome to the order holding ``reference``.

        Safe to call repeatedly: once the payment is settled, later calls
        change nothing.
        """
        if not outcome.is_settled:
            logger.info(f"Ignoring non-final outcome {outcome.value} for {reference}")
            return None

        status_comment = None
        stock_changed = False
        async with self.db.transaction() as repos:
            order = await repos.orders.get_by_payment_reference(reference, for_update=True)
            if order is None:
                logger.warning(f"Unknown payment reference {reference}, ignoring")
                return None
            if order.payment_status is not None and order.payment_status.is_settled:
                logger.info(
                    f"Payment {reference} already {order.payment_status.value}, skipping"
                )
                return order

            if outcome == PaymentStatus.PAID:
                if order.status == OrderStatus.PENDING:
                    updated = await repos.orders.update(
                        order.id,
                        payment_status=PaymentStatus.PAID,
                        status=OrderStatus.PROCESSING,
                    )
                    status_comment = "Payment confirmed"
                    await repos.orders.add_history(
                        order.id, OrderStatus.PROCESSING, status_comment
                    )
                elif order.status == OrderStatus.CANCELLED:
                    updated = await repos.orders.update(
                        order.id,
                        payment_status=PaymentStatus.PAID,
                        status_message=REFUND_REQUIRED_NOTE,
                    )
                    logger.warning(
                        f"Payment {reference} settled for cancelled order {order.id}; "
                        "refund required",
                        extra={"extra_fields": {"order_id": str(order.id)}},
                    )
                else:
                    updated = await repos.orders.update(
                        order.id, payment_status=PaymentStatus.PAID
                    )
            else:
                updated = await repos.orders.update(
                    order.id, payment_status=PaymentStatus.FAILED
                )
                if order.status == OrderStatus.PENDING:
                    status_comment = "Payment failed"
                    updated = await self.workflow.cancel_in_transaction(
                        repos, updated, status_comment
                    )
                    stock_changed = True

        logger.info(f"Payment {reference} reconciled as {outcome.value}")
        if status_comment:
            await self.workflow.publish_status_change(
                updated, status_comment, stock_changed=stock_changed
            )
        else:
            await self.cache.invalidate_order(updated.id)
        if outcome == PaymentStatus.PAID:
            await self.notifier.send_payment_confirmation(updated)
        return updated

    async def reconcile_pending_payments(self, limit: int = 200) -> int:
        """Poll Paypack for payments still pending after the grace period."""
        cutoff = utc_ago(PENDING_PAYMENT_GRACE)
        async with self.db.transaction() as repos:
            pending = await repos.orders.list_pending_payments(
                updated_before=cutoff, limit=limit
            )

        processed = 0
        for order in pending:
            try:
                transaction = await self.gateway.find_transaction(order.payment_reference)
            except Exception as exc:
                logger.warning(
                    f"Pending payment lookup failed for {order.payment_reference}: {exc}"
                )
                continue

            if transaction is None:
                continue
            outcome = outcome_for_status(transaction.status)
            if outcome is None:
                continue
            await self.reconcile_payment(order.payment_reference, outcome)
            processed += 1

        if processed:
            logger.info(f"Reconciled {processed} pending payment(s)")
        return processed
