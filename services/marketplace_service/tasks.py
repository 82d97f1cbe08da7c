"""Background job handlers for the marketplace worker."""

from typing import Optional

from libs.common.logging import get_logger
from services.marketplace_service.container import MarketplaceServices
from services.marketplace_service.jobs import (
    DeadLetterSink,
    JobDispatcher,
    ProcessOrderJob,
    ReconcilePaymentJob,
)

logger = get_logger(__name__)


def build_dispatcher(
    services: MarketplaceServices, dead_letters: Optional[DeadLetterSink] = None
) -> JobDispatcher:
    async def handle_process_order(job: ProcessOrderJob) -> None:
        await services.orders.process_order(job.order_id)

    async def handle_reconcile_payment(job: ReconcilePaymentJob) -> None:
        await services.payments.reconcile_payment(job.reference, job.outcome)

    return JobDispatcher(
        {
            "process-order": handle_process_order,
            "reconcile-payment": handle_reconcile_payment,
        },
        dead_letters=dead_letters,
    )


async def reconcile_pending_payments(services: MarketplaceServices) -> None:
    """Settle payments whose webhook never arrived."""
    processed = await services.payments.reconcile_pending_payments()
    logger.info(f"Pending payment sweep finished, {processed} reconciled")
