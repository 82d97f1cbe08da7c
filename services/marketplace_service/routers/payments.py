"""Payment initiation and the Paypack webhook."""

import base64
import hashlib
import hmac
import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.marketplace_service.container import MarketplaceServices
from services.marketplace_service.dependencies import get_marketplace_services
from services.marketplace_service.jobs import ReconcilePaymentJob
from services.marketplace_service.payment_gateway import outcome_for_status
from services.marketplace_service.schemas import PaymentRequest, PaymentResponse

router = APIRouter(prefix="/payments", tags=["payments"])
logger = get_logger(__name__)


def verify_paypack_signature(raw_body: bytes, signature: str) -> bool:
    secret = (get_settings().PAYPACK_WEBHOOK_SECRET or "").encode("utf-8")
    if not secret:
        return False
    digest = base64.b64encode(
        hmac.new(secret, raw_body, hashlib.sha256).digest()
    ).decode("utf-8")
    return hmac.compare_digest(digest, signature)


@router.post("", response_model=PaymentResponse)
async def process_payment(
    payload: PaymentRequest,
    current_user: AuthUser = Depends(get_current_user),
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    return await services.payments.process_payment(
        current_user.user_id, payload.order_id, payload.phone
    )


@router.post("/webhook")
async def paypack_webhook(
    request: Request,
    services: MarketplaceServices = Depends(get_marketplace_services),
):
    """
    Paypack webhook endpoint (no auth; verified by x-paypack-signature).
    """
    raw = await request.body()
    signature = request.headers.get("x-paypack-signature")
    if not signature or not verify_paypack_signature(raw, signature):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature"
        )

    try:
        payload = json.loads(raw.decode("utf-8") or "{}")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
        )
    if not isinstance(payload, dict):
        return {"received": True}

    data = payload.get("data") or payload
    if not isinstance(data, dict):
        logger.warning("Ignoring webhook with malformed data")
        return {"received": True}

    reference = data.get("ref")
    raw_status = data.get("status")
    outcome = outcome_for_status(raw_status) if isinstance(raw_status, str) else None
    if not reference or outcome is None:
        logger.info(
            "Ignoring webhook without a settled outcome",
            extra={"extra_fields": {"reference": reference, "status": raw_status}},
        )
        return {"received": True}

    job = ReconcilePaymentJob(reference=str(reference), outcome=outcome)
    try:
        await services.queue.enqueue(job, services.orders.retry_policy)
    except Exception as e:
        logger.warning(f"Failed to enqueue reconciliation for {reference}, running inline: {e}")
        await services.payments.reconcile_payment(job.reference, job.outcome)

    return {"received": True}
