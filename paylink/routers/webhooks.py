"""
Razorpay webhooks: POST /webhook
- Validates the HMAC signature over the raw body using RAZORPAY_WEBHOOK_SECRET
- Normalizes payment_link.paid|partially_paid, payment.captured, payment.failed
- Audits every accepted event, then reconciles it into the payment record
- Acknowledges with 200 once the signature passes, whatever the outcome, so
  Razorpay does not keep retrying events we have already recorded
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from paylink.config import settings
from paylink.deps import get_reconciler
from paylink.errors import AuthenticityError, ParseError, StoreUnavailable
from paylink.logging_config import get_logger
from paylink.schemas import WebhookAck
from paylink.services.events import normalize
from paylink.services.reconciler import Reconciler
from paylink.services.signature import verify

router = APIRouter(tags=["Razorpay Webhooks"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "x-razorpay-signature"
EVENT_ID_HEADER = "x-razorpay-event-id"


@router.post("/webhook", response_model=WebhookAck)
async def razorpay_webhook(request: Request, reconciler: Reconciler = Depends(get_reconciler)):
    # Raw bytes only: the signature covers the body exactly as sent
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    event_id = request.headers.get(EVENT_ID_HEADER)

    if not verify(body, signature, settings.RAZORPAY_WEBHOOK_SECRET):
        logger.warning(
            "webhook_rejected",
            reason="signature",
            signature_present=bool(signature),
            secret_configured=bool(settings.RAZORPAY_WEBHOOK_SECRET),
        )
        raise AuthenticityError()

    try:
        event = normalize(body)
    except ParseError:
        logger.warning("webhook_rejected", reason="unreadable_body", event_id=event_id)
        raise

    try:
        outcome = await run_in_threadpool(reconciler.process, event, body, event_id)
    except StoreUnavailable:
        # Nothing was applied; a 5xx lets Razorpay deliver the event again
        raise
    except Exception:
        # Logic errors must not turn into a retry storm upstream
        logger.exception("webhook_reconcile_failed", event_id=event_id, kind=event.kind)
        return WebhookAck()

    logger.info("webhook_accepted", event_id=event_id, kind=event.kind, outcome=outcome.value)
    return WebhookAck()
