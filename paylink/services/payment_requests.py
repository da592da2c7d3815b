"""
One-shot creation of payment requests.

The provider call happens first; only a successful response produces a local
record, inserted with status "created" in the same transaction as its audit
entry, so every stored record can be rebuilt from the audit log.
"""
from __future__ import annotations

from fastapi.concurrency import run_in_threadpool

from paylink.logging_config import get_logger
from paylink.models import PaymentRecord, PaymentStatus, RequestType
from paylink.services.audit_log import creation_entry
from paylink.services.payments.base import PaymentAdapter, PaymentRequest, PaymentRequestSpec
from paylink.services.record_store import RecordStore, utcnow

logger = get_logger(__name__)


def build_record(request: PaymentRequest, spec: PaymentRequestSpec) -> PaymentRecord:
    return PaymentRecord(
        request_id=request.request_id,
        request_type=request.request_type,
        status=PaymentStatus.CREATED.value,
        amount=spec.amount,
        currency=request.currency,
        name=spec.name,
        email=spec.email,
        contact=spec.contact,
        description=spec.description,
        short_url=request.short_url,
        qr_image_url=request.qr_image_url,
        order_id=request.order_id,
    )


def persist_created(store: RecordStore, record: PaymentRecord) -> PaymentRecord:
    if record.created_at is None:
        record.created_at = utcnow()
    return store.create(record, audit_entry=creation_entry(record))


async def create_payment_request(
    adapter: PaymentAdapter,
    store: RecordStore,
    spec: PaymentRequestSpec,
    request_type: RequestType = RequestType.PAYMENT_LINK,
) -> PaymentRecord:
    """Create the request upstream, then insert its initial record."""
    if request_type == RequestType.ORDER:
        request = await adapter.create_order_qr(spec)
    else:
        request = await adapter.create_payment_link(spec)

    logger.info(
        "payment_request_created",
        request_id=request.request_id,
        request_type=request.request_type,
        amount=spec.amount,
    )
    return await run_in_threadpool(persist_created, store, build_record(request, spec))
