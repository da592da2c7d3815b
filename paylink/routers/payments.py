"""
Payment request endpoints: create a payment link or an order with a UPI QR
code, and read back the records the webhook keeps up to date.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from paylink.config import settings
from paylink.deps import get_adapter, get_store
from paylink.models import RequestType
from paylink.schemas import (
    OrderCreateResponse,
    PaymentCreateRequest,
    PaymentLinkCreateResponse,
    PaymentRecordOut,
)
from paylink.services.payment_requests import create_payment_request
from paylink.services.payments import PaymentAdapter, PaymentRequestSpec
from paylink.services.record_store import RecordStore

router = APIRouter(tags=["Payments"])


def _spec(body: PaymentCreateRequest) -> PaymentRequestSpec:
    return PaymentRequestSpec(
        amount=body.amount_minor,
        currency=settings.CURRENCY,
        name=body.name,
        email=body.email,
        contact=body.contact,
        description=body.description,
    )


@router.post("/create-link", response_model=PaymentLinkCreateResponse, status_code=201)
async def create_link(
    body: PaymentCreateRequest,
    adapter: PaymentAdapter = Depends(get_adapter),
    store: RecordStore = Depends(get_store),
):
    record = await create_payment_request(adapter, store, _spec(body), RequestType.PAYMENT_LINK)
    return PaymentLinkCreateResponse(request_id=record.request_id, short_url=record.short_url, status=record.status)


@router.post("/create-order", response_model=OrderCreateResponse, status_code=201)
async def create_order(
    body: PaymentCreateRequest,
    adapter: PaymentAdapter = Depends(get_adapter),
    store: RecordStore = Depends(get_store),
):
    record = await create_payment_request(adapter, store, _spec(body), RequestType.ORDER)
    return OrderCreateResponse(request_id=record.request_id, qr_image_url=record.qr_image_url, status=record.status)


@router.get("/status/{request_id}", response_model=PaymentRecordOut)
async def payment_status(request_id: str, store: RecordStore = Depends(get_store)):
    record = await run_in_threadpool(store.get, request_id)
    return PaymentRecordOut.from_record(record)


@router.get("/records", response_model=List[PaymentRecordOut])
async def list_records(store: RecordStore = Depends(get_store)):
    records = await run_in_threadpool(store.list)
    return [PaymentRecordOut.from_record(r) for r in records]
