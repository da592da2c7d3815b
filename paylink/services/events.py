"""
Normalization of Razorpay webhook bodies.

Razorpay sends one envelope for every event:

    {"event": "payment.captured", "payload": {"payment": {"entity": {...}}, ...}}

normalize() turns that into one of a small set of typed events carrying only
what reconciliation needs. Unknown event types become IgnoredEvent, not errors.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from paylink.errors import ParseError
from paylink.models import PaymentStatus

LINK_PAID = "payment_link.paid"
LINK_PARTIALLY_PAID = "payment_link.partially_paid"
PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"

# notes keys that can carry the id of the payment request a payment belongs to
LINK_NOTE_KEYS = ("request_id", "payment_link_id", "qr_code_id")


@dataclass(frozen=True)
class LinkStatusEvent:
    kind: str
    request_id: Optional[str]
    status: PaymentStatus
    order_id: Optional[str] = None


@dataclass(frozen=True)
class CaptureEvent:
    payment_id: str
    linked_request_id: Optional[str] = None
    order_id: Optional[str] = None
    method: Optional[str] = None
    captured: bool = True
    email: Optional[str] = None
    contact: Optional[str] = None
    amount: Optional[int] = None
    kind: str = PAYMENT_CAPTURED


@dataclass(frozen=True)
class PaymentFailedEvent:
    payment_id: str
    linked_request_id: Optional[str] = None
    order_id: Optional[str] = None
    error_code: Optional[str] = None
    kind: str = PAYMENT_FAILED


@dataclass(frozen=True)
class IgnoredEvent:
    event_type: str
    kind: str = "ignored"


NormalizedEvent = Union[LinkStatusEvent, CaptureEvent, PaymentFailedEvent, IgnoredEvent]


def _entity(payload: Dict[str, Any], name: str) -> Dict[str, Any]:
    wrapper = payload.get(name) or {}
    if not isinstance(wrapper, dict):
        raise ParseError()
    entity = wrapper.get("entity") or {}
    if not isinstance(entity, dict):
        raise ParseError()
    return entity


def _str_or_none(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _linked_request_id(payment: Dict[str, Any]) -> Optional[str]:
    notes = payment.get("notes")
    # Razorpay sends an empty list instead of {} when no notes were set
    if not isinstance(notes, dict):
        return None
    for key in LINK_NOTE_KEYS:
        value = _str_or_none(notes.get(key))
        if value:
            return value
    return None


def _payment_id(payment: Dict[str, Any]) -> str:
    payment_id = _str_or_none(payment.get("id"))
    if not payment_id:
        raise ParseError()
    return payment_id


def parse_body(raw_body: bytes) -> Dict[str, Any]:
    try:
        event = json.loads(raw_body)
    except (TypeError, ValueError, UnicodeDecodeError):
        raise ParseError()
    if not isinstance(event, dict) or not isinstance(event.get("event"), str):
        raise ParseError()
    payload = event.get("payload") or {}
    if not isinstance(payload, dict):
        raise ParseError()
    return event


def normalize(raw_body: bytes) -> NormalizedEvent:
    """Parse a raw webhook body into a NormalizedEvent; ParseError if unreadable."""
    event = parse_body(raw_body)
    etype = event["event"]
    payload = event.get("payload") or {}

    if etype in (LINK_PAID, LINK_PARTIALLY_PAID):
        link = _entity(payload, "payment_link")
        status = PaymentStatus.PAID if etype == LINK_PAID else PaymentStatus.PARTIALLY_PAID
        order_id = _str_or_none(link.get("order_id")) or _str_or_none(_entity(payload, "order").get("id"))
        return LinkStatusEvent(
            kind=etype,
            request_id=_str_or_none(link.get("id")),
            status=status,
            order_id=order_id,
        )

    if etype == PAYMENT_CAPTURED:
        payment = _entity(payload, "payment")
        amount = payment.get("amount")
        return CaptureEvent(
            payment_id=_payment_id(payment),
            linked_request_id=_linked_request_id(payment),
            order_id=_str_or_none(payment.get("order_id")),
            method=_str_or_none(payment.get("method")),
            captured=bool(payment.get("captured", True)),
            email=_str_or_none(payment.get("email")),
            contact=_str_or_none(payment.get("contact")),
            amount=amount if isinstance(amount, int) else None,
        )

    if etype == PAYMENT_FAILED:
        payment = _entity(payload, "payment")
        return PaymentFailedEvent(
            payment_id=_payment_id(payment),
            linked_request_id=_linked_request_id(payment),
            order_id=_str_or_none(payment.get("order_id")),
            error_code=_str_or_none(payment.get("error_code")),
        )

    return IgnoredEvent(event_type=etype)
