from __future__ import annotations

import base64
import time
from typing import Any, Dict, Optional

import httpx

from paylink.config import settings
from paylink.errors import UpstreamError
from paylink.logging_config import get_logger
from paylink.models import RequestType
from .base import PaymentRequest, PaymentRequestSpec

logger = get_logger(__name__)


class RazorpayAdapter:
    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        if not self.key_id or not self.key_secret:
            raise ValueError("Razorpay not configured")
        token = base64.b64encode(f"{self.key_id}:{self.key_secret}".encode()).decode()
        self._auth_header = {"Authorization": f"Basic {token}"}
        self._base = (base_url or settings.RAZORPAY_API_BASE).rstrip("/")
        self._timeout = timeout or settings.RAZORPAY_TIMEOUT_SECONDS
        self._transport = transport

    async def _post(self, path: str, json: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(f"{self._base}{path}", json=json, headers=self._auth_header)
                r.raise_for_status()
                return r.json()
        except httpx.TimeoutException:
            logger.error("razorpay_timeout", path=path)
            raise UpstreamError("Payment provider timed out", code="timeout")
        except httpx.HTTPStatusError as e:
            code = _error_code(e.response)
            logger.error("razorpay_error", path=path, status_code=e.response.status_code, code=code)
            raise UpstreamError(code=code)
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: 2xx response without a JSON body
            logger.error("razorpay_unreachable", path=path, error=str(e))
            raise UpstreamError(code="network_error")

    async def create_payment_link(self, spec: PaymentRequestSpec) -> PaymentRequest:
        payload: Dict[str, Any] = {
            "amount": int(spec.amount),
            "currency": spec.currency.upper(),
            "description": spec.description or "Payment request",
            "notify": {"sms": False, "email": False},
            "reminder_enable": False,
            "notes": dict(spec.notes),
        }
        customer = {k: v for k, v in (("name", spec.name), ("email", spec.email), ("contact", spec.contact)) if v}
        if customer:
            payload["customer"] = customer
        data = await self._post("/v1/payment_links", payload)
        link_id = data.get("id")
        if not link_id:
            raise UpstreamError("Invalid payment link response", code="invalid_response")
        return PaymentRequest(
            request_id=link_id,
            request_type=RequestType.PAYMENT_LINK.value,
            amount=int(data.get("amount", spec.amount)),
            currency=data.get("currency", spec.currency.upper()),
            status=data.get("status", "created"),
            short_url=data.get("short_url"),
        )

    async def create_order_qr(self, spec: PaymentRequestSpec) -> PaymentRequest:
        order = await self._post(
            "/v1/orders",
            {
                "amount": int(spec.amount),
                "currency": spec.currency.upper(),
                "receipt": f"receipt_{int(time.time() * 1000)}",
                "payment_capture": 1,
                "notes": dict(spec.notes),
            },
        )
        order_id = order.get("id")
        if not order_id:
            raise UpstreamError("Invalid order response", code="invalid_response")

        # QR payments carry the QR code's notes, which is how captures find the order
        qr = await self._post(
            "/v1/payments/qr_codes",
            {
                "type": "upi_qr",
                "name": spec.name or "Order Payment",
                "usage": "single_use",
                "fixed_amount": True,
                "payment_amount": int(order.get("amount", spec.amount)),
                "description": spec.description or "Payment for your order",
                "close_by": int(time.time()) + settings.QR_EXPIRY_SECONDS,
                "notes": {**spec.notes, "request_id": order_id},
            },
        )
        return PaymentRequest(
            request_id=order_id,
            request_type=RequestType.ORDER.value,
            amount=int(order.get("amount", spec.amount)),
            currency=order.get("currency", spec.currency.upper()),
            status=order.get("status", "created"),
            qr_image_url=qr.get("image_url"),
            order_id=order_id,
        )


def _error_code(response: httpx.Response) -> str:
    """Razorpay error code from an error body, without the description text."""
    try:
        error = response.json().get("error") or {}
        return str(error.get("code") or f"http_{response.status_code}")
    except (ValueError, AttributeError):
        return f"http_{response.status_code}"
