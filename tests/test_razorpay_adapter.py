import base64
import json

import httpx
import pytest

from paylink.config import settings
from paylink.errors import UpstreamError
from paylink.services.payments import PaymentRequestSpec, RazorpayAdapter


def make_adapter(handler):
    return RazorpayAdapter(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        base_url="https://api.razorpay.test",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_create_payment_link():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(
            200,
            json={"id": "plink_N1", "amount": 50000, "currency": "INR", "status": "created", "short_url": "https://rzp.io/i/N1"},
        )

    spec = PaymentRequestSpec(amount=50000, name="Asha", email="asha@example.com", description="Invoice 7")
    result = await make_adapter(handler).create_payment_link(spec)

    assert result.request_id == "plink_N1"
    assert result.request_type == "payment_link"
    assert result.short_url == "https://rzp.io/i/N1"
    assert result.amount == 50000

    [request] = seen
    assert request.url.path == "/v1/payment_links"
    expected = base64.b64encode(b"rzp_test_key:rzp_test_secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    payload = json.loads(request.content)
    assert payload["amount"] == 50000
    assert payload["currency"] == "INR"
    assert payload["customer"] == {"name": "Asha", "email": "asha@example.com"}


@pytest.mark.asyncio
async def test_create_order_qr_links_qr_to_order():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        if request.url.path == "/v1/orders":
            return httpx.Response(200, json={"id": "order_O1", "amount": 24950, "currency": "INR", "status": "created"})
        return httpx.Response(200, json={"id": "qr_1", "image_url": "https://rzp.io/qr/1.png", "status": "active"})

    result = await make_adapter(handler).create_order_qr(PaymentRequestSpec(amount=24950))

    assert result.request_id == "order_O1"
    assert result.order_id == "order_O1"
    assert result.request_type == "order"
    assert result.qr_image_url == "https://rzp.io/qr/1.png"
    assert [r.url.path for r in seen] == ["/v1/orders", "/v1/payments/qr_codes"]
    qr = json.loads(seen[1].content)
    assert qr["type"] == "upi_qr"
    assert qr["usage"] == "single_use"
    assert qr["payment_amount"] == 24950
    assert qr["notes"]["request_id"] == "order_O1"


@pytest.mark.asyncio
async def test_error_response_keeps_only_the_code():
    def handler(request):
        return httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR", "description": "key_secret leaked?"}})

    with pytest.raises(UpstreamError) as exc:
        await make_adapter(handler).create_payment_link(PaymentRequestSpec(amount=100))
    assert exc.value.code == "BAD_REQUEST_ERROR"
    assert "leaked" not in exc.value.message


@pytest.mark.asyncio
async def test_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamError) as exc:
        await make_adapter(handler).create_order_qr(PaymentRequestSpec(amount=100))
    assert exc.value.code == "timeout"


@pytest.mark.asyncio
async def test_missing_order_id_is_an_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"status": "created"})

    with pytest.raises(UpstreamError) as exc:
        await make_adapter(handler).create_order_qr(PaymentRequestSpec(amount=100))
    assert exc.value.code == "invalid_response"


def test_requires_credentials(monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", None)
    monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", None)
    with pytest.raises(ValueError):
        RazorpayAdapter()
