from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol


@dataclass
class PaymentRequestSpec:
    amount: int               # in paise
    currency: str = "INR"
    name: Optional[str] = None
    email: Optional[str] = None
    contact: Optional[str] = None
    description: Optional[str] = None
    notes: Dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentRequest:
    request_id: str
    request_type: str          # payment_link / order
    amount: int
    currency: str
    status: str
    short_url: Optional[str] = None
    qr_image_url: Optional[str] = None
    order_id: Optional[str] = None


class PaymentAdapter(Protocol):
    async def create_payment_link(self, spec: PaymentRequestSpec) -> PaymentRequest:
        """
        Create a hosted payment link. request_id is the link id (plink_...).
        """
        ...

    async def create_order_qr(self, spec: PaymentRequestSpec) -> PaymentRequest:
        """
        Create an order plus a single-use UPI QR code for it. request_id is the order id.
        """
        ...
