from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Largest amount in paise; fits a 32-bit Integer column on every backend
MAX_AMOUNT_MINOR = 2**31 - 1


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaymentCreateRequest(BaseModel):
    amount: Decimal           # in rupees, at most 2 decimal places
    name: Optional[str] = Field(None, max_length=128)
    email: Optional[str] = Field(None, max_length=255)
    contact: Optional[str] = Field(None, max_length=32)
    description: Optional[str] = Field(None, max_length=255)

    @field_validator("amount", mode="before")
    @classmethod
    def parse_amount(cls, v):
        if isinstance(v, bool) or v is None or v == "":
            raise ValueError("Please provide a valid amount.")
        try:
            amount = Decimal(str(v))
        except InvalidOperation:
            raise ValueError("Please provide a valid amount.")
        if not amount.is_finite() or amount <= 0:
            raise ValueError("Please provide a valid amount.")
        if amount * 100 > MAX_AMOUNT_MINOR:
            raise ValueError("Amount is too large.")
        if amount != amount.quantize(Decimal("0.01")):
            raise ValueError("Amount cannot have more than 2 decimal places.")
        return amount

    @property
    def amount_minor(self) -> int:
        """Amount in paise."""
        return int(self.amount * 100)


class PaymentLinkCreateResponse(CamelModel):
    request_id: str
    short_url: Optional[str] = None
    status: str


class OrderCreateResponse(CamelModel):
    request_id: str
    qr_image_url: Optional[str] = None
    status: str


class PaymentRecordOut(CamelModel):
    request_id: str
    request_type: str
    status: str
    amount: float              # in rupees
    amount_minor: int          # in paise
    currency: str
    name: Optional[str] = None
    email: Optional[str] = None
    contact: Optional[str] = None
    description: Optional[str] = None
    short_url: Optional[str] = None
    qr_image_url: Optional[str] = None
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    method: Optional[str] = None
    captured: Optional[bool] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "PaymentRecordOut":
        data = {name: getattr(record, name) for name in cls.model_fields if name not in ("amount", "amount_minor")}
        data["created_at"] = _as_utc(data["created_at"])
        data["updated_at"] = _as_utc(data["updated_at"])
        return cls(amount=float(Decimal(record.amount) / 100), amount_minor=record.amount, **data)


class WebhookAck(BaseModel):
    status: str = "ok"
