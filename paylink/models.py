"""
paylink – SQLAlchemy Models

This file defines the durable state of the service:
- Payment records (one per created payment request)
- Audit events (append-only log of accepted webhooks and creations)
- Unlinked captures (captures that could not be tied to a payment record)
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, LargeBinary
)
from .db import Base


def _utcnow():
    return datetime.now(timezone.utc)


class PaymentStatus(str, Enum):
    """Lifecycle of a payment request. PAID is absorbing, FAILED is terminal."""
    CREATED = "created"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    FAILED = "failed"


class RequestType(str, Enum):
    PAYMENT_LINK = "payment_link"
    ORDER = "order"


# =====================================================
# PAYMENT RECORD MODEL
# =====================================================

class PaymentRecord(Base):
    __tablename__ = "payment_records"

    # Provider-assigned id: payment link id (plink_...) or order id (order_...)
    request_id = Column(String(64), primary_key=True)
    request_type = Column(String(16), nullable=False)              # payment_link / order

    status = Column(String(24), nullable=False, default="created")  # created/partially_paid/paid/failed

    amount = Column(Integer, nullable=False)                        # in paise
    currency = Column(String(8), nullable=False, default="INR")

    name = Column(String(128), nullable=True)
    email = Column(String(255), nullable=True)
    contact = Column(String(32), nullable=True)
    description = Column(String(255), nullable=True)

    short_url = Column(String(512), nullable=True)
    qr_image_url = Column(String(512), nullable=True)

    # Filled by payment.captured
    payment_id = Column(String(64), nullable=True, index=True)
    order_id = Column(String(64), nullable=True, index=True)
    method = Column(String(32), nullable=True)
    captured = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<PaymentRecord(request_id={self.request_id}, status={self.status}, amount={self.amount})>"


# =====================================================
# AUDIT LOG
# =====================================================

class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(16), nullable=False)                     # webhook / create
    event_type = Column(String(64), nullable=False)
    event_id = Column(String(64), nullable=True, index=True)        # x-razorpay-event-id
    request_id = Column(String(64), nullable=True, index=True)
    payment_id = Column(String(64), nullable=True, index=True)

    body = Column(LargeBinary, nullable=False)                      # exact bytes as received

    received_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


# =====================================================
# UNLINKED CAPTURES
# =====================================================

class UnlinkedCapture(Base):
    __tablename__ = "unlinked_captures"

    payment_id = Column(String(64), primary_key=True)
    order_id = Column(String(64), nullable=True)
    method = Column(String(32), nullable=True)
    amount = Column(Integer, nullable=True)
    email = Column(String(255), nullable=True)
    contact = Column(String(32), nullable=True)

    audit_event_id = Column(Integer, nullable=True)

    recorded_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
