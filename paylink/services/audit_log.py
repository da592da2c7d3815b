"""
Append-only audit log of accepted webhooks and payment request creations,
and the side log of captures that could not be linked to a record.

Nothing here updates or deletes rows. The audit log is enough to rebuild every
payment record (see reconciler.replay_audit_log).
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from paylink.errors import StoreUnavailable
from paylink.logging_config import get_logger
from paylink.models import AuditEvent, PaymentRecord, PaymentStatus, UnlinkedCapture

logger = get_logger(__name__)

SOURCE_WEBHOOK = "webhook"
SOURCE_CREATE = "create"


class AuditLog:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def append(
        self,
        source: str,
        event_type: str,
        body: bytes,
        event_id: Optional[str] = None,
        request_id: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> AuditEvent:
        entry = AuditEvent(
            source=source,
            event_type=event_type,
            body=bytes(body),
            event_id=event_id,
            request_id=request_id,
            payment_id=payment_id,
        )
        try:
            with self._session_factory.begin() as session:
                session.add(entry)
                session.flush()
        except SQLAlchemyError as e:
            logger.error("audit_append_failed", source=source, event_type=event_type, error=str(e))
            raise StoreUnavailable()
        return entry

    def entries(self, source: Optional[str] = None) -> Iterator[AuditEvent]:
        """Yield entries in append order."""
        stmt = select(AuditEvent).order_by(AuditEvent.id)
        if source:
            stmt = stmt.where(AuditEvent.source == source)
        try:
            with self._session_factory() as session:
                rows = session.scalars(stmt).all()
        except SQLAlchemyError as e:
            logger.error("audit_read_failed", error=str(e))
            raise StoreUnavailable()
        return iter(rows)

    def record_unlinked(self, capture: UnlinkedCapture) -> bool:
        """Add a capture to the side log. Returns False if payment_id is already there."""
        try:
            with self._session_factory.begin() as session:
                if session.get(UnlinkedCapture, capture.payment_id) is not None:
                    return False
                session.add(capture)
        except IntegrityError:
            return False
        except SQLAlchemyError as e:
            logger.error("unlinked_capture_write_failed", payment_id=capture.payment_id, error=str(e))
            raise StoreUnavailable()
        return True

    def unlinked(self) -> List[UnlinkedCapture]:
        try:
            with self._session_factory() as session:
                stmt = select(UnlinkedCapture).order_by(UnlinkedCapture.recorded_at, UnlinkedCapture.payment_id)
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error("audit_read_failed", error=str(e))
            raise StoreUnavailable()


CREATION_FIELDS = (
    "request_id", "request_type", "amount", "currency", "name", "email", "contact",
    "description", "short_url", "qr_image_url", "order_id",
)


def snapshot_record(record: PaymentRecord) -> bytes:
    """Serialize the creation-time fields of a record for the audit log."""
    data = {field: getattr(record, field) for field in CREATION_FIELDS}
    data["created_at"] = record.created_at.isoformat() if record.created_at else None
    return json.dumps(data, sort_keys=True).encode()


def record_from_snapshot(body: bytes) -> PaymentRecord:
    data = json.loads(body)
    created_at = data.pop("created_at", None)
    record = PaymentRecord(**{k: v for k, v in data.items() if k in CREATION_FIELDS})
    record.status = PaymentStatus.CREATED.value
    record.created_at = datetime.fromisoformat(created_at) if created_at else None
    return record


def creation_entry(record: PaymentRecord) -> AuditEvent:
    """Audit row for a newly created record, to be committed together with it."""
    return AuditEvent(
        source=SOURCE_CREATE,
        event_type=f"{record.request_type}.created",
        body=snapshot_record(record),
        request_id=record.request_id,
    )
