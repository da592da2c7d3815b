"""
Durable store of payment records keyed by request_id.

Read-modify-write on a single record is serialized by a per-key re-entrant
lock. Callers that need to decide on a patch from the current state hold
store.lock(request_id) around get() and update(); update() takes the same lock
itself, so both styles are safe.
"""
from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from paylink.errors import DuplicateKey, NotFound, StoreUnavailable
from paylink.logging_config import get_logger
from paylink.models import AuditEvent, PaymentRecord

logger = get_logger(__name__)

IMMUTABLE_FIELDS = frozenset({"request_id", "request_type", "amount", "currency", "created_at"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyedLocks:
    """
    Registry of one RLock per key.

    Entries are weak: a key's lock lives only while some caller holds it, so
    the registry does not grow with every request id ever seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, threading.RLock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock


class RecordStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._locks = KeyedLocks()

    @contextmanager
    def lock(self, request_id: str) -> Iterator[None]:
        with self._locks.get(request_id):
            yield

    def create(self, record: PaymentRecord, audit_entry: Optional[AuditEvent] = None) -> PaymentRecord:
        """
        Insert a new record. When audit_entry is given it is committed in the
        same transaction, so either both rows exist or neither does.
        """
        if not record.request_id:
            raise ValueError("request_id is required")
        if record.created_at is None:
            record.created_at = utcnow()
        with self.lock(record.request_id):
            try:
                with self._session_factory.begin() as session:
                    if session.get(PaymentRecord, record.request_id) is not None:
                        raise DuplicateKey(f"Payment record {record.request_id} already exists")
                    session.add(record)
                    if audit_entry is not None:
                        session.add(audit_entry)
            except IntegrityError:
                raise DuplicateKey(f"Payment record {record.request_id} already exists")
            except SQLAlchemyError as e:
                logger.error("record_store_write_failed", op="create", request_id=record.request_id, error=str(e))
                raise StoreUnavailable()
        logger.info("payment_record_created", request_id=record.request_id, amount=record.amount)
        return record

    def get(self, request_id: str) -> PaymentRecord:
        try:
            with self._session_factory() as session:
                record = session.get(PaymentRecord, request_id)
        except SQLAlchemyError as e:
            logger.error("record_store_read_failed", op="get", request_id=request_id, error=str(e))
            raise StoreUnavailable()
        if record is None:
            raise NotFound(f"Payment record {request_id} not found")
        return record

    def update(self, request_id: str, patch: Dict[str, Any]) -> PaymentRecord:
        """Merge patch into the record and stamp updated_at."""
        bad = IMMUTABLE_FIELDS.intersection(patch)
        if bad:
            raise ValueError(f"Immutable fields cannot be updated: {sorted(bad)}")
        unknown = [k for k in patch if k not in PaymentRecord.__table__.columns]
        if unknown:
            raise ValueError(f"Unknown fields: {sorted(unknown)}")

        with self.lock(request_id):
            try:
                with self._session_factory.begin() as session:
                    record = session.get(PaymentRecord, request_id)
                    if record is None:
                        raise NotFound(f"Payment record {request_id} not found")
                    for key, value in patch.items():
                        setattr(record, key, value)
                    record.updated_at = utcnow()
            except SQLAlchemyError as e:
                logger.error("record_store_write_failed", op="update", request_id=request_id, error=str(e))
                raise StoreUnavailable()
        return record

    def find_by_order_id(self, order_id: str) -> Optional[PaymentRecord]:
        """The record whose provider order is order_id, if any."""
        try:
            with self._session_factory() as session:
                stmt = select(PaymentRecord).where(PaymentRecord.order_id == order_id).limit(1)
                return session.scalars(stmt).first()
        except SQLAlchemyError as e:
            logger.error("record_store_read_failed", op="find_by_order_id", order_id=order_id, error=str(e))
            raise StoreUnavailable()

    def list(self) -> List[PaymentRecord]:
        try:
            with self._session_factory() as session:
                stmt = select(PaymentRecord).order_by(PaymentRecord.created_at, PaymentRecord.request_id)
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error("record_store_read_failed", op="list", error=str(e))
            raise StoreUnavailable()
