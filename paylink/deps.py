from fastapi import Depends

from paylink.db import SessionLocal
from paylink.errors import UpstreamError
from paylink.services.audit_log import AuditLog
from paylink.services.payments import PaymentAdapter, RazorpayAdapter
from paylink.services.reconciler import Reconciler
from paylink.services.record_store import RecordStore

# One store per process: the per-key locks only work if every request shares them
_store = RecordStore(SessionLocal)
_audit_log = AuditLog(SessionLocal)


def get_store() -> RecordStore:
    return _store


def get_audit_log() -> AuditLog:
    return _audit_log


def get_reconciler(
    store: RecordStore = Depends(get_store),
    audit_log: AuditLog = Depends(get_audit_log),
) -> Reconciler:
    return Reconciler(store, audit_log)


def get_adapter() -> PaymentAdapter:
    try:
        return RazorpayAdapter()
    except ValueError:
        raise UpstreamError("Razorpay not configured", code="not_configured")
