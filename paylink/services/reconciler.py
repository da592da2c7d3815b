"""
Reconciliation of normalized webhook events into payment records.

State machine:

    created -> partially_paid -> paid
    created -> failed

paid and failed are both final: once reached, no event changes the status.
failed is only entered from created. A record is only ever updated here, never
created: events for unknown requests are dropped (link status) or parked in
the unlinked capture log (captures). Every accepted event is appended to the
audit log before any record is touched.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from paylink.errors import DuplicateKey, NotFound, ParseError
from paylink.logging_config import get_logger
from paylink.models import PaymentRecord, PaymentStatus, UnlinkedCapture
from paylink.services.audit_log import (
    SOURCE_CREATE,
    SOURCE_WEBHOOK,
    AuditLog,
    record_from_snapshot,
)
from paylink.services.events import (
    CaptureEvent,
    IgnoredEvent,
    LinkStatusEvent,
    NormalizedEvent,
    PaymentFailedEvent,
    normalize,
)
from paylink.services.record_store import RecordStore

logger = get_logger(__name__)


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    ABSORBED = "absorbed"
    LOST_UPDATE = "lost_update"
    UNLINKED = "unlinked"
    IGNORED = "ignored"


# Status moves allowed by link status events. Anything else is absorbed.
ALLOWED_TRANSITIONS = {
    PaymentStatus.CREATED: {PaymentStatus.PARTIALLY_PAID, PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.PARTIALLY_PAID: {PaymentStatus.PAID},
    PaymentStatus.FAILED: set(),
    PaymentStatus.PAID: set(),
}

WRITE_ONCE_FIELDS = ("payment_id", "order_id", "method", "captured")
ENRICH_FIELDS = ("email", "contact")


def _event_request_id(event: NormalizedEvent) -> Optional[str]:
    if isinstance(event, LinkStatusEvent):
        return event.request_id
    if isinstance(event, (CaptureEvent, PaymentFailedEvent)):
        return event.linked_request_id
    return None


def capture_patch(record: PaymentRecord, event: CaptureEvent) -> Dict[str, Any]:
    """Fields a capture changes on record; empty when it was already applied."""
    patch: Dict[str, Any] = {}
    for field in WRITE_ONCE_FIELDS:
        value = getattr(event, field)
        if value is not None and getattr(record, field) is None:
            patch[field] = value
    for field in ENRICH_FIELDS:
        value = getattr(event, field)
        if value is not None and getattr(record, field) != value:
            patch[field] = value
    if record.status != PaymentStatus.PAID:
        patch["status"] = PaymentStatus.PAID.value
    return patch


class Reconciler:
    def __init__(self, store: RecordStore, audit_log: AuditLog):
        self.store = store
        self.audit_log = audit_log

    def process(self, event: NormalizedEvent, raw_body: bytes, event_id: Optional[str] = None) -> ReconcileOutcome:
        """Audit an accepted webhook, then apply it."""
        entry = self.audit_log.append(
            SOURCE_WEBHOOK,
            event.kind if not isinstance(event, IgnoredEvent) else event.event_type,
            raw_body,
            event_id=event_id,
            request_id=_event_request_id(event),
            payment_id=getattr(event, "payment_id", None),
        )
        return self.apply(event, audit_event_id=entry.id)

    def apply(self, event: NormalizedEvent, audit_event_id: Optional[int] = None) -> ReconcileOutcome:
        if isinstance(event, LinkStatusEvent):
            outcome = self._apply_link_status(event)
        elif isinstance(event, CaptureEvent):
            outcome = self._apply_capture(event, audit_event_id)
        elif isinstance(event, PaymentFailedEvent):
            outcome = self._apply_failure(event)
        else:
            outcome = ReconcileOutcome.IGNORED

        logger.info(
            "webhook_reconciled",
            kind=event.kind,
            request_id=_event_request_id(event),
            outcome=outcome.value,
        )
        return outcome

    def _resolve(self, request_id: Optional[str], order_id: Optional[str] = None) -> Optional[str]:
        # Records are never deleted, so an id that resolves here stays valid
        if request_id:
            try:
                self.store.get(request_id)
                return request_id
            except NotFound:
                pass
        if order_id:
            record = self.store.find_by_order_id(order_id)
            if record is not None:
                return record.request_id
        return None

    def _apply_link_status(self, event: LinkStatusEvent) -> ReconcileOutcome:
        request_id = self._resolve(event.request_id)
        if request_id is None:
            logger.warning("reconcile_lost_update", kind=event.kind, request_id=event.request_id)
            return ReconcileOutcome.LOST_UPDATE

        with self.store.lock(request_id):
            record = self.store.get(request_id)
            current = PaymentStatus(record.status)
            patch: Dict[str, Any] = {}
            if event.status in ALLOWED_TRANSITIONS[current]:
                patch["status"] = event.status.value
            # The link's order is what later captures carry
            if event.order_id and record.order_id is None:
                patch["order_id"] = event.order_id
            if not patch:
                if current == event.status:
                    return ReconcileOutcome.DUPLICATE
                return ReconcileOutcome.ABSORBED
            self.store.update(request_id, patch)
        return ReconcileOutcome.APPLIED

    def _apply_capture(self, event: CaptureEvent, audit_event_id: Optional[int]) -> ReconcileOutcome:
        request_id = self._resolve(event.linked_request_id, event.order_id)
        if request_id is None:
            added = self.audit_log.record_unlinked(
                UnlinkedCapture(
                    payment_id=event.payment_id,
                    order_id=event.order_id,
                    method=event.method,
                    amount=event.amount,
                    email=event.email,
                    contact=event.contact,
                    audit_event_id=audit_event_id,
                )
            )
            logger.warning(
                "reconcile_unlinked_capture",
                payment_id=event.payment_id,
                order_id=event.order_id,
                linked_request_id=event.linked_request_id,
                first_seen=added,
            )
            return ReconcileOutcome.UNLINKED

        with self.store.lock(request_id):
            record = self.store.get(request_id)
            if record.status == PaymentStatus.FAILED:
                logger.warning("reconcile_capture_after_failed", request_id=request_id, payment_id=event.payment_id)
                return ReconcileOutcome.ABSORBED
            patch = capture_patch(record, event)
            if not patch:
                return ReconcileOutcome.DUPLICATE
            self.store.update(request_id, patch)
        return ReconcileOutcome.APPLIED

    def _apply_failure(self, event: PaymentFailedEvent) -> ReconcileOutcome:
        request_id = self._resolve(event.linked_request_id, event.order_id)
        if request_id is None:
            logger.warning("reconcile_lost_update", kind=event.kind, payment_id=event.payment_id)
            return ReconcileOutcome.LOST_UPDATE

        with self.store.lock(request_id):
            record = self.store.get(request_id)
            if record.status == PaymentStatus.FAILED:
                return ReconcileOutcome.DUPLICATE
            # A failed attempt on a request that already took money changes nothing
            if record.status != PaymentStatus.CREATED:
                return ReconcileOutcome.ABSORBED
            self.store.update(request_id, {"status": PaymentStatus.FAILED.value})
        logger.info("payment_failed", request_id=request_id, error_code=event.error_code)
        return ReconcileOutcome.APPLIED


def replay_audit_log(audit_log: AuditLog, store: RecordStore) -> Dict[str, int]:
    """
    Rebuild payment records from the audit log into store.

    Creation entries recreate records in their initial state; webhook entries
    are normalized and applied again without being re-audited. Records already
    present in store are kept, so replaying twice is harmless.
    """
    reconciler = Reconciler(store, audit_log)
    summary = {"created": 0, "skipped": 0}
    summary.update({outcome.value: 0 for outcome in ReconcileOutcome})

    for entry in audit_log.entries():
        if entry.source == SOURCE_CREATE:
            try:
                store.create(record_from_snapshot(entry.body))
                summary["created"] += 1
            except DuplicateKey:
                summary["skipped"] += 1
            continue
        try:
            event = normalize(entry.body)
        except ParseError:
            logger.warning("replay_unreadable_entry", audit_event_id=entry.id)
            summary["skipped"] += 1
            continue
        outcome = reconciler.apply(event, audit_event_id=entry.id)
        summary[outcome.value] += 1

    logger.info("audit_log_replayed", **summary)
    return summary
