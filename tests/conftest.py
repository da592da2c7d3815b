import os

# Must be set before paylink is imported: the default engine is built at import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

from factories import WEBHOOK_SECRET, FakeAdapter
from paylink.config import settings
from paylink.db import init_db, make_engine, make_session_factory
from paylink.deps import get_adapter, get_audit_log, get_store
from paylink.main import app
from paylink.services.audit_log import AuditLog
from paylink.services.reconciler import Reconciler
from paylink.services.record_store import RecordStore


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'paylink.db'}")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return RecordStore(session_factory)


@pytest.fixture
def audit_log(session_factory):
    return AuditLog(session_factory)


@pytest.fixture
def reconciler(store, audit_log):
    return Reconciler(store, audit_log)


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def client(store, audit_log, adapter, monkeypatch):
    monkeypatch.setattr(settings, "RAZORPAY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_audit_log] = lambda: audit_log
    app.dependency_overrides[get_adapter] = lambda: adapter
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
