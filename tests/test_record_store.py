import gc
import threading

import pytest

from factories import make_record
from paylink.errors import DuplicateKey, NotFound, StoreUnavailable
from paylink.services.record_store import RecordStore


def test_create_and_get(store):
    store.create(make_record("plink_A1", amount=50000, email="a@example.com"))
    record = store.get("plink_A1")
    assert record.status == "created"
    assert record.amount == 50000
    assert record.email == "a@example.com"
    assert record.updated_at is None


def test_create_duplicate(store):
    store.create(make_record("plink_A1"))
    with pytest.raises(DuplicateKey):
        store.create(make_record("plink_A1", amount=1))
    assert store.get("plink_A1").amount == 50000


def test_get_missing(store):
    with pytest.raises(NotFound):
        store.get("plink_nope")


def test_update_merges_and_stamps(store):
    store.create(make_record("plink_A1", contact="111"))
    store.update("plink_A1", {"status": "paid", "payment_id": "pay_1"})
    record = store.get("plink_A1")
    assert record.status == "paid"
    assert record.payment_id == "pay_1"
    assert record.contact == "111"
    assert record.updated_at is not None


def test_update_missing(store):
    with pytest.raises(NotFound):
        store.update("plink_nope", {"status": "paid"})


def test_update_rejects_immutable_and_unknown_fields(store):
    store.create(make_record("plink_A1"))
    with pytest.raises(ValueError):
        store.update("plink_A1", {"amount": 1})
    with pytest.raises(ValueError):
        store.update("plink_A1", {"request_id": "plink_B"})
    with pytest.raises(ValueError):
        store.update("plink_A1", {"colour": "red"})
    assert store.get("plink_A1").updated_at is None


def test_list_is_a_snapshot(store):
    store.create(make_record("plink_A1"))
    store.create(make_record("plink_B2"))
    records = store.list()
    assert {r.request_id for r in records} == {"plink_A1", "plink_B2"}
    store.update("plink_A1", {"status": "paid"})
    assert next(r for r in records if r.request_id == "plink_A1").status == "created"


def test_read_modify_write_is_serialized_per_key(store):
    store.create(make_record("plink_A1", description=""))
    errors = []

    def append_marks():
        try:
            for _ in range(5):
                with store.lock("plink_A1"):
                    current = store.get("plink_A1").description
                    store.update("plink_A1", {"description": current + "x"})
        except Exception as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=append_marks) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert store.get("plink_A1").description == "x" * 40


def test_locks_are_per_key(store):
    store.create(make_record("plink_A1"))
    store.create(make_record("plink_B2"))
    done = threading.Event()

    def update_other():
        store.update("plink_B2", {"status": "paid"})
        done.set()

    with store.lock("plink_A1"):
        t = threading.Thread(target=update_other)
        t.start()
        assert done.wait(timeout=5)
    t.join()
    assert store.get("plink_B2").status == "paid"


def test_io_failure_surfaces_as_store_unavailable(session_factory):
    store = RecordStore(session_factory)
    # Drop the table underneath the store
    with session_factory.kw["bind"].begin() as conn:
        conn.exec_driver_sql("DROP TABLE payment_records")
    with pytest.raises(StoreUnavailable):
        store.get("plink_A1")
    with pytest.raises(StoreUnavailable):
        store.create(make_record("plink_A1"))


def test_find_by_order_id(store):
    store.create(make_record("plink_A1", order_id="order_L1"))
    store.create(make_record("plink_B2"))
    assert store.find_by_order_id("order_L1").request_id == "plink_A1"
    assert store.find_by_order_id("order_NONE") is None


def test_idle_locks_are_released(store):
    store.create(make_record("plink_A1"))
    with store.lock("plink_A1"):
        with store.lock("plink_A1"):
            assert len(store._locks) == 1
    store.update("plink_A1", {"status": "paid"})
    gc.collect()
    assert len(store._locks) == 0
