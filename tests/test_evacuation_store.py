import logging

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from evac_status.core.errors import ManualOverrideError
from evac_status.models import Base
from evac_status.models.evacuation_status import EvacuationStatus
from evac_status.schemas.evacuation import StatusRecord
from evac_status.services.evacuation_store import EvacuationStatusStore, upsert_records


def _make_session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def _record(person_id: int, status: bool, **kwargs) -> StatusRecord:
    return StatusRecord(list_id=1, list_item_id=person_id, status=status, **kwargs)


def test_upsert_replaces_existing_rows():
    store = EvacuationStatusStore(_make_session_factory())

    store.upsert_all([_record(1, True, entrance_time=100, enter_stream_ids=[10]), _record(2, False)])
    store.upsert_all([_record(1, False, exit_time=200, exit_stream_ids=[20])])

    rows = store.find_by_list(1)
    assert [row.list_item_id for row in rows] == [1, 2]
    assert rows[0].status is False
    assert rows[0].entrance_time is None
    assert rows[0].exit_time == 200
    assert rows[0].enter_stream_ids is None
    assert rows[0].exit_stream_ids == [20]


def test_upsert_in_chunks():
    store = EvacuationStatusStore(_make_session_factory())

    written = store.upsert_all(_record(i, i % 2 == 0) for i in range(250))

    assert written == 250
    total, page = store.find_page_by_list(1, 200, 100)
    assert total == 250
    assert [row.list_item_id for row in page] == list(range(200, 250))


def test_active_queries_only_return_on_site_people():
    store = EvacuationStatusStore(_make_session_factory())
    store.upsert_all(
        [
            _record(1, True, entrance_time=100),
            _record(2, False, exit_time=100),
            _record(3, True, entrance_time=300),
            StatusRecord(list_id=2, list_item_id=1, status=True),
        ]
    )

    assert store.active_person_ids(1) == {1, 3}
    active = store.active_statuses(1)
    assert set(active) == {1, 3}
    assert active[3].entrance_time == 300
    assert store.active_person_ids(42) == set()


def test_null_flags_read_back_as_false():
    factory = _make_session_factory()
    with factory() as db, db.begin():
        db.add(EvacuationStatus(list_id=1, list_item_id=7, status=None, manually_updated=None))
    store = EvacuationStatusStore(factory)

    record = store.get(1, 7)

    assert record.status is False
    assert record.manually_updated is False
    assert store.exists(1, 7) is True
    assert store.exists(1, 8) is False


def test_manual_status_sets_flag_and_effective_time():
    store = EvacuationStatusStore(_make_session_factory())
    store.upsert_all([_record(5, False, enter_stream_ids=[10], exit_stream_ids=[20], exit_time=50)])

    record = store.set_manual_status(1, 5, True, 1000)

    assert record.manually_updated is True
    stored = store.get(1, 5)
    assert stored == record
    assert stored.entrance_time == 1000
    assert stored.exit_time is None
    assert stored.enter_stream_ids == [10]


def test_manual_status_batch_creates_missing_rows():
    store = EvacuationStatusStore(_make_session_factory())

    records = store.set_manual_statuses(1, {5: True, 6: False}, 1000)

    assert len(records) == 2
    assert store.active_person_ids(1) == {5}
    assert store.get(1, 6).exit_time == 1000


def test_manual_status_defaults_effective_time_to_now(monkeypatch):
    from evac_status.services import evacuation_store

    monkeypatch.setattr(evacuation_store, "now_ms", lambda: 4242)
    store = EvacuationStatusStore(_make_session_factory())

    record = store.set_manual_status(1, 5, False)

    assert record.exit_time == 4242


def test_reconcile_list_sees_existing_rows_and_writes_result():
    store = EvacuationStatusStore(_make_session_factory())
    store.upsert_all([_record(1, False, exit_time=10)])
    seen = {}

    def _compute(existing):
        seen.update(existing)
        return [_record(1, True, entrance_time=20, exit_time=10), _record(2, False)]

    written = store.reconcile_list(1, _compute)

    assert set(seen) == {1}
    assert len(written) == 2
    assert store.active_person_ids(1) == {1}
    assert store.exists(1, 2)


def test_insert_only_upsert_keeps_rows_written_meanwhile():
    factory = _make_session_factory()
    with factory() as db, db.begin():
        db.add(EvacuationStatus(list_id=1, list_item_id=3, status=True, manually_updated=True, entrance_time=999))

    with factory() as db, db.begin():
        upsert_records(db, [_record(3, False), _record(4, False)], replace=False)

    store = EvacuationStatusStore(factory)
    assert store.get(1, 3).manually_updated is True
    assert store.get(1, 3).status is True
    assert store.exists(1, 4)


def test_manual_status_failure_is_raised():
    # No tables: every statement fails.
    factory = sessionmaker(bind=create_engine("sqlite+pysqlite://", future=True), future=True)
    store = EvacuationStatusStore(factory)

    with pytest.raises(ManualOverrideError) as excinfo:
        store.set_manual_status(1, 5, True, 1000)

    assert isinstance(excinfo.value.__cause__, OperationalError)


def test_active_queries_return_empty_on_database_error(caplog):
    factory = sessionmaker(bind=create_engine("sqlite+pysqlite://", future=True), future=True)
    store = EvacuationStatusStore(factory)
    caplog.set_level(logging.ERROR)

    assert store.active_person_ids(1) == set()
    assert store.active_statuses(1) == {}
    assert any("Active status query failed list_id=1" in rec.message for rec in caplog.records)


def test_manual_status_batch_is_applied_in_person_order():
    store = EvacuationStatusStore(_make_session_factory())

    records = store.set_manual_statuses(1, {9: True, 2: False, 5: True}, 1000)

    assert [record.list_item_id for record in records] == [2, 5, 9]
    assert store.active_person_ids(1) == {5, 9}
