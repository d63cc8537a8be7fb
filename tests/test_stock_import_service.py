"""Tests for the stock import lifecycle actions."""

import os

import pytest
from sqlalchemy.exc import SQLAlchemyError

from stock_ledger.exceptions import ImportDispatchError, StorageError
from stock_ledger.models.enums import StockImportStatus
from stock_ledger.models.stock_import import StockImport
from stock_ledger.services import stock_import_service
from stock_ledger.services.batch_scheduler import BatchScheduler, get_batch_callback
from stock_ledger.services.stock_import_service import (
    IMPORT_COMPLETED_CALLBACK,
    IMPORT_FAILED_CALLBACK,
    complete_stock_import,
    create_from_upload,
    fail_stock_import,
    queue_stock_import,
)
from stock_ledger.tasks.stock_imports import prepare_stock_import


@pytest.fixture
def dispatched(monkeypatch):
    calls = []

    def fake_apply_async(args=None, kwargs=None, **options):
        calls.append({"args": args, "kwargs": kwargs, **options})

    monkeypatch.setattr(prepare_stock_import, "apply_async", fake_apply_async)
    return calls


def reload(db, stock_import):
    db.expire_all()
    return db.get(StockImport, stock_import.id)


class TestCreateFromUpload:
    def test_stores_file_and_creates_pending_import(self, db, company, storage):
        stock_import = create_from_upload(db, company.id, b"date,price\n", "Prices.CSV", disk="local")

        assert stock_import.status == StockImportStatus.PENDING
        assert stock_import.original_filename == "Prices.CSV"
        assert stock_import.disk == "local"
        assert stock_import.stored_path == f"imports/{stock_import.id}.csv"
        assert len(stock_import.id) == 32

        with storage.open_stream(stock_import.stored_path) as stream:
            assert stream.read() == b"date,price\n"

    def test_defaults_extension_to_xlsx(self, db, company):
        stock_import = create_from_upload(db, company.id, b"PK", None, disk="local")

        assert stock_import.stored_path.endswith(".xlsx")
        assert stock_import.original_filename == os.path.basename(stock_import.stored_path)

    def test_removes_stored_file_when_record_cannot_be_created(self, db, company, storage, monkeypatch):
        stored = []
        original_store = storage.store

        def store(content, path):
            stored.append(path)
            return original_store(content, path)

        monkeypatch.setattr(storage, "store", store)

        def failing_commit():
            raise SQLAlchemyError("database is locked")

        monkeypatch.setattr(db, "commit", failing_commit)

        with pytest.raises(StorageError):
            create_from_upload(db, company.id, b"x", "prices.csv", disk="local", storage_factory=lambda disk: storage)

        assert len(stored) == 1
        assert storage.local_path(stored[0]) is not None
        assert not os.path.exists(storage.local_path(stored[0]))

    def test_storage_failure_is_reported(self, db, company, storage, monkeypatch):
        def failing_store(content, path):
            raise StorageError("disk full")

        monkeypatch.setattr(storage, "store", failing_store)

        with pytest.raises(StorageError, match="Unable to store the uploaded file."):
            create_from_upload(db, company.id, b"x", "prices.csv", storage_factory=lambda disk: storage)

        assert db.query(StockImport).count() == 0


class TestQueueStockImport:
    def test_resets_and_dispatches_preparation(self, db, company, make_import, clock, dispatched):
        stock_import = make_import(
            company,
            status=StockImportStatus.PROCESSING,
            processed_rows=40,
            failure_reason="stale",
            batch_id="old-batch",
        )

        assert queue_stock_import(db, stock_import, clock=clock, queue="imports") is True

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.QUEUED
        assert stored.queued_at == clock.now()
        assert stored.processed_rows == 0
        assert stored.failure_reason is None
        assert stored.batch_id is None
        assert dispatched == [{"args": [stock_import.id], "kwargs": None, "queue": "imports"}]

    @pytest.mark.parametrize("status", [StockImportStatus.COMPLETED, StockImportStatus.FAILED])
    def test_terminal_imports_are_not_requeued(self, db, company, make_import, clock, dispatched, status):
        stock_import = make_import(company, status=status)

        assert queue_stock_import(db, stock_import, clock=clock) is False

        assert reload(db, stock_import).status == status
        assert dispatched == []

    def test_cancels_the_previous_batch(self, db, company, make_import, clock, dispatched):
        previous = BatchScheduler(clock=clock).create_batch("stock-import:previous-run")
        stock_import = make_import(company, status=StockImportStatus.PROCESSING, batch_id=previous.id)

        queue_stock_import(db, stock_import, clock=clock)

        assert previous.cancelled()
        assert reload(db, stock_import).batch_id is None

    def test_dispatch_failure_fails_the_import(self, db, company, make_import, clock, monkeypatch):
        def unavailable_broker(args=None, kwargs=None, **options):
            raise ConnectionError("broker unavailable")

        monkeypatch.setattr(prepare_stock_import, "apply_async", unavailable_broker)
        stock_import = make_import(company, status=StockImportStatus.PENDING)

        with pytest.raises(ImportDispatchError, match="broker unavailable"):
            queue_stock_import(db, stock_import, clock=clock)

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.FAILED
        assert stored.failed_at == clock.now()
        assert stored.failure_reason == "broker unavailable"


class TestTerminalTransitions:
    def test_complete_sets_timestamp(self, db, company, make_import, clock):
        stock_import = make_import(company, status=StockImportStatus.PROCESSING, total_rows=10)

        complete_stock_import(db, stock_import.id, clock=clock)

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.COMPLETED
        assert stored.completed_at == clock.now()
        assert stored.total_rows == 10

    def test_complete_with_total_rows_sets_counters(self, db, company, make_import, clock):
        stock_import = make_import(company, status=StockImportStatus.PROCESSING)

        complete_stock_import(db, stock_import.id, clock=clock, total_rows=0)

        stored = reload(db, stock_import)
        assert (stored.total_rows, stored.processed_rows) == (0, 0)

    def test_fail_records_reason(self, db, company, make_import, clock):
        stock_import = make_import(company, status=StockImportStatus.PROCESSING)

        fail_stock_import(db, stock_import.id, RuntimeError("bad chunk"), clock=clock)

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.FAILED
        assert stored.failed_at == clock.now()
        assert stored.failure_reason == "bad chunk"

    def test_terminal_imports_are_left_alone(self, db, company, make_import, clock):
        failed = make_import(company, status=StockImportStatus.FAILED, failure_reason="first")
        completed = make_import(company, status=StockImportStatus.COMPLETED)

        assert complete_stock_import(db, failed.id, clock=clock) is None
        assert fail_stock_import(db, completed.id, RuntimeError("late"), clock=clock) is None

        assert reload(db, failed).status == StockImportStatus.FAILED
        assert reload(db, failed).failure_reason == "first"
        assert reload(db, completed).status == StockImportStatus.COMPLETED

    def test_missing_imports_are_ignored(self, db, clock):
        assert complete_stock_import(db, "missing", clock=clock) is None
        assert fail_stock_import(db, "missing", RuntimeError("x"), clock=clock) is None

    def test_batch_callbacks_are_registered(self, db, company, make_import, clock):
        stock_import = make_import(company, status=StockImportStatus.PROCESSING, batch_id="batch-1")

        assert get_batch_callback(IMPORT_COMPLETED_CALLBACK) is stock_import_service.handle_import_batch_completed
        get_batch_callback(IMPORT_FAILED_CALLBACK)(
            db, {"import_id": stock_import.id, "batch_id": "batch-1"}, clock, ValueError("boom")
        )

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.FAILED
        assert stored.failure_reason == "boom"

    def test_callbacks_of_a_replaced_batch_are_ignored(self, db, company, make_import, clock):
        stock_import = make_import(company, status=StockImportStatus.PROCESSING, batch_id="current-batch")
        stale = {"import_id": stock_import.id, "batch_id": "previous-batch"}

        get_batch_callback(IMPORT_COMPLETED_CALLBACK)(db, stale, clock)
        get_batch_callback(IMPORT_FAILED_CALLBACK)(db, stale, clock, ValueError("late failure"))

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.PROCESSING
        assert stored.failure_reason is None
