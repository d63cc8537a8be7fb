"""Tests for stock import preparation (file -> batch of chunk tasks)."""

import io
import math
import os
from contextlib import contextmanager
from datetime import date, timedelta

import pytest

from stock_ledger.exceptions import ImportDispatchError, StorageError
from stock_ledger.models.enums import StockImportStatus
from stock_ledger.models.stock_import import StockImport
from stock_ledger.services.file_storage import FileStorage
from stock_ledger.services.import_file_resolver import StockImportFileResolver
from stock_ledger.services.import_preparer import StockImportPreparer
from stock_ledger.services.spreadsheet_reader import SpreadsheetReader


class RecordingBatch:
    def __init__(self, name, options, fail_on_add=False):
        self.id = f"batch-{name}"
        self.name = name
        self.options = options
        self.signatures = []
        self.sealed = False
        self.was_cancelled = False
        self.fail_on_add = fail_on_add

    def add(self, signatures):
        if self.fail_on_add:
            raise ConnectionError("broker unavailable")
        self.signatures.extend(signatures)
        return len(signatures)

    def seal(self):
        self.sealed = True

    def cancel(self):
        self.was_cancelled = True

    def cancelled(self):
        return self.was_cancelled


class RecordingScheduler:
    """Captures batches instead of dispatching tasks."""

    def __init__(self, fail_on_add=False):
        self.batches = []
        self.fail_on_add = fail_on_add

    def create_batch(self, name, on_complete=None, on_failure=None, context=None, queue=None):
        batch = RecordingBatch(
            name,
            {"on_complete": on_complete, "on_failure": on_failure, "context": context, "queue": queue},
            fail_on_add=self.fail_on_add,
        )
        self.batches.append(batch)
        return batch

    def find(self, batch_id):
        return next((batch for batch in self.batches if batch.id == batch_id), None)


class RemoteStorage(FileStorage):
    def __init__(self, files):
        self.files = files

    def store(self, content, path):
        self.files[path] = content
        return path

    @contextmanager
    def open_stream(self, path):
        yield io.BytesIO(self.files[path])

    def delete(self, path):
        self.files.pop(path, None)


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def preparer(db, scheduler, clock):
    return StockImportPreparer(db, scheduler=scheduler, clock=clock, chunk_size=500, queue="imports")


def reload(db, stock_import):
    db.expire_all()
    return db.get(StockImport, stock_import.id)


def dated_rows(count):
    start = date(2020, 1, 1)
    return [((start + timedelta(days=offset)).isoformat(), f"{100 + offset}.25") for offset in range(count)]


class TestStockImportPreparer:
    def test_missing_import_is_ignored(self, preparer, scheduler):
        assert preparer.prepare("does-not-exist") is None
        assert scheduler.batches == []

    @pytest.mark.parametrize("status", [StockImportStatus.COMPLETED, StockImportStatus.FAILED])
    def test_terminal_import_is_ignored(self, db, preparer, scheduler, company, make_import, make_csv, status):
        stock_import = make_import(company, make_csv(dated_rows(3)), status=status)

        assert preparer.prepare(stock_import.id) is None

        assert reload(db, stock_import).status == status
        assert scheduler.batches == []

    def test_dispatches_one_task_per_chunk(self, db, preparer, scheduler, company, make_import, make_csv, clock):
        stock_import = make_import(company, make_csv(dated_rows(1201)))

        preparer.prepare(stock_import.id)

        assert len(scheduler.batches) == 1
        batch = scheduler.batches[0]
        assert batch.name == f"stock-import:{stock_import.id}"
        assert batch.options["context"] == {"import_id": stock_import.id}
        assert batch.options["queue"] == "imports"
        assert len(batch.signatures) == math.ceil(1201 / 500)
        assert [len(signature.kwargs["rows"]) for signature in batch.signatures] == [500, 500, 201]
        assert batch.sealed

        first = batch.signatures[0].kwargs
        assert first["import_id"] == stock_import.id
        assert first["company_id"] == company.id
        assert first["rows"][0] == {"traded_on": "2020-01-01", "price": "100.250000"}

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.PROCESSING
        assert stored.started_at == clock.now()
        assert stored.total_rows == 1201
        assert stored.processed_rows == 0
        assert stored.batch_id == batch.id

    def test_previous_batch_is_cancelled_before_preparing(self, db, preparer, scheduler, company, make_import, make_csv):
        previous = scheduler.create_batch("stock-import:previous-run")
        stock_import = make_import(company, make_csv(dated_rows(3)), batch_id=previous.id)

        preparer.prepare(stock_import.id)

        assert previous.was_cancelled
        current = scheduler.batches[-1]
        assert current is not previous
        assert not current.was_cancelled
        assert reload(db, stock_import).batch_id == current.id

    def test_batch_id_is_recorded_before_chunks_are_dispatched(self, db, company, make_import, make_csv, clock):
        seen = []

        class ObservedBatch(RecordingBatch):
            def add(self, signatures):
                seen.append(reload(db, stock_import).batch_id)
                return super().add(signatures)

        class ObservingScheduler(RecordingScheduler):
            def create_batch(self, name, **options):
                batch = ObservedBatch(name, options)
                self.batches.append(batch)
                return batch

        scheduler = ObservingScheduler()
        preparer = StockImportPreparer(db, scheduler=scheduler, clock=clock, chunk_size=2)
        stock_import = make_import(company, make_csv(dated_rows(3)))

        preparer.prepare(stock_import.id)

        assert seen == [scheduler.batches[0].id, scheduler.batches[0].id]

    def test_invalid_rows_are_dropped(self, db, preparer, scheduler, company, make_import):
        content = b" Date ,Stock Price \n2024-05-09,125\nTotal,250\n,\n2024-05-10,not-a-price\n2024-05-10,130\n"
        stock_import = make_import(company, content)

        preparer.prepare(stock_import.id)

        rows = scheduler.batches[0].signatures[0].kwargs["rows"]
        assert rows == [
            {"traded_on": "2024-05-09", "price": "125.000000"},
            {"traded_on": "2024-05-10", "price": "130.000000"},
        ]
        assert reload(db, stock_import).total_rows == 2

    def test_chunks_without_valid_rows_are_skipped(self, db, company, make_import, clock):
        scheduler = RecordingScheduler()
        preparer = StockImportPreparer(db, scheduler=scheduler, clock=clock, chunk_size=2)
        content = b"date,price\nbad,1\nbad,2\n2024-05-10,3\n"
        stock_import = make_import(company, content)

        preparer.prepare(stock_import.id)

        assert len(scheduler.batches[0].signatures) == 1
        assert reload(db, stock_import).total_rows == 1

    def test_file_without_valid_rows_completes_without_batch(self, db, preparer, scheduler, company, make_import, clock):
        stock_import = make_import(company, b"date,stock_price\nnope,1\n")

        preparer.prepare(stock_import.id)

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.COMPLETED
        assert stored.completed_at == clock.now()
        assert stored.total_rows == 0
        assert stored.processed_rows == 0
        assert stored.batch_id is None
        assert scheduler.batches == []

    def test_empty_file_completes_without_batch(self, db, preparer, scheduler, company, make_import):
        stock_import = make_import(company, b"")

        preparer.prepare(stock_import.id)

        assert reload(db, stock_import).status == StockImportStatus.COMPLETED
        assert scheduler.batches == []

    def test_missing_file_fails_the_import(self, db, preparer, company, make_import, storage):
        stock_import = make_import(company, b"date,price\n")
        storage.delete(stock_import.stored_path)

        with pytest.raises(StorageError):
            preparer.prepare(stock_import.id)

        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.FAILED
        assert stored.failed_at is not None
        assert "not found" in stored.failure_reason

    def test_unsupported_file_fails_the_import(self, db, preparer, company, make_import):
        stock_import = make_import(company, b"%PDF", filename="prices.pdf")

        with pytest.raises(ValueError):
            preparer.prepare(stock_import.id)

        assert reload(db, stock_import).status == StockImportStatus.FAILED

    def test_dispatch_failure_cancels_batch_and_fails_import(self, db, company, make_import, make_csv, clock):
        scheduler = RecordingScheduler(fail_on_add=True)
        preparer = StockImportPreparer(db, scheduler=scheduler, clock=clock)
        stock_import = make_import(company, make_csv(dated_rows(3)))

        with pytest.raises(ImportDispatchError):
            preparer.prepare(stock_import.id)

        assert scheduler.batches[0].was_cancelled
        stored = reload(db, stock_import)
        assert stored.status == StockImportStatus.FAILED
        assert stored.failure_reason == "broker unavailable"

    def test_remote_files_are_read_from_a_released_temporary_copy(self, db, company, make_import, make_csv, clock):
        content = make_csv(dated_rows(3))
        stock_import = make_import(company, content)
        remote = RemoteStorage({stock_import.stored_path: content})
        opened = []

        def reader_factory(path):
            opened.append(path)
            return SpreadsheetReader(path)

        preparer = StockImportPreparer(
            db,
            scheduler=RecordingScheduler(),
            resolver=StockImportFileResolver(lambda disk: remote),
            clock=clock,
            reader_factory=reader_factory,
        )

        preparer.prepare(stock_import.id)

        assert reload(db, stock_import).total_rows == 3
        assert opened and not os.path.exists(opened[0])

    def test_temporary_copy_released_when_reading_fails(self, db, company, make_import, clock):
        stock_import = make_import(company, b"date,price\n")
        remote = RemoteStorage({stock_import.stored_path: b"date,price\n2024-05-10,1\n"})
        opened = []

        def failing_reader(path):
            opened.append(path)
            raise ValueError("corrupt spreadsheet")

        preparer = StockImportPreparer(
            db,
            scheduler=RecordingScheduler(),
            resolver=StockImportFileResolver(lambda disk: remote),
            clock=clock,
            reader_factory=failing_reader,
        )

        with pytest.raises(ValueError):
            preparer.prepare(stock_import.id)

        assert not os.path.exists(opened[0])
        assert reload(db, stock_import).failure_reason == "corrupt spreadsheet"

    def test_rejects_invalid_chunk_size(self, db):
        with pytest.raises(ValueError):
            StockImportPreparer(db, chunk_size=0)
