"""
Stock Import Preparer

Turns a queued import into a batch of chunk tasks:
1. Cancel any batch left from an earlier run and mark the import processing
2. Resolve the stored file to a local path (temporary copy for remote disks)
3. Read it in chunks of STOCK_IMPORT_CHUNK_SIZE rows and sanitize each chunk
4. Create the batch and record its id on the import before the first dispatch
5. Dispatch one chunk task per non-empty chunk, all in one batch
6. Record total_rows, then seal the batch

A file without valid rows completes immediately and never creates a batch.
Any read or dispatch error cancels the batch, fails the import and is
re-raised to the worker.
"""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from stock_ledger.config import STOCK_IMPORT_CHUNK_SIZE, STOCK_IMPORT_QUEUE
from stock_ledger.exceptions import ImportDispatchError
from stock_ledger.models.enums import StockImportStatus
from stock_ledger.models.stock_import import StockImport
from stock_ledger.services.batch_scheduler import Batch, BatchScheduler
from stock_ledger.services.import_file_resolver import StockImportFileResolver
from stock_ledger.services.row_sanitizer import StockImportRowSanitizer
from stock_ledger.services.spreadsheet_reader import SpreadsheetReader
from stock_ledger.services.stock_import_service import (
    IMPORT_COMPLETED_CALLBACK,
    IMPORT_FAILED_CALLBACK,
    cancel_previous_batch,
    complete_stock_import,
    fail_stock_import,
)
from stock_ledger.utils.clock import SystemClock
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

DISPATCH_FAILED_MESSAGE = "Unable to dispatch stock import batch."
READ_FAILED_MESSAGE = "Failed to read stock import file."


class StockImportPreparer:
    """Reads an import file and fans it out into chunk tasks."""

    def __init__(
        self,
        db: Session,
        scheduler: Optional[BatchScheduler] = None,
        resolver: Optional[StockImportFileResolver] = None,
        sanitizer: Optional[StockImportRowSanitizer] = None,
        clock=None,
        chunk_size: int = STOCK_IMPORT_CHUNK_SIZE,
        queue: str = STOCK_IMPORT_QUEUE,
        reader_factory: Callable[[str], SpreadsheetReader] = SpreadsheetReader,
        chunk_task=None,
    ):
        if chunk_size < 1:
            raise ValueError("chunk_size must be a positive number of rows")

        self.db = db
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or BatchScheduler(clock=self.clock)
        self.resolver = resolver or StockImportFileResolver()
        self.sanitizer = sanitizer or StockImportRowSanitizer()
        self.chunk_size = chunk_size
        self.queue = queue
        self.reader_factory = reader_factory
        self.chunk_task = chunk_task

    def prepare(self, import_id: str) -> Optional[StockImport]:
        """
        Prepare an import for processing.

        Args:
            import_id: StockImport id

        Returns:
            StockImport: The prepared import, or None when it is missing or terminal

        Raises:
            StorageError, ValueError, ImportDispatchError: After the import has been marked failed
        """
        stock_import = self.db.get(StockImport, import_id)

        if stock_import is None or stock_import.status.is_terminal:
            logger.info(f"Stock import {import_id} missing or already finished, skipping")
            return None

        cancel_previous_batch(stock_import, self.scheduler)

        stock_import.status = StockImportStatus.PROCESSING
        stock_import.started_at = self.clock.now()
        stock_import.processed_rows = 0
        stock_import.failure_reason = None
        stock_import.batch_id = None
        self.db.commit()

        batch: Optional[Batch] = None
        total_rows = 0

        try:
            with self.resolver.resolve(stock_import.disk, stock_import.stored_path) as resolved:
                with self.reader_factory(resolved.path) as reader:
                    for chunk in reader.chunks(self.chunk_size):
                        rows = self.sanitizer.sanitize(chunk)
                        if not rows:
                            continue

                        if batch is None:
                            batch = self._create_batch(stock_import)
                            # Callbacks only act on the batch recorded on the import
                            stock_import.batch_id = batch.id
                            self.db.commit()
                        self._queue_chunk(stock_import, batch, rows)
                        total_rows += len(rows)
        except Exception as e:
            if batch is not None:
                batch.cancel()

            context_message = DISPATCH_FAILED_MESSAGE if isinstance(e, ImportDispatchError) else READ_FAILED_MESSAGE
            fail_stock_import(self.db, import_id, e, clock=self.clock, context_message=context_message)
            raise

        if batch is None:
            logger.info(f"Stock import {import_id} has no valid rows, completing immediately")
            return complete_stock_import(self.db, import_id, clock=self.clock, total_rows=0)

        stock_import.total_rows = total_rows
        self.db.commit()

        batch.seal()
        self.db.refresh(stock_import)

        logger.info(f"Stock import {import_id} prepared: {total_rows} row(s) in batch {batch.id}")
        return stock_import

    def _create_batch(self, stock_import: StockImport) -> Batch:
        try:
            return self.scheduler.create_batch(
                f"stock-import:{stock_import.id}",
                on_complete=IMPORT_COMPLETED_CALLBACK,
                on_failure=IMPORT_FAILED_CALLBACK,
                context={"import_id": stock_import.id},
                queue=self.queue,
            )
        except Exception as e:
            raise ImportDispatchError(str(e)) from e

    def _queue_chunk(self, stock_import: StockImport, batch: Batch, rows) -> None:
        try:
            batch.add([
                self._chunk_task().s(
                    import_id=stock_import.id,
                    company_id=stock_import.company_id,
                    rows=rows,
                )
            ])
        except Exception as e:
            raise ImportDispatchError(str(e)) from e

    def _chunk_task(self):
        if self.chunk_task is None:
            # Imported lazily: the task module imports this one
            from stock_ledger.tasks.stock_imports import process_stock_import_chunk

            self.chunk_task = process_stock_import_chunk
        return self.chunk_task
