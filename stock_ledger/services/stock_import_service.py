"""
Stock Import Service

Lifecycle actions of a StockImport:
1. create_from_upload - store the uploaded file and create a pending import
2. queue_stock_import - (re)queue a non-terminal import for preparation
3. complete_stock_import / fail_stock_import - terminal transitions

The terminal transitions are also registered as batch callbacks, so the
scheduler can drive them once all chunk tasks have reported.
"""

import os
from typing import Optional

from sqlalchemy.orm import Session

from stock_ledger.config import STOCK_IMPORT_DISK, STOCK_IMPORT_QUEUE
from stock_ledger.exceptions import ImportDispatchError, StorageError
from stock_ledger.models.enums import StockImportStatus
from stock_ledger.models.stock_import import StockImport, generate_import_id
from stock_ledger.services.batch_scheduler import BatchScheduler, batch_callback
from stock_ledger.services.file_storage import get_storage
from stock_ledger.utils.clock import SystemClock
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

IMPORT_COMPLETED_CALLBACK = "stock_import.completed"
IMPORT_FAILED_CALLBACK = "stock_import.failed"

DEFAULT_EXTENSION = "xlsx"
DISPATCH_FAILED_MESSAGE = "Unable to dispatch stock import preparation."


def create_from_upload(
    db: Session,
    company_id: int,
    content: bytes,
    filename: Optional[str],
    disk: str = STOCK_IMPORT_DISK,
    storage_factory=get_storage,
) -> StockImport:
    """
    Store an uploaded spreadsheet and create its pending import record.

    The stored file is removed again if the record cannot be created.

    Args:
        db: Database session
        company_id: Company the import belongs to
        content: Raw file bytes
        filename: Client-supplied filename (used for the extension and display)
        disk: Storage disk name

    Returns:
        StockImport: Newly created import in pending status

    Raises:
        StorageError: If the file or the record cannot be saved
    """
    import_id = generate_import_id()
    extension = os.path.splitext(filename or "")[1].lstrip(".").lower() or DEFAULT_EXTENSION
    stored_filename = f"{import_id}.{extension}"

    storage = storage_factory(disk)

    try:
        stored_path = storage.store(content, f"imports/{stored_filename}")
    except StorageError as e:
        logger.error(f"Unable to store uploaded stock import file for company {company_id} on {disk}: {e}")
        raise StorageError("Unable to store the uploaded file.") from e

    stock_import = StockImport(
        id=import_id,
        company_id=company_id,
        original_filename=filename or stored_filename,
        stored_path=stored_path,
        disk=disk,
        status=StockImportStatus.PENDING,
    )

    try:
        db.add(stock_import)
        db.commit()
    except Exception as e:
        db.rollback()
        storage.delete(stored_path)
        logger.error(
            f"Unable to create stock import record for company {company_id} ({stored_path}): {e}",
            exc_info=True,
        )
        raise StorageError("Unable to create the stock import record.") from e

    logger.info(f"Created stock import {import_id} for company {company_id}")
    return stock_import


def queue_stock_import(db: Session, stock_import: StockImport, clock=None, queue: str = STOCK_IMPORT_QUEUE,
                       scheduler: Optional[BatchScheduler] = None) -> bool:
    """
    Reset a non-terminal import to queued and dispatch its preparation task.

    A batch left over from an earlier run is cancelled first, so its chunk
    tasks stop and its callbacks no longer apply to this import.

    Returns:
        bool: False when the import is already terminal (nothing dispatched)

    Raises:
        ImportDispatchError: If the task cannot be sent; the import is marked failed
    """
    if stock_import.status.is_terminal:
        return False

    clock = clock or SystemClock()
    cancel_previous_batch(stock_import, scheduler or BatchScheduler(clock=clock))

    stock_import.status = StockImportStatus.QUEUED
    stock_import.queued_at = clock.now()
    stock_import.processed_rows = 0
    stock_import.failure_reason = None
    stock_import.batch_id = None
    db.commit()

    # Imported here: the task module imports this one
    from stock_ledger.tasks.stock_imports import prepare_stock_import

    try:
        prepare_stock_import.apply_async(args=[stock_import.id], queue=queue)
    except Exception as e:
        fail_stock_import(db, stock_import.id, e, clock=clock, context_message=DISPATCH_FAILED_MESSAGE)
        raise ImportDispatchError(str(e)) from e

    logger.info(f"Stock import {stock_import.id} dispatched for processing (queue: {queue})")
    return True


def cancel_previous_batch(stock_import: StockImport, scheduler: BatchScheduler) -> None:
    """Cancel the batch recorded on the import, if any."""
    batch = scheduler.find(stock_import.batch_id)
    if batch is not None:
        logger.info(f"Cancelling previous batch {batch.id} of stock import {stock_import.id}")
        batch.cancel()


def complete_stock_import(db: Session, import_id: str, clock=None, total_rows: Optional[int] = None) -> Optional[StockImport]:
    """Mark an import completed unless it is missing or already terminal."""
    stock_import = db.get(StockImport, import_id)
    if stock_import is None or stock_import.status.is_terminal:
        return None

    clock = clock or SystemClock()

    stock_import.status = StockImportStatus.COMPLETED
    stock_import.completed_at = clock.now()
    if total_rows is not None:
        stock_import.total_rows = total_rows
        stock_import.processed_rows = total_rows
    db.commit()

    logger.info(f"Stock import {import_id} completed")
    return stock_import


def fail_stock_import(db: Session, import_id: str, exception: BaseException, clock=None,
                      context_message: Optional[str] = None) -> Optional[StockImport]:
    """Mark an import failed with the exception message as the failure reason."""
    stock_import = db.get(StockImport, import_id)
    if stock_import is None or stock_import.status.is_terminal:
        return None

    clock = clock or SystemClock()

    stock_import.status = StockImportStatus.FAILED
    stock_import.failed_at = clock.now()
    stock_import.failure_reason = str(exception)
    db.commit()

    logger.error(f"{context_message or 'Stock import batch failed.'} (import: {import_id}): {exception}")
    return stock_import


def _is_current_batch(db: Session, context: dict) -> bool:
    """False when the import has since been re-run under another batch."""
    stock_import = db.get(StockImport, context["import_id"])
    if stock_import is None or stock_import.batch_id != context.get("batch_id"):
        logger.info(f"Ignoring batch {context.get('batch_id')}: not the current batch of stock import {context['import_id']}")
        return False
    return True


@batch_callback(IMPORT_COMPLETED_CALLBACK)
def handle_import_batch_completed(db: Session, context: dict, clock, exception=None):
    if _is_current_batch(db, context):
        complete_stock_import(db, context["import_id"], clock=clock)


@batch_callback(IMPORT_FAILED_CALLBACK)
def handle_import_batch_failed(db: Session, context: dict, clock, exception=None):
    if _is_current_batch(db, context):
        fail_stock_import(db, context["import_id"], exception, clock=clock)
