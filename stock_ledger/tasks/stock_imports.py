"""
Stock Import Background Tasks

Celery tasks of the import pipeline:
1. prepare_stock_import: reads the uploaded file and fans it out into a batch
2. process_stock_import_chunk: upserts one chunk of rows and reports to its batch

Both tasks are safe to redeliver: preparation skips terminal imports and
chunks whose job already reported are skipped; re-applied upserts are idempotent.
"""

from sqlalchemy.exc import OperationalError

from stock_ledger.celery_app import celery_app
from stock_ledger.database import SessionLocal
from stock_ledger.services.batch_scheduler import BatchScheduler
from stock_ledger.services.chunk_processor import StockImportChunkProcessor
from stock_ledger.services.import_preparer import StockImportPreparer
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

RETRY_COUNTDOWN = 30  # seconds


@celery_app.task(bind=True)
def prepare_stock_import(self, import_id):
    """
    Prepare a queued stock import.

    Not retried: a failed preparation leaves the import failed and the
    user re-queues it.
    """
    db = SessionLocal()

    try:
        logger.info(f"Preparing stock import {import_id}")
        stock_import = StockImportPreparer(db).prepare(import_id)

        if stock_import is None:
            return {"status": "skipped", "import_id": import_id}

        return {
            "status": "success",
            "import_id": import_id,
            "total_rows": stock_import.total_rows,
            "batch_id": stock_import.batch_id,
        }

    except Exception as e:
        logger.error(f"Error preparing stock import {import_id}: {e}", exc_info=True)
        db.rollback()
        raise

    finally:
        db.close()


@celery_app.task(bind=True, max_retries=3)
def process_stock_import_chunk(self, import_id, company_id, rows, batch_id=None, job_id=None):
    """
    Apply one chunk of sanitized rows.

    Transient database errors are retried; any other error (or the last
    retry) is recorded as a batch failure and re-raised.
    """
    batch = BatchScheduler().find(batch_id)
    if batch is not None and batch.job_reported(job_id):
        logger.info(f"Chunk job {job_id} of stock import {import_id} already reported, skipping")
        return {"status": "skipped", "import_id": import_id}

    db = SessionLocal()

    try:
        applied = StockImportChunkProcessor(db).process(import_id, company_id, rows, batch=batch)

    except Exception as e:
        db.rollback()

        if isinstance(e, OperationalError) and self.request.retries < self.max_retries:
            logger.warning(f"Database error on chunk of stock import {import_id}, retrying: {e}")
            raise self.retry(exc=e, countdown=RETRY_COUNTDOWN)

        logger.error(f"Error processing chunk of stock import {import_id}: {e}", exc_info=True)
        if batch is not None:
            batch.record_failure(job_id, e)
        raise

    finally:
        db.close()

    if batch is not None:
        batch.record_success(job_id)

    return {"status": "success", "import_id": import_id, "rows_applied": applied}
