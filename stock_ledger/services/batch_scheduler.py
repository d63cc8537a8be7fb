"""
Batch Scheduler

Groups Celery tasks into a batch with aggregate outcome callbacks:
1. on_complete - fires once, after the batch is sealed and every job succeeded
2. on_failure  - fires once, on the first job failure

State lives in the import_batches table so that any worker can report on any
batch. Counters only change through SQL increments, and each callback is
claimed with a conditional UPDATE (rowcount == 1 wins), so concurrent workers
and redelivered tasks cannot fire a callback twice.

Callbacks are plain functions registered by name:

    @batch_callback("stock_import.completed")
    def handle_completed(db, context, clock, exception=None):
        ...

Tasks added to a batch receive batch_id and job_id keyword arguments and must
report back with record_success(job_id) / record_failure(job_id, exc). Each
job is counted once, however often its task is delivered. Callbacks receive
the batch context plus the batch_id.
"""

from typing import Callable, Dict, Iterable, Optional

from celery import Signature
from sqlalchemy import and_, update

from stock_ledger.database import SessionLocal
from stock_ledger.models.import_batch import ImportBatch, ImportBatchJob, generate_job_id
from stock_ledger.utils.clock import SystemClock
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

_CALLBACKS: Dict[str, Callable] = {}


def batch_callback(name: str):
    """Register a function as a named batch callback."""

    def decorator(func: Callable) -> Callable:
        _CALLBACKS[name] = func
        return func

    return decorator


def get_batch_callback(name: str) -> Callable:
    try:
        return _CALLBACKS[name]
    except KeyError:
        raise LookupError(f"Unknown batch callback: {name}") from None


class Batch:
    """Handle on one import_batches row."""

    def __init__(self, batch_id: str, name: str, options: dict, session_factory=SessionLocal, clock=None):
        self.id = batch_id
        self.name = name
        self.options = options or {}
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    @property
    def queue(self) -> Optional[str]:
        return self.options.get("queue")

    @property
    def context(self) -> dict:
        return self.options.get("context") or {}

    def fresh(self) -> Optional[ImportBatch]:
        """Current database state of the batch."""
        db = self.session_factory()
        try:
            return db.get(ImportBatch, self.id)
        finally:
            db.close()

    def add(self, signatures: Iterable[Signature]) -> int:
        """
        Add tasks to the batch and dispatch them.

        Job rows and counters are written before dispatch so a task finishing
        immediately cannot observe an empty batch.

        Args:
            signatures: Celery task signatures; each receives batch_id=<id> and job_id=<id>

        Returns:
            int: Number of tasks dispatched
        """
        signatures = list(signatures)
        if not signatures:
            return 0

        job_ids = [generate_job_id() for _ in signatures]

        db = self.session_factory()
        try:
            db.add_all([
                ImportBatchJob(id=job_id, batch_id=self.id, created_at=self.clock.now())
                for job_id in job_ids
            ])
            db.execute(
                update(ImportBatch)
                .where(ImportBatch.id == self.id)
                .values(
                    total_jobs=ImportBatch.total_jobs + len(signatures),
                    pending_jobs=ImportBatch.pending_jobs + len(signatures),
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        for signature, job_id in zip(signatures, job_ids):
            signature.apply_async(kwargs={"batch_id": self.id, "job_id": job_id}, queue=self.queue)

        logger.debug(f"Dispatched {len(signatures)} job(s) to batch {self.name} ({self.id})")
        return len(signatures)

    def seal(self) -> None:
        """Declare that no more jobs will be added; completes the batch if all jobs are done."""
        self._update(sealed_at=self.clock.now())
        self._try_finish()

    def cancel(self) -> None:
        self._update(cancelled_at=self.clock.now(), where=ImportBatch.cancelled_at.is_(None))
        logger.info(f"Batch {self.name} ({self.id}) cancelled")

    def cancelled(self) -> bool:
        batch = self.fresh()
        return batch is None or batch.cancelled_at is not None

    def job_reported(self, job_id: Optional[str]) -> bool:
        """True when the job already recorded a success or a failure."""
        if not job_id:
            return False

        db = self.session_factory()
        try:
            job = db.get(ImportBatchJob, job_id)
            return job is not None and job.batch_id == self.id and job.reported
        finally:
            db.close()

    def record_success(self, job_id: str) -> None:
        """Count a finished job; later reports for the same job are ignored."""
        if not self._claim_job(job_id, {"succeeded_at": self.clock.now()},
                               pending_jobs=ImportBatch.pending_jobs - 1):
            logger.info(f"Job {job_id} of batch {self.id} already reported, ignoring success")
            return

        self._try_finish()

    def record_failure(self, job_id: str, exception: BaseException) -> None:
        """Count a failed job; the first failure of the batch triggers on_failure."""
        if not self._claim_job(job_id, {"failed_at": self.clock.now()},
                               failed_jobs=ImportBatch.failed_jobs + 1):
            logger.info(f"Job {job_id} of batch {self.id} already reported, ignoring failure")
            return

        claimed = self._update(failed_at=self.clock.now(), where=ImportBatch.failed_at.is_(None))
        if claimed:
            logger.warning(f"Batch {self.name} ({self.id}) failed: {exception}")
            self._invoke("on_failure", exception=exception)

    def _try_finish(self) -> None:
        claimed = self._update(
            finished_at=self.clock.now(),
            where=and_(
                ImportBatch.pending_jobs <= 0,
                ImportBatch.sealed_at.isnot(None),
                ImportBatch.failed_at.is_(None),
                ImportBatch.cancelled_at.is_(None),
                ImportBatch.finished_at.is_(None),
            ),
        )
        if claimed:
            logger.info(f"Batch {self.name} ({self.id}) finished")
            self._invoke("on_complete")

    def _claim_job(self, job_id: str, outcome: dict, **counters) -> bool:
        """Set a job's outcome once and apply the batch counter changes in the same transaction."""
        db = self.session_factory()
        try:
            result = db.execute(
                update(ImportBatchJob)
                .where(
                    ImportBatchJob.id == job_id,
                    ImportBatchJob.batch_id == self.id,
                    ImportBatchJob.succeeded_at.is_(None),
                    ImportBatchJob.failed_at.is_(None),
                )
                .values(**outcome)
            )
            if result.rowcount != 1:
                db.rollback()
                return False

            db.execute(update(ImportBatch).where(ImportBatch.id == self.id).values(**counters))
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _update(self, where=None, **values) -> bool:
        """Run a single UPDATE on this batch row; True when a row matched."""
        statement = update(ImportBatch).where(ImportBatch.id == self.id)
        if where is not None:
            statement = statement.where(where)

        db = self.session_factory()
        try:
            result = db.execute(statement.values(**values))
            db.commit()
            return result.rowcount == 1
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _invoke(self, option: str, exception: Optional[BaseException] = None) -> None:
        name = self.options.get(option)
        if not name:
            return

        callback = get_batch_callback(name)
        context = dict(self.context, batch_id=self.id)
        db = self.session_factory()
        try:
            if exception is None:
                callback(db, context, self.clock)
            else:
                callback(db, context, self.clock, exception=exception)
            db.commit()
        except Exception:
            db.rollback()
            logger.error(f"Batch callback {name} failed for batch {self.id}", exc_info=True)
            raise
        finally:
            db.close()


class BatchScheduler:
    """Creates and looks up batches."""

    def __init__(self, session_factory=SessionLocal, clock=None):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()

    def create_batch(
        self,
        name: str,
        on_complete: Optional[str] = None,
        on_failure: Optional[str] = None,
        context: Optional[dict] = None,
        queue: Optional[str] = None,
    ) -> Batch:
        """
        Args:
            name: Human readable batch name, e.g. "stock-import:<id>"
            on_complete: Registered callback name for successful completion
            on_failure: Registered callback name for the first failure
            context: JSON-serializable data passed to the callbacks
            queue: Celery queue the batch's jobs are sent to

        Returns:
            Batch: Open (unsealed) batch handle
        """
        for callback_name in (on_complete, on_failure):
            if callback_name:
                get_batch_callback(callback_name)

        options = {
            "queue": queue,
            "on_complete": on_complete,
            "on_failure": on_failure,
            "context": context or {},
        }

        db = self.session_factory()
        try:
            batch = ImportBatch(name=name, options=options, created_at=self.clock.now())
            db.add(batch)
            db.commit()
            batch_id = batch.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Created batch {name} ({batch_id})")
        return Batch(batch_id, name, options, self.session_factory, self.clock)

    def find(self, batch_id: Optional[str]) -> Optional[Batch]:
        if not batch_id:
            return None

        db = self.session_factory()
        try:
            batch = db.get(ImportBatch, batch_id)
        finally:
            db.close()

        if batch is None:
            return None

        return Batch(batch.id, batch.name, batch.options, self.session_factory, self.clock)
