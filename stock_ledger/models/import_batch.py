"""
Import Batch Model

Aggregate state of a group of chunk tasks dispatched for one import.
Counters are changed with SQL increments only; the *_at columns are claimed
with conditional updates so completion and first-failure callbacks fire once.
Each dispatched task has an ImportBatchJob row whose outcome is claimed the
same way, so a redelivered task cannot be counted twice.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON

from stock_ledger.database import Base


def generate_batch_id() -> str:
    return str(uuid.uuid4())


def generate_job_id() -> str:
    return uuid.uuid4().hex


class ImportBatch(Base):
    """Batch of queued tasks with aggregate completion/failure semantics."""

    __tablename__ = "import_batches"

    id = Column(String(36), primary_key=True, default=generate_batch_id)
    name = Column(String(255), nullable=False)

    total_jobs = Column(Integer, nullable=False, default=0)
    pending_jobs = Column(Integer, nullable=False, default=0)
    failed_jobs = Column(Integer, nullable=False, default=0)

    # {"queue": ..., "on_complete": ..., "on_failure": ..., "context": {...}}
    options = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    sealed_at = Column(DateTime, nullable=True)  # No more jobs will be added
    cancelled_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)  # First job failure
    finished_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return (
            f"<ImportBatch(id={self.id}, name={self.name}, "
            f"pending={self.pending_jobs}/{self.total_jobs}, failed={self.failed_jobs})>"
        )


class ImportBatchJob(Base):
    """One task dispatched in a batch; succeeded_at / failed_at are set at most once."""

    __tablename__ = "import_batch_jobs"

    id = Column(String(32), primary_key=True, default=generate_job_id)
    batch_id = Column(
        String(36), ForeignKey("import_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    succeeded_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)

    @property
    def reported(self) -> bool:
        return self.succeeded_at is not None or self.failed_at is not None

    def __repr__(self):
        return f"<ImportBatchJob(id={self.id}, batch_id={self.batch_id}, reported={self.reported})>"
