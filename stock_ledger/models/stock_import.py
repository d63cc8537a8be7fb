"""
Stock Import Model

Tracks one uploaded spreadsheet through the import pipeline:
pending -> queued -> processing -> completed | failed.

processed_rows is only ever changed with an SQL increment because many chunk
workers advance it concurrently.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum
from sqlalchemy.orm import relationship

from stock_ledger.database import Base
from stock_ledger.models.enums import StockImportStatus


def generate_import_id() -> str:
    return uuid.uuid4().hex


class StockImport(Base):
    """Stock import job model."""

    __tablename__ = "stock_imports"

    id = Column(String(32), primary_key=True, default=generate_import_id)
    company_id = Column(
        Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    original_filename = Column(String(255), nullable=False)
    stored_path = Column(String(512), nullable=False)
    disk = Column(String(64), nullable=False, default="local")

    status = Column(
        Enum(
            StockImportStatus,
            native_enum=False,
            length=32,
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=StockImportStatus.PENDING,
        index=True,
    )

    # Progress counters
    total_rows = Column(Integer, nullable=True)  # Unknown until the file has been read
    processed_rows = Column(Integer, nullable=False, default=0)
    batch_id = Column(String(36), nullable=True, index=True)

    # Lifecycle timestamps
    queued_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    company = relationship("Company", back_populates="stock_imports")

    def __repr__(self):
        return (
            f"<StockImport(id={self.id}, company_id={self.company_id}, "
            f"status={self.status}, processed={self.processed_rows}/{self.total_rows})>"
        )
