"""
Stock Import Chunk Processor

Applies one chunk of sanitized rows:
1. Skip when the owning batch was cancelled (or the chunk is empty)
2. Bulk upsert prices on (company_id, traded_on); last write wins, also for
   dates repeated inside the chunk
3. Touch the company's updated_at (invalidates cached performance reports)
4. Advance the import's processed_rows counter

Each step commits on its own. A redelivered chunk re-applies the same rows,
which leaves the stored prices unchanged.
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from stock_ledger.models.company import Company
from stock_ledger.models.stock_import import StockImport
from stock_ledger.models.stock_price import StockPrice
from stock_ledger.services.batch_scheduler import Batch
from stock_ledger.services.price import Price
from stock_ledger.utils.clock import SystemClock
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

UPSERT_KEYS = ["company_id", "traded_on"]


class StockImportChunkProcessor:
    """Writes one chunk of an import into the price store."""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or SystemClock()

    def process(self, import_id: str, company_id: int, rows: List[Dict[str, str]],
                batch: Optional[Batch] = None) -> int:
        """
        Args:
            import_id: Owning StockImport id (recorded as row lineage)
            company_id: Company the prices belong to
            rows: Sanitized rows, e.g. [{"traded_on": "2024-05-10", "price": "161.840000"}]
            batch: Batch the chunk was dispatched in, if any

        Returns:
            int: Number of rows handled, repeated dates included (0 when skipped)
        """
        if batch is not None and batch.cancelled():
            logger.info(f"Batch {batch.id} cancelled, skipping chunk of import {import_id}")
            return 0

        if not rows:
            return 0

        payload = self.build_payload(import_id, company_id, rows)

        try:
            self.db.execute(self.upsert_statement(payload))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.execute(
            update(Company)
            .where(Company.id == company_id)
            .values(updated_at=self.clock.now())
        )
        self.db.commit()

        self.db.execute(
            update(StockImport)
            .where(StockImport.id == import_id)
            .values(processed_rows=StockImport.processed_rows + len(rows))
        )
        self.db.commit()

        logger.debug(f"Applied {len(payload)} price(s) from {len(rows)} row(s) to import {import_id}")
        return len(rows)

    @staticmethod
    def build_payload(import_id: str, company_id: int, rows: List[Dict[str, str]]) -> List[Dict]:
        # One entry per trade date: a multi-row ON CONFLICT upsert may not touch a row twice
        payload = {}
        for row in rows:
            traded_on = date.fromisoformat(row["traded_on"])
            # PriceType binds Price values as integer minor units
            payload[traded_on] = {
                "company_id": company_id,
                "stock_import_id": import_id,
                "traded_on": traded_on,
                "price": Price.from_string(row["price"]),
            }
        return list(payload.values())

    def upsert_statement(self, payload: List[Dict]):
        dialect = self.db.get_bind().dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        elif dialect in ("mysql", "mariadb"):
            from sqlalchemy.dialects.mysql import insert

            statement = insert(StockPrice).values(payload)
            return statement.on_duplicate_key_update(
                price=statement.inserted.price,
                stock_import_id=statement.inserted.stock_import_id,
            )
        else:
            raise NotImplementedError(f"Stock price upsert is not supported on {dialect}")

        statement = insert(StockPrice).values(payload)
        return statement.on_conflict_do_update(
            index_elements=UPSERT_KEYS,
            set_={
                "price": statement.excluded.price,
                "stock_import_id": statement.excluded.stock_import_id,
            },
        )
