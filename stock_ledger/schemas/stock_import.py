from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from stock_ledger.models.enums import StockImportStatus


class StockImportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: int
    original_filename: str
    status: StockImportStatus
    total_rows: Optional[int] = None
    processed_rows: int = 0
    batch_id: Optional[str] = None
    queued_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime

    @computed_field
    @property
    def status_color(self) -> str:
        return self.status.color()


class StockImportEnvelope(BaseModel):
    data: StockImportResponse = Field(..., description="Stock import state.")


class StockImportListEnvelope(BaseModel):
    data: List[StockImportResponse]
