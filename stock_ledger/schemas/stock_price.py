from typing import List, Optional

from pydantic import BaseModel, Field


class PriceChange(BaseModel):
    change: Optional[str] = Field(None, description='Fractional change, e.g. "0.0313"; null when unavailable.')
    formatted: str = Field(..., description='Percentage, e.g. "3.13%", or "none".')


class PeriodChange(PriceChange):
    period: str = Field(..., description="Reporting period code, e.g. 1M.")


class PerformanceSummary(BaseModel):
    periods: List[PeriodChange]


class ComparisonEnvelope(BaseModel):
    data: PriceChange


class PerformanceEnvelope(BaseModel):
    data: PerformanceSummary
