"""
Stock Enums

Import lifecycle status and the reporting periods understood by the
performance endpoint.
"""

from enum import Enum

import pandas as pd


class StockImportStatus(str, Enum):
    """Lifecycle of a stock import: pending -> queued -> processing -> completed | failed."""

    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (StockImportStatus.COMPLETED, StockImportStatus.FAILED)

    def color(self) -> str:
        """Badge colour used by dashboards."""
        return STATUS_COLORS.get(self, "zinc")


STATUS_COLORS = {
    StockImportStatus.COMPLETED: "green",
    StockImportStatus.FAILED: "red",
    StockImportStatus.PROCESSING: "blue",
    StockImportStatus.QUEUED: "amber",
}


class StockPerformancePeriod(str, Enum):
    """Reporting periods, in display order."""

    ONE_DAY = "1D"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    YEAR_TO_DATE = "YTD"
    ONE_YEAR = "1Y"
    THREE_YEARS = "3Y"
    FIVE_YEARS = "5Y"
    TEN_YEARS = "10Y"
    MAX = "MAX"

    @property
    def offset(self):
        """Calendar offset of a rolling window, or None for YTD and MAX."""
        return ROLLING_PERIOD_OFFSETS.get(self)


# Month/year offsets clamp to the end of shorter months (e.g. 31 May - 1M = 30 Apr)
ROLLING_PERIOD_OFFSETS = {
    StockPerformancePeriod.ONE_DAY: pd.DateOffset(days=1),
    StockPerformancePeriod.ONE_MONTH: pd.DateOffset(months=1),
    StockPerformancePeriod.THREE_MONTHS: pd.DateOffset(months=3),
    StockPerformancePeriod.SIX_MONTHS: pd.DateOffset(months=6),
    StockPerformancePeriod.ONE_YEAR: pd.DateOffset(years=1),
    StockPerformancePeriod.THREE_YEARS: pd.DateOffset(years=3),
    StockPerformancePeriod.FIVE_YEARS: pd.DateOffset(years=5),
    StockPerformancePeriod.TEN_YEARS: pd.DateOffset(years=10),
}
