"""
Stock Price Baseline Resolver

Finds the historical price a performance period is measured against:
1. MAX: the oldest price on record
2. YTD: the first price between 1 January of the as-of year and the as-of date
3. Rolling windows (1D ... 10Y): the first trade on or after (as_of - offset)
   and before as_of; failing that, the last trade on or before the target

Trading data is sparse (weekends, holidays, gaps in uploads), so rolling
windows never require a trade on the exact target date.
"""

from datetime import date
from typing import Optional

import pandas as pd
from sqlalchemy.orm import Session

from stock_ledger.models.company import Company
from stock_ledger.models.enums import StockPerformancePeriod
from stock_ledger.models.stock_price import StockPrice


class StockPriceBaselineResolver:
    """Resolves the comparison price of a performance period."""

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, company: Company, period: StockPerformancePeriod, as_of: date) -> Optional[StockPrice]:
        """
        Args:
            company: Company whose prices are searched
            period: Reporting period
            as_of: Reference date the period is counted back from

        Returns:
            StockPrice: Baseline price, or None when no comparison is possible
        """
        if period == StockPerformancePeriod.MAX:
            return self.oldest_price(company)

        if period == StockPerformancePeriod.YEAR_TO_DATE:
            return self.first_price_in_range(company, date(as_of.year, 1, 1), as_of)

        target = self.target_date_for(period, as_of)
        if target is None:
            return None

        return (
            self.next_trading_day(company, target, before=as_of)
            or self.previous_trading_day(company, target)
        )

    @staticmethod
    def target_date_for(period: StockPerformancePeriod, as_of: date) -> Optional[date]:
        offset = period.offset
        if offset is None:
            return None
        return (pd.Timestamp(as_of) - offset).date()

    def _prices(self, company: Company):
        return self.db.query(StockPrice).filter(StockPrice.company_id == company.id)

    def oldest_price(self, company: Company) -> Optional[StockPrice]:
        return self._prices(company).order_by(StockPrice.traded_on.asc()).first()

    def first_price_in_range(self, company: Company, start: date, end: date) -> Optional[StockPrice]:
        return (
            self._prices(company)
            .filter(StockPrice.traded_on >= start, StockPrice.traded_on <= end)
            .order_by(StockPrice.traded_on.asc())
            .first()
        )

    def next_trading_day(self, company: Company, target: date,
                         before: Optional[date] = None) -> Optional[StockPrice]:
        query = self._prices(company).filter(StockPrice.traded_on >= target)
        if before is not None:
            # The as-of trade itself is never its own baseline
            query = query.filter(StockPrice.traded_on < before)

        return (
            query
            .order_by(StockPrice.traded_on.asc())
            .first()
        )

    def previous_trading_day(self, company: Company, target: date) -> Optional[StockPrice]:
        return (
            self._prices(company)
            .filter(StockPrice.traded_on <= target)
            .order_by(StockPrice.traded_on.desc())
            .first()
        )
