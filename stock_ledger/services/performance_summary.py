"""
Stock Performance Summary

Builds the per-period performance report of a company:

    {"periods": [{"period": "1D", "change": "0.0313", "formatted": "3.13%"}, ...]}

The "latest" price is the newest trade on or before the as-of date (or the
newest trade overall). Each period compares it against the baseline chosen by
StockPriceBaselineResolver. A baseline on the same trade date as the latest
price is not a comparison and reports "none".

Summaries are cached under a key that embeds the company's updated_at, which
every import chunk touches, so new prices invalidate old reports without any
explicit cache eviction.
"""

import hashlib
from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from stock_ledger.config import STOCK_REPORT_CACHE_TTL
from stock_ledger.models.company import Company
from stock_ledger.models.enums import StockPerformancePeriod
from stock_ledger.models.stock_price import StockPrice
from stock_ledger.services.baseline_resolver import StockPriceBaselineResolver
from stock_ledger.services.cache_store import CacheStore
from stock_ledger.services.price_change_calculator import PriceChangeCalculator


class StockPerformanceSummaryBuilder:
    """Composes baseline resolution and change calculation across periods."""

    def __init__(
        self,
        db: Session,
        cache: CacheStore,
        calculator: Optional[PriceChangeCalculator] = None,
        baseline_resolver: Optional[StockPriceBaselineResolver] = None,
        cache_ttl: int = STOCK_REPORT_CACHE_TTL,
    ):
        self.db = db
        self.cache = cache
        self.calculator = calculator or PriceChangeCalculator()
        self.baseline_resolver = baseline_resolver or StockPriceBaselineResolver(db)
        self.cache_ttl = cache_ttl

    def build(
        self,
        company: Company,
        as_of: Optional[date] = None,
        periods: Optional[Sequence[StockPerformancePeriod]] = None,
    ) -> Dict:
        """
        Args:
            company: Company to report on
            as_of: Reference date; defaults to the newest price date
            periods: Periods to include, in output order; defaults to all

        Returns:
            dict: {"periods": [...]} ready for JSON serialization
        """
        periods = list(periods) if periods else list(StockPerformancePeriod)
        cache_key = self.make_cache_key(company, as_of, periods)

        return self.cache.remember(
            cache_key,
            self.cache_ttl,
            lambda: self._build_summary(company, as_of, periods),
        )

    def resolve_latest_price(self, company: Company, as_of: Optional[date]) -> Optional[StockPrice]:
        query = self.db.query(StockPrice).filter(StockPrice.company_id == company.id)

        if as_of is not None:
            query = query.filter(StockPrice.traded_on <= as_of)

        return query.order_by(StockPrice.traded_on.desc()).first()

    def _build_summary(self, company: Company, as_of: Optional[date],
                       periods: List[StockPerformancePeriod]) -> Dict:
        latest_price = self.resolve_latest_price(company, as_of)

        if latest_price is None:
            return {"periods": [self._summarize_period(period, None) for period in periods]}

        return {
            "periods": [
                self._build_period_entry(company, period, latest_price)
                for period in periods
            ]
        }

    def _build_period_entry(self, company: Company, period: StockPerformancePeriod,
                            latest_price: StockPrice) -> Dict:
        baseline = self.baseline_resolver.resolve(company, period, latest_price.traded_on)

        if baseline is None or baseline.traded_on == latest_price.traded_on:
            return self._summarize_period(period, None)

        change = self.calculator.percentage(baseline.price, latest_price.price)
        return self._summarize_period(period, change)

    def _summarize_period(self, period: StockPerformancePeriod, change: Optional[str]) -> Dict:
        return {
            "period": period.value,
            "change": change,
            "formatted": self.calculator.formatted(change),
        }

    @staticmethod
    def make_cache_key(company: Company, as_of: Optional[date],
                       periods: Sequence[StockPerformancePeriod]) -> str:
        period_values = sorted(period.value for period in periods)
        periods_hash = hashlib.sha256("-".join(period_values).encode()).hexdigest()

        as_of_segment = as_of.isoformat() if as_of is not None else "latest"
        updated_at_segment = (
            company.updated_at.strftime("%Y%m%d%H%M%S%f") if company.updated_at is not None else "na"
        )

        return f"stock-performance:{company.id}:{updated_at_segment}:{as_of_segment}:{periods_hash}"
