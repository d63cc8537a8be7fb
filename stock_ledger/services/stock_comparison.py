"""
Stock Price Comparison

Percentage change between the prices traded on two exact dates. Unlike the
performance periods there is no nearest-trading-day fallback: a missing price
on either date yields a "none" comparison.
"""

from datetime import date
from typing import Dict, Optional

from sqlalchemy.orm import Session

from stock_ledger.models.company import Company
from stock_ledger.models.stock_price import StockPrice
from stock_ledger.services.price_change_calculator import PriceChangeCalculator


class ResolveStockPriceComparison:
    def __init__(self, db: Session, calculator: Optional[PriceChangeCalculator] = None):
        self.db = db
        self.calculator = calculator or PriceChangeCalculator()

    def handle(self, company: Company, from_date: date, to_date: date) -> Dict:
        """
        Args:
            company: Company to compare
            from_date: Date of the start price
            to_date: Date of the end price

        Returns:
            dict: {"change": "0.1000" | None, "formatted": "10.00%" | "none"}
        """
        from_price = self.find_price(company, from_date)
        to_price = self.find_price(company, to_date)

        change = self.calculator.percentage(
            from_price.price if from_price is not None else None,
            to_price.price if to_price is not None else None,
        )

        return {
            "change": change,
            "formatted": self.calculator.formatted(change),
        }

    def find_price(self, company: Company, traded_on: date) -> Optional[StockPrice]:
        return (
            self.db.query(StockPrice)
            .filter(StockPrice.company_id == company.id, StockPrice.traded_on == traded_on)
            .first()
        )
