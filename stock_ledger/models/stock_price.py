"""
Stock Price Model

Reference (closing) price of a company on one calendar date. Rows are only
written by the import chunk processor through an upsert on
(company_id, traded_on).
"""

from sqlalchemy import Column, Integer, String, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from stock_ledger.database import Base
from stock_ledger.models.types import PriceType


class StockPrice(Base):
    """Daily stock price stored as integer minor units."""

    __tablename__ = "stock_prices"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    # Informational lineage: the import that last wrote this row
    stock_import_id = Column(
        String(32), ForeignKey("stock_imports.id", ondelete="SET NULL"), nullable=True, index=True
    )
    traded_on = Column(Date, nullable=False, index=True)
    price = Column(PriceType, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "traded_on", name="uq_stock_prices_company_traded_on"),
    )

    # Relationships
    company = relationship("Company", back_populates="stock_prices")

    def __repr__(self):
        return f"<StockPrice(company_id={self.company_id}, traded_on={self.traded_on}, price={self.price})>"
