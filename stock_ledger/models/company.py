"""
Company Model

A listed company whose historical prices are imported and reported on.
updated_at doubles as the cache-invalidation signal for performance reports:
every applied import chunk touches it.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from stock_ledger.database import Base


class Company(Base):
    """Company model owning stock imports and stock prices."""

    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    symbol = Column(String(16), unique=True, nullable=False, index=True)  # e.g., "AAPL"
    slug = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    stock_imports = relationship(
        "StockImport", back_populates="company", cascade="all, delete-orphan", passive_deletes=True
    )
    stock_prices = relationship(
        "StockPrice", back_populates="company", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<Company(id={self.id}, symbol={self.symbol}, name={self.name})>"
