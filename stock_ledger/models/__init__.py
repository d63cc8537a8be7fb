"""
Database Models

All SQLAlchemy models for the application.
"""

from stock_ledger.models.user import User, ApiToken
from stock_ledger.models.company import Company
from stock_ledger.models.stock_import import StockImport
from stock_ledger.models.stock_price import StockPrice
from stock_ledger.models.import_batch import ImportBatch, ImportBatchJob

__all__ = ["User", "ApiToken", "Company", "StockImport", "StockPrice", "ImportBatch", "ImportBatchJob"]
