"""
Background Tasks

Celery tasks for the stock import pipeline.
"""

from stock_ledger.tasks.stock_imports import (
    prepare_stock_import,
    process_stock_import_chunk,
)

__all__ = [
    "prepare_stock_import",
    "process_stock_import_chunk",
]
