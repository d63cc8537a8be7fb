"""
Stock Import Row Sanitizer

Turns raw spreadsheet rows (header keys already trimmed and snake_cased)
into validated {"traded_on": "YYYY-MM-DD", "price": "123.450000"} records.

Rows that cannot be understood are dropped, not reported as errors: import
files are user-supplied and often carry notes, totals or blank lines.
"""

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from stock_ledger.services.price import DECIMAL_CONTEXT, Price
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

DATE_KEYS = ("date",)
PRICE_KEYS = ("stock_price", "price")

FLOAT_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
PRICE_QUANTUM = Decimal(1).scaleb(-Price.SCALE)
# Prices are stored as signed 64-bit minor units
MAX_MINOR_UNITS = 2 ** 63 - 1
MIN_MINOR_UNITS = -(2 ** 63)


class StockImportRowSanitizer:
    """Validates and normalizes imported price rows."""

    def sanitize(self, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
        """
        Sanitize a chunk of rows, keeping only the valid ones.

        Args:
            rows: Raw row mappings from the spreadsheet reader

        Returns:
            list: Normalized rows, in input order
        """
        sanitized = []

        for row in rows:
            record = self.sanitize_row(row)
            if record is None:
                logger.debug(f"Dropping invalid import row: {row!r}")
                continue
            sanitized.append(record)

        return sanitized

    def sanitize_row(self, row: Dict[str, Any]) -> Optional[Dict[str, str]]:
        date_value = self._first_present(row, DATE_KEYS)
        price_value = self._first_present(row, PRICE_KEYS)

        if date_value is None or price_value is None:
            return None

        traded_on = self._parse_date(date_value)
        if traded_on is None:
            return None

        price = self._parse_price(price_value)
        if price is None:
            return None

        return {
            "traded_on": traded_on.isoformat(),
            "price": price,
        }

    def _first_present(self, row: Dict[str, Any], keys) -> Any:
        for key in keys:
            value = row.get(key)
            if not _is_empty(value):
                return value
        return None

    def _parse_date(self, value: Any) -> Optional[date]:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str):
            # Bare numbers are ambiguous (epoch? Excel serial?), so they are rejected
            return None

        try:
            parsed = pd.to_datetime(value.strip())
        except (ValueError, TypeError, OverflowError):
            return None

        if pd.isna(parsed):
            return None

        return parsed.date()

    def _parse_price(self, value: Any) -> Optional[str]:
        if isinstance(value, bool):
            return None

        if isinstance(value, (int, float, Decimal)):
            number = float(value)
        elif isinstance(value, str) and FLOAT_PATTERN.match(value.strip()):
            number = float(value.strip())
        else:
            return None

        if not math.isfinite(number):
            return None

        try:
            with localcontext(DECIMAL_CONTEXT):
                normalized = Decimal(repr(number)).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return None

        if not MIN_MINOR_UNITS <= int(Price.from_string(normalized).to_minor()) <= MAX_MINOR_UNITS:
            return None

        return format(normalized, "f")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float):
        return math.isnan(value)
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
