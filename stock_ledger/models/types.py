"""
Custom Column Types
"""

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

from stock_ledger.services.price import Price


class PriceType(TypeDecorator):
    """Stores a Price as integer minor units and loads it back as a Price."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None

        if isinstance(value, Price):
            return int(value.to_minor(Price.SCALE))

        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return int(Price.from_string(str(value)).to_minor(Price.SCALE))

        raise ValueError(f"Unable to cast {type(value).__name__} to a stock price.")

    def process_result_value(self, value, dialect):
        if value is None:
            return None

        return Price.from_minor(int(value))
