"""
Price Value Object

Exact decimal stock price with a canonical scale of 6 fractional digits.
Prices are persisted as integer minor units (amount x 10^scale) so a value
survives the database round trip without binary floating-point drift.

All operations truncate toward zero ("round down") and return strings or new
Price instances; a Price is never mutated.
"""

import re
from decimal import ROUND_DOWN, Context, Decimal, InvalidOperation, localcontext
from typing import Optional, Union

from stock_ledger.exceptions import InvalidAmount

DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
MINOR_PATTERN = re.compile(r"^-?\d+$")

# Enough significant digits for any scale we quantize to
DECIMAL_CONTEXT = Context(prec=120, rounding=ROUND_DOWN)


def _quantum(scale: int) -> Decimal:
    return Decimal(1).scaleb(-scale)


def _truncate(amount: Decimal, scale: int) -> Decimal:
    with localcontext(DECIMAL_CONTEXT):
        truncated = amount.quantize(_quantum(scale), rounding=ROUND_DOWN)
    # "-0.000000" and "0.000000" are the same price
    return truncated.copy_abs() if truncated.is_zero() else truncated


class Price:
    """Immutable exact decimal amount."""

    SCALE = 6

    __slots__ = ("_amount", "_scale")

    def __init__(self, amount: Decimal, scale: int = SCALE):
        self._amount = amount
        self._scale = scale

    @classmethod
    def from_string(cls, value: Union[str, Decimal], scale: int = SCALE) -> "Price":
        """
        Build a price from a decimal string, truncating to the given scale.

        Raises:
            InvalidAmount: If the value is not a finite decimal number
        """
        if isinstance(value, Decimal):
            decimal = value
        elif isinstance(value, str) and DECIMAL_PATTERN.match(value):
            decimal = Decimal(value)
        else:
            raise InvalidAmount(f"{value!r} is not a valid decimal amount.")

        if not decimal.is_finite():
            raise InvalidAmount(f"{value!r} is not a finite decimal amount.")

        try:
            return cls(_truncate(decimal, scale), scale)
        except InvalidOperation as e:
            raise InvalidAmount(f"{value!r} cannot be represented at scale {scale}.") from e

    @classmethod
    def from_minor(cls, value: Union[int, str], scale: int = SCALE) -> "Price":
        """
        Build a price from integer minor units (amount x 10^scale).

        Raises:
            InvalidAmount: If the minor units are not an integer value
        """
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise InvalidAmount("Minor units must be an integer value.")
        if isinstance(value, str) and not MINOR_PATTERN.match(value):
            raise InvalidAmount("Minor units must be an integer value.")

        with localcontext(DECIMAL_CONTEXT):
            amount = Decimal(int(value)).scaleb(-scale)

        return cls(_truncate(amount, scale), scale)

    @property
    def amount(self) -> Decimal:
        return self._amount

    @property
    def scale(self) -> int:
        return self._scale

    def value(self) -> str:
        """Canonical string at the price's scale, e.g. "161.840000"."""
        return format(self._amount, "f")

    def to_minor(self, scale: Optional[int] = None) -> str:
        precision = self._scale if scale is None else scale
        truncated = _truncate(self._amount, precision)

        with localcontext(DECIMAL_CONTEXT):
            return str(int(truncated.scaleb(precision)))

    def is_zero(self, scale: Optional[int] = None) -> bool:
        precision = self._scale if scale is None else scale
        return _truncate(self._amount, precision).is_zero()

    def divided_by(self, divisor: "Price", scale: int = 10) -> str:
        """Divide by another price, truncating the quotient to `scale` digits."""
        if divisor.is_zero():
            raise ZeroDivisionError("Cannot divide a price by zero.")

        with localcontext(DECIMAL_CONTEXT):
            quotient = self._amount / divisor.amount

        return format(_truncate(quotient, scale), "f")

    def round(self, precision: int = SCALE) -> str:
        return format(_truncate(self._amount, precision), "f")

    def formatted(self, precision: int = 2) -> str:
        return self.round(precision)

    def __str__(self) -> str:
        return self.value()

    def __repr__(self) -> str:
        return f"<Price({self.value()})>"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Price):
            return NotImplemented
        return self._amount == other.amount

    def __hash__(self) -> int:
        return hash(self._amount)
