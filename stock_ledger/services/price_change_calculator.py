"""
Price Change Calculator

Percentage change between two prices in exact decimal arithmetic:

    change = (end / start) - 1

The ratio is computed with 12 fractional digits and the change is rounded
half-up (away from zero on ties) to 4 fractional digits. formatted() renders
the change as a percentage with 2 fractional digits, e.g. "0.0313" -> "3.13%".
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

from stock_ledger.services.price import DECIMAL_CONTEXT, Price

NO_CHANGE = "none"


class PriceChangeCalculator:
    """Computes and formats percentage changes."""

    def __init__(self, scale: int = 12, zero_scale: int = Price.SCALE, precision: int = 4):
        """
        Args:
            scale: Internal fractional digits of the ratio
            zero_scale: Scale at which a start price counts as zero
            precision: Fractional digits of the returned change
        """
        self.scale = scale
        self.zero_scale = zero_scale
        self.precision = precision

    def percentage(self, start: Optional[Price], end: Optional[Price],
                   precision: Optional[int] = None) -> Optional[str]:
        """
        Fractional change from start to end.

        Returns:
            str: e.g. "0.0313" for +3.13%, or None when either price is missing
                 or start is zero
        """
        if start is None or end is None:
            return None

        if start.is_zero(self.zero_scale):
            return None

        ratio = Decimal(end.divided_by(start, self.scale))

        with localcontext(DECIMAL_CONTEXT):
            change = ratio - 1

        return self._round(change, self.precision if precision is None else precision)

    def formatted(self, percentage: Optional[str], precision: int = 2) -> str:
        """Render a change as a percentage string ("3.13%") or "none"."""
        if percentage is None:
            return NO_CHANGE

        with localcontext(DECIMAL_CONTEXT):
            value = Decimal(percentage) * 100

        return f"{self._round(value, precision)}%"

    def _round(self, value: Decimal, precision: int) -> str:
        with localcontext(DECIMAL_CONTEXT):
            rounded = value.quantize(Decimal(1).scaleb(-precision), rounding=ROUND_HALF_UP)

        if rounded.is_zero():
            rounded = rounded.copy_abs()

        return format(rounded, "f")
