"""Fixed-precision money helpers.

All monetary values are ``decimal.Decimal``. Rounding to currency precision
uses banker's rounding (ROUND_HALF_EVEN) so that results are reproducible
regardless of where they are computed.
"""

from decimal import Decimal, ROUND_HALF_EVEN
from typing import Iterable

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def quantize(amount: Decimal, places: int = 2) -> Decimal:
    """Round to ``places`` decimal places with banker's rounding."""
    exponent = Decimal(1).scaleb(-places)
    return amount.quantize(exponent, rounding=ROUND_HALF_EVEN)


def percent_of(amount: Decimal, percent: Decimal, places: int = 2) -> Decimal:
    """Return ``percent`` % of ``amount`` rounded to currency precision."""
    return quantize(amount * percent / HUNDRED, places)


def clamp(amount: Decimal, lower: Decimal = ZERO, upper: Decimal | None = None) -> Decimal:
    """Clamp ``amount`` into [lower, upper]."""
    if amount < lower:
        return lower
    if upper is not None and amount > upper:
        return upper
    return amount


def money_sum(amounts: Iterable[Decimal]) -> Decimal:
    """Sum Decimals, starting from an exact zero."""
    return sum(amounts, ZERO)
