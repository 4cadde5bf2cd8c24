"""Money helpers.

Internal representation: ``Decimal`` with two fractional digits, stored in
``Numeric(12, 2)`` columns. Client-facing totals are whole currency units,
rounded half-up at the point of output only; intermediate sums are never
rounded.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from libs.common.config import get_settings

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
CENT = Decimal("0.01")
UNIT = Decimal("1")


def to_decimal(value: Number | None) -> Decimal:
    """Coerce a number (or None) to Decimal. Floats go through str to avoid binary noise."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_cents(value: Number) -> Decimal:
    """Round to two decimals (half-up), the storage precision."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_amount(value: Number) -> int:
    """Round half-up to the nearest whole currency unit for display totals."""
    return int(to_decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP))


def format_amount(value: Number) -> str:
    """Render an amount with the configured currency symbol, e.g. ``₹500``."""
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        rendered = str(int(amount))
    else:
        rendered = str(quantize_cents(amount))
    return f"{get_settings().CURRENCY_SYMBOL}{rendered}"
