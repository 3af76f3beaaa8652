"""
Currency rounding and formatting.

All monetary arithmetic goes through Decimal so that two-decimal inputs sum
exactly; floats only appear at the edges.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal via its shortest string form.

    Going through ``str`` keeps ``0.1`` as ``Decimal("0.1")`` instead of the
    binary expansion of the float.
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_currency(value: Number) -> Decimal:
    """Round to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_currency(value: Number) -> float:
    """Round to 2 decimal places using half-away-from-zero semantics.

    Args:
        value: Amount to round

    Returns:
        Rounded amount as a float
    """
    return float(quantize_currency(value))


def format_currency(amount: Number) -> str:
    """Format an amount as dollars with thousands separators."""
    rounded = quantize_currency(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.2f}"


def format_percentage(percentage: Number) -> str:
    return f"{float(percentage):.1f}%"
