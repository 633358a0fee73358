"""Formatting helpers for money, percentages and dates."""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from fxbudget.utils.parsing import to_decimal

CENT = Decimal("0.01")
TENTH = Decimal("0.1")


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_percent(fraction: Decimal) -> Decimal:
    """Convert a fraction to a percentage rounded to one decimal, half-up."""
    return (fraction * 100).quantize(TENTH, rounding=ROUND_HALF_UP)


def format_currency(amount: Any, symbol: str = "$") -> str:
    """
    Format a number as a currency string.

    Non-numeric input formats as zero. The minus sign goes before the
    symbol: -500 -> "-$500.00".

    Args:
        amount: Number, Decimal or numeric string
        symbol: Currency symbol prefix (default "$")

    Returns:
        Formatted string, e.g. "$1,234.56"
    """
    value = to_decimal(amount)
    if value is None:
        value = Decimal("0")
    value = round_money(value)
    formatted = f"{symbol}{abs(value):,.2f}"
    return f"-{formatted}" if value < 0 else formatted


def format_percent(fraction: Any) -> str:
    """Format a fraction as a percent string: 0.8 -> "80%", 0.875 -> "87.5%"."""
    value = to_decimal(fraction)
    if value is None or value < 0:
        return "0%"
    pct = round_percent(value)
    if pct == pct.to_integral_value():
        return f"{pct:.0f}%"
    return f"{pct:.1f}%"


def format_date(value: Any, fmt: str = "%Y-%m-%d") -> str:
    """Format a date, returning an empty string for anything else."""
    if not isinstance(value, date):
        return ""
    return value.strftime(fmt)
