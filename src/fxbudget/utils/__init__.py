"""Utility functions for fxbudget."""

from fxbudget.utils.formatting import (
    format_currency,
    format_date,
    format_percent,
    round_money,
    round_percent,
)
from fxbudget.utils.parsing import (
    parse_amount,
    parse_date,
    read_file,
    to_decimal,
)

__all__ = [
    "format_currency",
    "format_date",
    "format_percent",
    "round_money",
    "round_percent",
    "parse_amount",
    "parse_date",
    "read_file",
    "to_decimal",
]
