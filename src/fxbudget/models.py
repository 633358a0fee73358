"""Data models for ledger records, budget summaries and rate sets."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from fxbudget.utils.parsing import parse_amount, parse_date


class BudgetStatus(Enum):
    """Spending status of a category against its budget."""

    OK = "OK"
    WARNING = "Warning"
    OVER_BUDGET = "Over Budget"

    @property
    def label(self) -> str:
        """Display label used in reports and messages."""
        return self.value

    @classmethod
    def from_label(cls, label: str) -> "BudgetStatus":
        """Parse a display label back into a status."""
        for status in cls:
            if status.value == label.strip():
                return status
        raise ValueError(f"Unknown budget status: {label!r}")


@dataclass
class TransactionRecord:
    """A single ledger row.

    ``amount_base`` is back-filled by the currency conversion pass.
    ``raw_data`` keeps the cells as read, keyed by field name. Cells whose
    value has not changed since loading are written back exactly as read.
    """

    date: date | None
    description: str
    category: str
    amount_base: Decimal | None = None
    amount_local: Decimal | None = None
    currency: str = ""
    raw_data: dict[str, str] = field(default_factory=dict, compare=False)

    def to_row(self) -> list[str]:
        """Convert to a ledger row in column order."""
        return [
            self._cell("date", self.date, parse_date),
            self._cell("description", self.description, str.strip),
            self._cell("category", self.category, str.strip),
            self._cell("amount_base", self.amount_base, parse_amount),
            self._cell("amount_local", self.amount_local, parse_amount),
            self._cell("currency", self.currency, _parse_currency),
        ]

    def _cell(self, name: str, value: Any, parse: Callable[[str], Any]) -> str:
        raw = self.raw_data.get(name)
        if raw is not None and parse(raw) == value:
            return raw
        if value is None:
            return ""
        if isinstance(value, date):
            return value.isoformat()
        return str(value)


def _parse_currency(cell: str) -> str:
    return cell.strip().upper()


@dataclass(frozen=True)
class BudgetSummaryEntry:
    """Budget status of one category."""

    category: str
    total: Decimal
    budget: Decimal
    remaining: Decimal
    status: BudgetStatus

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict with the status display label."""
        return {
            "category": self.category,
            "total": self.total,
            "budget": self.budget,
            "remaining": self.remaining,
            "status": self.status.label,
        }


@dataclass(frozen=True)
class AlertEntry(BudgetSummaryEntry):
    """Summary entry that reached the alert threshold."""

    percent: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["percent"] = self.percent
        return data


@dataclass
class ExchangeRateSet:
    """Rates expressed as units of each currency per one unit of base."""

    base_currency: str
    rates: dict[str, Decimal] = field(default_factory=dict)

    def rate_for(self, currency: str) -> Decimal | None:
        """Return the rate for a currency code, or None if absent."""
        return self.rates.get(currency.strip().upper())


@dataclass
class ConversionResult:
    """Outcome of a ledger conversion pass."""

    updated: int = 0
    skipped: int = 0
    unknown_currencies: list[tuple[int, str]] = field(default_factory=list)
    rates_available: bool = True


@dataclass
class DispatchResult:
    """Outcome of sending a batch of notifications."""

    sent: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Total messages attempted."""
        return self.sent + self.failed
