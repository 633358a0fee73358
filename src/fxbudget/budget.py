"""Budget aggregation: category totals, status and alert selection."""

import logging
from collections.abc import Iterable
from decimal import Decimal

from fxbudget.config import Settings
from fxbudget.ledger import Ledger
from fxbudget.models import AlertEntry, BudgetStatus, BudgetSummaryEntry, TransactionRecord
from fxbudget.utils.formatting import (
    format_currency,
    format_percent,
    round_money,
    round_percent,
)
from fxbudget.utils.parsing import to_decimal

logger = logging.getLogger(__name__)

Number = Decimal | int | float


def _as_decimal(value: Number) -> Decimal:
    result = to_decimal(value)
    if result is None:
        raise TypeError(f"Expected a number, got {value!r}")
    return result


def compute_category_totals(records: Iterable[TransactionRecord]) -> dict[str, Decimal]:
    """
    Sum base amounts per category.

    Records with a blank category or a non-numeric base amount are left
    out. Totals are rounded once, after summing.

    Returns:
        Mapping of trimmed category name to total
    """
    totals: dict[str, Decimal] = {}
    excluded = 0

    for record in records:
        category = (record.category or "").strip()
        amount = to_decimal(record.amount_base)
        if not category or amount is None:
            excluded += 1
            continue
        totals[category] = totals.get(category, Decimal("0")) + amount

    if excluded:
        logger.debug("Excluded %d records without category or base amount", excluded)

    return {category: round_money(total) for category, total in totals.items()}


def classify(spent: Number, budget: Number, threshold: Number) -> BudgetStatus:
    """
    Classify spending against a budget.

    A budget of zero or less means no limit and is always OK. Both
    boundaries are inclusive: exactly the budget is OVER_BUDGET, exactly
    the threshold share is WARNING.
    """
    spent_d = _as_decimal(spent)
    budget_d = _as_decimal(budget)
    threshold_d = _as_decimal(threshold)

    if budget_d <= 0:
        return BudgetStatus.OK
    if spent_d >= budget_d:
        return BudgetStatus.OVER_BUDGET
    if spent_d >= budget_d * threshold_d:
        return BudgetStatus.WARNING
    return BudgetStatus.OK


def build_summary(
    records: Iterable[TransactionRecord],
    budget_limit: Number,
    threshold: Number,
) -> list[BudgetSummaryEntry]:
    """
    Build one summary entry per category, sorted by category name.

    Every category shares the same budget limit.
    """
    budget = _as_decimal(budget_limit)
    totals = compute_category_totals(records)

    summary: list[BudgetSummaryEntry] = []
    for category in sorted(totals):
        spent = totals[category]
        summary.append(
            BudgetSummaryEntry(
                category=category,
                total=spent,
                budget=budget,
                remaining=round_money(budget - spent),
                status=classify(spent, budget, threshold),
            )
        )
    return summary


def select_over_threshold(
    summary: Iterable[BudgetSummaryEntry],
    threshold: Number,
) -> list[AlertEntry]:
    """
    Select entries whose spending reached the threshold share of budget.

    Entries with no budget are never selected. Summary order is kept.
    """
    threshold_d = _as_decimal(threshold)
    alerts: list[AlertEntry] = []

    for entry in summary:
        if entry.budget <= 0:
            continue
        if entry.total < entry.budget * threshold_d:
            continue
        alerts.append(
            AlertEntry(
                category=entry.category,
                total=entry.total,
                budget=entry.budget,
                remaining=entry.remaining,
                status=entry.status,
                percent=round_percent(entry.total / entry.budget),
            )
        )
    return alerts


def format_alerts_report(alerts: list[AlertEntry]) -> str:
    """Render alert entries as a short plain-text report."""
    if not alerts:
        return "All categories are within budget."

    lines = ["Budget alerts:", ""]
    for alert in alerts:
        lines.append(
            f"{alert.category}: {format_percent(alert.percent / 100)} of budget "
            f"({format_currency(alert.total)} / {format_currency(alert.budget)})"
        )
    return "\n".join(lines)


class BudgetTracker:
    """
    Budget status of a ledger using limits from settings.

    Usage:
        tracker = BudgetTracker(CsvLedger(path), settings)
        for entry in tracker.summary():
            ...
    """

    def __init__(self, ledger: Ledger, settings: Settings) -> None:
        self.ledger = ledger
        self.settings = settings

    def totals(self) -> dict[str, Decimal]:
        return compute_category_totals(self.ledger.load())

    def summary(self) -> list[BudgetSummaryEntry]:
        """Summary of every category, read fresh from the ledger."""
        return build_summary(
            self.ledger.load(),
            self.settings.budget_limit,
            self.settings.alert_threshold,
        )

    def alerts(self) -> list[AlertEntry]:
        """Categories at or above the alert threshold."""
        return select_over_threshold(self.summary(), self.settings.alert_threshold)
