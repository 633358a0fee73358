"""Pytest configuration and fixtures."""

from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from fxbudget.config import Settings
from fxbudget.models import TransactionRecord

LEDGER_CSV = """Date,Description,Category,Amount (Base),Amount (Local),Currency
2026-01-05,Groceries,Food,,92.50,EUR
2026-01-06,Taxi,Transport,,1500,JPY
2026-01-07,Lunch,Food,12.00,12.00,USD
2026-01-08,Note only,,,,
"""


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config and cache lookups inside the test's tmp dir."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg_config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg_cache"))
    monkeypatch.delenv("EXCHANGE_RATE_API_KEY", raising=False)


@pytest.fixture
def settings() -> Settings:
    """Return default-like settings with an alert recipient."""
    return Settings({
        "Base Currency": "USD",
        "Alert Email": "user@example.com",
        "Budget Limit": 5000,
        "Alert Threshold": "80%",
    })


@pytest.fixture
def ledger_file(tmp_path: Path) -> Path:
    """Return path to a small CSV ledger."""
    path = tmp_path / "transactions.csv"
    path.write_text(LEDGER_CSV, encoding="utf-8")
    return path


def make_record(
    category: str,
    amount_base: str | None = None,
    amount_local: str | None = None,
    currency: str = "",
) -> TransactionRecord:
    """Build a record with only the fields the tests care about."""
    return TransactionRecord(
        date=None,
        description="test",
        category=category,
        amount_base=Decimal(amount_base) if amount_base is not None else None,
        amount_local=Decimal(amount_local) if amount_local is not None else None,
        currency=currency,
    )


def make_response(status_code: int = 200, payload: object = None) -> MagicMock:
    """Build a fake requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response
