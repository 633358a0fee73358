"""fxbudget - Multi-currency ledger conversion and budget alerts."""

from fxbudget.budget import BudgetTracker
from fxbudget.ledger import CsvLedger
from fxbudget.models import BudgetStatus, TransactionRecord
from fxbudget.rates import ExchangeRateProvider

__version__ = "0.1.0"
__all__ = ["BudgetStatus", "BudgetTracker", "CsvLedger", "ExchangeRateProvider", "TransactionRecord"]
