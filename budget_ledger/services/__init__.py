"""Business logic services."""

from budget_ledger.services.ledger_service import LedgerService
from budget_ledger.services.balance_service import BalanceService
from budget_ledger.services.transaction_service import TransactionService
from budget_ledger.services.correction_service import CorrectionService
from budget_ledger.services.budget_service import BudgetService

__all__ = [
    "LedgerService",
    "BalanceService",
    "TransactionService",
    "CorrectionService",
    "BudgetService",
]
