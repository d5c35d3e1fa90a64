"""
Database models package.

All models must be imported here so that Base.metadata knows
every table before create_all() runs.
"""

from budget_ledger.models.base import Base
from budget_ledger.models.enums import (
    AccountType,
    InternalType,
    Flow,
    TransactionStatus,
    OperationType,
    MutationType,
)
from budget_ledger.models.ledger import Ledger
from budget_ledger.models.account import Account
from budget_ledger.models.transaction import Transaction
from budget_ledger.models.balance_snapshot import BalanceSnapshot
from budget_ledger.models.transaction_log import TransactionLog

__all__ = [
    "Base",
    "AccountType",
    "InternalType",
    "Flow",
    "TransactionStatus",
    "OperationType",
    "MutationType",
    "Ledger",
    "Account",
    "Transaction",
    "BalanceSnapshot",
    "TransactionLog",
]
