"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored.
"""

import enum


class AccountType(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class InternalType(str, enum.Enum):
    """Behavioral polarity: which side of an entry increases the balance."""
    ASSET_LIKE = "asset_like"
    LIABILITY_LIKE = "liability_like"


class Flow(str, enum.Enum):
    """Direction of money relative to the subject account."""
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    POSTED = "posted"


class OperationType(str, enum.Enum):
    """What caused a balance snapshot to be written."""
    TRANSACTION_INSERT = "transaction_insert"
    TRANSACTION_UPDATE_REVERSAL = "transaction_update_reversal"
    TRANSACTION_UPDATE_CORRECTION = "transaction_update_correction"
    TRANSACTION_DELETE = "transaction_delete"
    REBUILD = "rebuild"


class MutationType(str, enum.Enum):
    CORRECTION = "correction"
    DELETION = "deletion"
