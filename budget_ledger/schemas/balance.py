"""
Pydantic schemas for balance queries.
"""

from datetime import datetime

from pydantic import BaseModel

from budget_ledger.models.enums import AccountType, InternalType, OperationType


class AccountBalanceResponse(BaseModel):
    account_id: int
    name: str
    account_type: AccountType
    internal_type: InternalType
    balance: int


class BalanceSnapshotResponse(BaseModel):
    transaction_id: int
    previous_balance: int
    delta: int
    balance: int
    operation_type: OperationType
    created_at: datetime

    model_config = {"from_attributes": True}
