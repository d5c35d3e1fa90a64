"""
Pydantic schemas for transaction operations.

Amounts are integers in minor currency units. Flow is kept
as a plain string here: TransactionService validates it in
a fixed order after the amount, so a bad flow and a bad
amount always produce the same error regardless of caller.
"""

import datetime as dt

from pydantic import AliasChoices, BaseModel, Field

from budget_ledger.models.enums import MutationType, TransactionStatus


class TransactionCreate(BaseModel):
    ledger_id: int
    date: dt.date
    description: str = ""
    flow: str
    amount: int
    account_id: int
    category_id: int | None = None
    metadata: dict | None = None


class BulkTransactionsCreate(BaseModel):
    transactions: list[TransactionCreate] = Field(min_length=1)


class CategoryAssignment(BaseModel):
    """Move money from the ledger's Income account into a category."""
    ledger_id: int
    category_id: int
    amount: int
    date: dt.date
    description: str = "Budget assignment"


class TransactionCorrection(BaseModel):
    flow: str
    account_id: int
    category_id: int | None = None
    amount: int
    description: str = ""
    date: dt.date
    reason: str | None = None


class TransactionDeletion(BaseModel):
    reason: str | None = None


# --- Response Schemas ---

class TransactionResponse(BaseModel):
    id: int
    ledger_id: int
    date: dt.date
    description: str
    amount: int
    status: TransactionStatus
    debit_account_id: int
    credit_account_id: int
    reversal_of_id: int | None
    deleted_at: dt.datetime | None
    metadata: dict | None = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class BulkItemResult(BaseModel):
    """Outcome of one item of a bulk posting."""
    index: int
    status: str  # success | error | rolled_back | skipped
    transaction_id: int | None = None
    error_code: str | None = None
    message: str | None = None


class BulkPostResult(BaseModel):
    committed: bool
    items: list[BulkItemResult]

    @property
    def failed_item(self) -> BulkItemResult | None:
        for item in self.items:
            if item.status == "error":
                return item
        return None


class TransactionLogResponse(BaseModel):
    id: int
    original_transaction_id: int
    reversal_transaction_id: int | None
    correction_transaction_id: int | None
    mutation_type: MutationType
    reason: str | None
    created_at: dt.datetime

    model_config = {"from_attributes": True}
