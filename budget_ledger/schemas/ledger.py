"""
Pydantic schemas for ledger and account operations.

Request schemas only describe shape. Semantic rules (name
length, forbidden characters, valid account types) are
enforced by LedgerService so that the service raises the
same typed errors whether it is called over HTTP or directly.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field

from budget_ledger.models.enums import AccountType, InternalType


# --- Request Schemas ---

class LedgerCreate(BaseModel):
    name: str
    description: str | None = None
    metadata: dict | None = None


class LedgerUpdate(BaseModel):
    """Fields left as None are not changed."""
    name: str | None = None
    description: str | None = None
    metadata: dict | None = None


class AccountCreate(BaseModel):
    name: str
    account_type: str
    description: str | None = None
    metadata: dict | None = None


class AccountUpdate(BaseModel):
    """Fields left as None are not changed."""
    name: str | None = None
    account_type: str | None = None
    description: str | None = None
    metadata: dict | None = None


class CategoryCreate(BaseModel):
    name: str


class CategoriesCreate(BaseModel):
    names: list[str] = Field(min_length=1)


# --- Response Schemas ---

class LedgerResponse(BaseModel):
    id: int
    name: str
    description: str | None
    metadata: dict | None = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountResponse(BaseModel):
    id: int
    ledger_id: int
    name: str
    description: str | None
    account_type: AccountType
    internal_type: InternalType
    is_special: bool
    metadata: dict | None = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: datetime

    model_config = {"from_attributes": True}
