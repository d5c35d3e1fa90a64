"""
Account API endpoints.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from budget_ledger.api.deps import get_owner
from budget_ledger.exceptions import AppException
from budget_ledger.models.base import get_db
from budget_ledger.schemas.balance import (
    AccountBalanceResponse,
    BalanceSnapshotResponse,
)
from budget_ledger.schemas.ledger import AccountResponse, AccountUpdate
from budget_ledger.services.balance_service import BalanceService
from budget_ledger.services.ledger_service import LedgerService

router = APIRouter(prefix="/accounts", tags=["Accounts"])


def _balance_response(account, balance: int) -> AccountBalanceResponse:
    return AccountBalanceResponse(
        account_id=account.id,
        name=account.name,
        account_type=account.account_type,
        internal_type=account.internal_type,
        balance=balance,
    )


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return LedgerService(db).get_account(owner, account_id)


@router.patch("/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: int,
    request: AccountUpdate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """
    Update an account.

    Changing the type between asset-like and liability-like
    rebuilds the account's balance history. Special accounts
    cannot be renamed or retyped.
    """
    service = LedgerService(db)
    try:
        account = service.update_account(owner, account_id, request)
        db.commit()
        return account
    except AppException:
        db.rollback()
        raise


@router.delete("/{account_id}", status_code=204)
def delete_account(
    account_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Delete an account that no transaction references."""
    service = LedgerService(db)
    try:
        service.delete_account(owner, account_id)
        db.commit()
    except AppException:
        db.rollback()
        raise
    return Response(status_code=204)


@router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Current balance, read from the newest balance snapshot."""
    account = LedgerService(db).get_account(owner, account_id)
    balance = BalanceService(db).get_account_balance(owner, account.id)
    return _balance_response(account, balance)


@router.get(
    "/{account_id}/balance-history",
    response_model=list[BalanceSnapshotResponse],
)
def get_balance_history(
    account_id: int,
    limit: int | None = None,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Balance snapshots of the account, newest first."""
    return BalanceService(db).get_account_balance_history(
        owner, account_id, limit
    )


@router.post("/{account_id}/rebuild-balance", response_model=AccountBalanceResponse)
def rebuild_account_balance(
    account_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    service = BalanceService(db)
    try:
        balance = service.rebuild_account_balance(owner, account_id)
        db.commit()
    except AppException:
        db.rollback()
        raise
    account = LedgerService(db).get_account(owner, account_id)
    return _balance_response(account, balance)
