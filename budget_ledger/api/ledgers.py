"""
Ledger API endpoints.

Ledgers, the accounts and categories inside them, and the
ledger-wide balance and budget reports. Routes are thin:
they call a service, commit on success and roll back on any
AppException, which the registered handler then renders.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from budget_ledger.api.deps import get_owner
from budget_ledger.exceptions import AppException
from budget_ledger.models.base import get_db
from budget_ledger.schemas.balance import AccountBalanceResponse
from budget_ledger.schemas.budget import BudgetStatusRow, BudgetTotals
from budget_ledger.schemas.transaction import TransactionResponse
from budget_ledger.schemas.ledger import (
    AccountCreate,
    AccountResponse,
    CategoriesCreate,
    CategoryCreate,
    LedgerCreate,
    LedgerResponse,
    LedgerUpdate,
)
from budget_ledger.services.balance_service import BalanceService
from budget_ledger.services.budget_service import BudgetService
from budget_ledger.services.ledger_service import LedgerService
from budget_ledger.services.transaction_service import TransactionService

router = APIRouter(prefix="/ledgers", tags=["Ledgers"])


# --- Ledger Endpoints ---

@router.post("", response_model=LedgerResponse, status_code=201)
def create_ledger(
    request: LedgerCreate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """
    Create a ledger.

    The Income, Off-budget and Unassigned accounts are created
    with it.
    """
    service = LedgerService(db)
    try:
        ledger = service.create_ledger(owner, request)
        db.commit()
        return ledger
    except AppException:
        db.rollback()
        raise


@router.get("", response_model=list[LedgerResponse])
def list_ledgers(
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return LedgerService(db).list_ledgers(owner)


@router.get("/{ledger_id}", response_model=LedgerResponse)
def get_ledger(
    ledger_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return LedgerService(db).get_ledger(owner, ledger_id)


@router.patch("/{ledger_id}", response_model=LedgerResponse)
def update_ledger(
    ledger_id: int,
    request: LedgerUpdate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        ledger = service.update_ledger(owner, ledger_id, request)
        db.commit()
        return ledger
    except AppException:
        db.rollback()
        raise


@router.delete("/{ledger_id}", status_code=204)
def delete_ledger(
    ledger_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Delete a ledger with all of its accounts, transactions and history."""
    service = LedgerService(db)
    try:
        service.delete_ledger(owner, ledger_id)
        db.commit()
    except AppException:
        db.rollback()
        raise
    return Response(status_code=204)


# --- Balances ---

@router.get("/{ledger_id}/balances", response_model=list[AccountBalanceResponse])
def get_ledger_balances(
    ledger_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Current balance of every account, ordered by type then name."""
    return BalanceService(db).get_ledger_balances(owner, ledger_id)


@router.post(
    "/{ledger_id}/rebuild-balances",
    response_model=list[AccountBalanceResponse],
)
def rebuild_ledger_balances(
    ledger_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Recompute every balance chain of the ledger from its transactions."""
    service = BalanceService(db)
    try:
        service.rebuild_ledger_balances(owner, ledger_id)
        db.commit()
    except AppException:
        db.rollback()
        raise
    return service.get_ledger_balances(owner, ledger_id)


# --- Budget ---

@router.get("/{ledger_id}/budget", response_model=list[BudgetStatusRow])
def get_budget_status(
    ledger_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """
    Budgeted, activity and balance per category.

    With a date window, balance is budgeted + activity inside
    the window.
    """
    return BudgetService(db).get_budget_status(
        owner, ledger_id, start_date, end_date
    )


@router.get("/{ledger_id}/budget/totals", response_model=BudgetTotals)
def get_budget_totals(
    ledger_id: int,
    period: str | None = Query(default=None, description="Month as YYYYMM"),
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return BudgetService(db).get_budget_totals(owner, ledger_id, period)


# --- Accounts & Categories ---

@router.post(
    "/{ledger_id}/accounts", response_model=AccountResponse, status_code=201
)
def create_account(
    ledger_id: int,
    request: AccountCreate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        account = service.create_account(owner, ledger_id, request)
        db.commit()
        return account
    except AppException:
        db.rollback()
        raise


@router.get("/{ledger_id}/accounts", response_model=list[AccountResponse])
def list_accounts(
    ledger_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return LedgerService(db).list_accounts(owner, ledger_id)


@router.post(
    "/{ledger_id}/categories", response_model=AccountResponse, status_code=201
)
def create_category(
    ledger_id: int,
    request: CategoryCreate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        category = service.create_category(owner, ledger_id, request.name)
        db.commit()
        return category
    except AppException:
        db.rollback()
        raise


@router.post(
    "/{ledger_id}/categories/bulk",
    response_model=list[AccountResponse],
    status_code=201,
)
def create_categories(
    ledger_id: int,
    request: CategoriesCreate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Create several categories; one duplicate name rejects them all."""
    service = LedgerService(db)
    try:
        categories = service.create_categories(owner, ledger_id, request.names)
        db.commit()
        return categories
    except AppException:
        db.rollback()
        raise


@router.get("/{ledger_id}/categories", response_model=list[AccountResponse])
def list_categories(
    ledger_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return LedgerService(db).list_categories(owner, ledger_id)


@router.get("/{ledger_id}/categories/find", response_model=AccountResponse)
def find_category(
    ledger_id: int,
    name: str,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Exact, case-sensitive lookup by name."""
    return LedgerService(db).find_category_by_name(owner, ledger_id, name)


# --- Transactions ---

@router.get("/{ledger_id}/transactions", response_model=list[TransactionResponse])
def list_transactions(
    ledger_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    account_id: int | None = None,
    include_deleted: bool = False,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """
    Transactions of the ledger, newest first.

    Deleted or corrected originals and their reversals are
    hidden unless include_deleted is set.
    """
    return TransactionService(db).list_transactions(
        owner, ledger_id, start_date, end_date,
        include_deleted=include_deleted, account_id=account_id,
    )
