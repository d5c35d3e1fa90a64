"""
Transaction API endpoints.

Posting, budgeting money into categories, and the
non-destructive correct/delete workflow.
"""

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from budget_ledger.api.deps import get_owner
from budget_ledger.exceptions import AppException
from budget_ledger.models.base import get_db
from budget_ledger.schemas.transaction import (
    BulkPostResult,
    BulkTransactionsCreate,
    CategoryAssignment,
    TransactionCorrection,
    TransactionCreate,
    TransactionDeletion,
    TransactionLogResponse,
    TransactionResponse,
)
from budget_ledger.services.correction_service import CorrectionService
from budget_ledger.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post("", response_model=TransactionResponse, status_code=201)
def post_transaction(
    request: TransactionCreate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """
    Post a transaction described as a flow on a subject account.

    The debit and credit legs are resolved from the subject's
    type and the flow. Without a category_id the ledger's
    Unassigned account takes the other leg.
    """
    service = TransactionService(db)
    try:
        txn = service.post_transaction(owner, request)
        db.commit()
        return txn
    except AppException:
        db.rollback()
        raise


@router.post(
    "/bulk",
    response_model=BulkPostResult,
    status_code=201,
    responses={422: {"model": BulkPostResult}},
)
def bulk_post_transactions(
    request: BulkTransactionsCreate,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """
    Post a batch all-or-nothing.

    If any item fails nothing is kept and the per-item report
    comes back with status 422.
    """
    service = TransactionService(db)
    result = service.bulk_post_transactions(owner, request.transactions)
    if not result.committed:
        return JSONResponse(status_code=422, content=result.model_dump())
    db.commit()
    return result


@router.post("/assign", response_model=TransactionResponse, status_code=201)
def assign_to_category(
    request: CategoryAssignment,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Budget money by moving it from Income into a category."""
    service = TransactionService(db)
    try:
        txn = service.assign_to_category(owner, request)
        db.commit()
        return txn
    except AppException:
        db.rollback()
        raise


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return TransactionService(db).get_transaction(owner, transaction_id)


@router.post(
    "/{transaction_id}/correct",
    response_model=TransactionResponse,
    status_code=201,
)
def correct_transaction(
    transaction_id: int,
    request: TransactionCorrection,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """
    Replace a transaction with corrected values.

    The original is reversed and a new transaction posted.
    Returns the new transaction.
    """
    service = CorrectionService(db)
    try:
        txn = service.correct_transaction(owner, transaction_id, request)
        db.commit()
        return txn
    except AppException:
        db.rollback()
        raise


@router.delete("/{transaction_id}", response_model=TransactionResponse)
def delete_transaction(
    transaction_id: int,
    request: TransactionDeletion | None = Body(default=None),
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    """Cancel a transaction by reversing it. Returns the reversal."""
    service = CorrectionService(db)
    reason = request.reason if request else None
    try:
        reversal = service.delete_transaction(owner, transaction_id, reason)
        db.commit()
        return reversal
    except AppException:
        db.rollback()
        raise


@router.get(
    "/{transaction_id}/log",
    response_model=list[TransactionLogResponse],
)
def get_transaction_log(
    transaction_id: int,
    owner: str = Depends(get_owner),
    db: Session = Depends(get_db),
):
    return CorrectionService(db).get_transaction_log(owner, transaction_id)
