"""
Correction service: non-destructive edits and deletions.

Posted transactions are never modified in place:

- delete_transaction() appends a reversal (same amount, same
  accounts, legs swapped) that cancels the original's
  balance effect.
- correct_transaction() appends the same reversal followed
  by a fresh posting built from the new values.

Either way the original is stamped deleted_at and a
TransactionLog row links original, reversal and correction.
All of it happens in the caller's session, which commits or
rolls back the whole mutation.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_ledger.exceptions import ConflictError, InvalidInputError
from budget_ledger.models.enums import MutationType, OperationType
from budget_ledger.models.transaction import Transaction
from budget_ledger.models.transaction_log import TransactionLog
from budget_ledger.schemas.transaction import TransactionCorrection
from budget_ledger.services.locking import acquire_ledger_locks
from budget_ledger.services.transaction_service import (
    MAX_DESCRIPTION_LENGTH,
    PreparedPosting,
    TransactionService,
)

logger = logging.getLogger(__name__)

REVERSAL_PREFIX = "REVERSAL: "
DELETION_PREFIX = "DELETED: "
DEFAULT_CORRECTION_REASON = "Transaction correction"
DEFAULT_DELETION_REASON = "Transaction deleted"
MAX_REASON_LENGTH = 255


class CorrectionService:

    def __init__(self, db: Session):
        self.db = db
        self.transaction_service = TransactionService(db)

    def correct_transaction(
        self, owner: str, transaction_id: int, request: TransactionCorrection
    ) -> Transaction:
        """
        Replace a transaction with corrected values.

        Returns the new correction transaction. The new values
        go through the same validation and debit/credit
        resolution as a fresh posting, in the original's ledger.
        """
        original = self._load_mutable(owner, transaction_id)

        correction = self.transaction_service.prepare(
            owner,
            original.ledger_id,
            request.flow,
            request.amount,
            request.account_id,
            request.category_id,
            request.date,
            request.description,
            original.meta,
        )
        reason = self._clean_reason(request.reason, DEFAULT_CORRECTION_REASON)

        reversal = self._reverse(
            original, REVERSAL_PREFIX, OperationType.TRANSACTION_UPDATE_REVERSAL
        )
        corrected = self.transaction_service.insert(
            correction, OperationType.TRANSACTION_UPDATE_CORRECTION
        )
        self._log(original, reversal, corrected, MutationType.CORRECTION, reason)

        logger.info(
            "Corrected transaction %s: reversal=%s correction=%s",
            original.id, reversal.id, corrected.id,
        )
        return corrected

    def delete_transaction(
        self, owner: str, transaction_id: int, reason: str | None = None
    ) -> Transaction:
        """Cancel a transaction. Returns the reversal transaction."""
        original = self._load_mutable(owner, transaction_id)
        reason = self._clean_reason(reason, DEFAULT_DELETION_REASON)

        reversal = self._reverse(
            original, DELETION_PREFIX, OperationType.TRANSACTION_DELETE
        )
        self._log(original, reversal, None, MutationType.DELETION, reason)

        logger.info(
            "Deleted transaction %s: reversal=%s", original.id, reversal.id
        )
        return reversal

    def get_transaction_log(
        self, owner: str, transaction_id: int
    ) -> list[TransactionLog]:
        """Log rows in which the transaction takes any part, oldest first."""
        txn = self.transaction_service.get_transaction(owner, transaction_id)
        entries = self.db.execute(
            select(TransactionLog)
            .where(
                TransactionLog.owner == owner,
                (TransactionLog.original_transaction_id == txn.id)
                | (TransactionLog.reversal_transaction_id == txn.id)
                | (TransactionLog.correction_transaction_id == txn.id),
            )
            .order_by(TransactionLog.id)
        ).scalars().all()
        return list(entries)

    # --- Helpers ---

    def _load_mutable(self, owner: str, transaction_id: int) -> Transaction:
        """
        Fetch a transaction that may still be corrected or deleted.

        Takes the ledger write lock and re-reads the row before
        checking its state, so a concurrent deletion or correction
        that committed while we waited is seen.
        """
        original = self.transaction_service.get_transaction(owner, transaction_id)
        acquire_ledger_locks(self.db, [original.ledger_id])
        self.db.refresh(original)

        details = {"resource": "Transaction", "id": original.id,
                   "ledger_id": original.ledger_id}
        if original.is_deleted:
            raise ConflictError(
                f"Transaction {original.id} has already been reversed",
                details=details,
            )
        if original.is_reversal:
            raise ConflictError(
                f"Transaction {original.id} is a reversal and cannot be "
                f"corrected or deleted",
                details=details,
            )
        return original

    def _reverse(
        self,
        original: Transaction,
        prefix: str,
        operation_type: OperationType,
    ) -> Transaction:
        reversal = self.transaction_service.insert(
            PreparedPosting(
                ledger_id=original.ledger_id,
                owner=original.owner,
                debit_account_id=original.credit_account_id,
                credit_account_id=original.debit_account_id,
                amount=original.amount,
                date=original.date,
                description=(prefix + original.description)[:MAX_DESCRIPTION_LENGTH],
                metadata=original.meta,
            ),
            operation_type,
            reversal_of_id=original.id,
        )
        original.deleted_at = datetime.utcnow()
        self.db.flush()
        return reversal

    def _log(
        self,
        original: Transaction,
        reversal: Transaction,
        correction: Transaction | None,
        mutation_type: MutationType,
        reason: str,
    ) -> TransactionLog:
        entry = TransactionLog(
            original_transaction_id=original.id,
            reversal_transaction_id=reversal.id,
            correction_transaction_id=correction.id if correction else None,
            owner=original.owner,
            mutation_type=mutation_type,
            reason=reason,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    @staticmethod
    def _clean_reason(reason: str | None, default: str) -> str:
        cleaned = (reason or "").strip() or default
        if len(cleaned) > MAX_REASON_LENGTH:
            raise InvalidInputError(
                f"Reason cannot exceed {MAX_REASON_LENGTH} characters "
                f"(got {len(cleaned)})",
                details={"field": "reason"},
            )
        return cleaned
