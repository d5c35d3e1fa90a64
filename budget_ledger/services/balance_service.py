"""
Balance service: materialized running balances.

Every posted transaction appends one BalanceSnapshot per
account it touches: debit leg first, then credit leg. Each
snapshot is derived from the account's previous snapshot:

    balance = previous_balance + delta

where delta is +amount for a debit to an asset_like account
or a credit to a liability_like account, and -amount for the
other two cases.

Snapshots are never edited. rebuild_account_balance()
replaces an account's whole chain by replaying its
transactions in insertion order, for repair after corruption
or bulk import.
"""

import logging

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from budget_ledger.config import get_settings
from budget_ledger.exceptions import InconsistentError, InvalidInputError
from budget_ledger.models.account import Account
from budget_ledger.models.balance_snapshot import BalanceSnapshot
from budget_ledger.models.enums import InternalType, OperationType
from budget_ledger.models.transaction import Transaction
from budget_ledger.schemas.balance import AccountBalanceResponse
from budget_ledger.services.ledger_service import LedgerService
from budget_ledger.services.locking import acquire_ledger_locks

logger = logging.getLogger(__name__)


def leg_delta(internal_type: InternalType, amount: int, is_debit: bool) -> int:
    """Signed balance change of one leg of a transaction."""
    debit_sign = 1 if internal_type == InternalType.ASSET_LIKE else -1
    return debit_sign * amount if is_debit else -debit_sign * amount


def transaction_delta(account: Account, transaction: Transaction) -> int:
    """Signed effect of a transaction on one of its two accounts."""
    if transaction.debit_account_id == account.id:
        return leg_delta(account.internal_type, transaction.amount, True)
    if transaction.credit_account_id == account.id:
        return leg_delta(account.internal_type, transaction.amount, False)
    return 0


class BalanceService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.settings = get_settings()

    # --- Write path ---

    def apply_transaction(
        self, transaction: Transaction, operation_type: OperationType
    ) -> list[BalanceSnapshot]:
        """
        Append the debit-leg and credit-leg snapshots of a
        freshly inserted transaction.

        Must run in the same session as the insert. The ledger
        write lock is taken here if the caller has not already
        taken it.
        """
        acquire_ledger_locks(self.db, [transaction.ledger_id])

        snapshots = []
        legs = (
            (transaction.debit_account_id, True),
            (transaction.credit_account_id, False),
        )
        for account_id, is_debit in legs:
            account = self.db.get(Account, account_id)
            latest = self._latest_snapshot(account_id)
            self._check_link(account, latest, transaction)

            previous_balance = latest.balance if latest else 0
            delta = leg_delta(account.internal_type, transaction.amount, is_debit)
            snapshot = BalanceSnapshot(
                account_id=account_id,
                transaction_id=transaction.id,
                owner=transaction.owner,
                previous_balance=previous_balance,
                delta=delta,
                balance=previous_balance + delta,
                operation_type=operation_type,
            )
            self.db.add(snapshot)
            self.db.flush()
            snapshots.append(snapshot)

        logger.debug(
            "Transaction %s: account %s -> %s, account %s -> %s",
            transaction.id,
            snapshots[0].account_id, snapshots[0].balance,
            snapshots[1].account_id, snapshots[1].balance,
        )
        return snapshots

    def rebuild_account_balance(self, owner: str, account_id: int) -> int:
        """
        Recompute an account's snapshot chain from its history.

        Replays every transaction touching the account in
        insertion order. Returns the final balance.
        """
        account = self.ledger_service.get_account(owner, account_id)
        acquire_ledger_locks(self.db, [account.ledger_id])

        self.db.execute(
            delete(BalanceSnapshot)
            .where(BalanceSnapshot.account_id == account.id)
            .execution_options(synchronize_session=False)
        )
        self.db.expire_all()

        running = 0
        for transaction in self._transactions_for(account):
            delta = transaction_delta(account, transaction)
            self.db.add(BalanceSnapshot(
                account_id=account.id,
                transaction_id=transaction.id,
                owner=account.owner,
                previous_balance=running,
                delta=delta,
                balance=running + delta,
                operation_type=OperationType.REBUILD,
            ))
            running += delta
        self.db.flush()

        logger.info(
            "Rebuilt balance chain for account %s: balance=%s",
            account.id, running,
        )
        return running

    def rebuild_ledger_balances(self, owner: str, ledger_id: int) -> dict[int, int]:
        """Rebuild every account of a ledger. Returns {account_id: balance}."""
        ledger = self.ledger_service.get_ledger(owner, ledger_id)
        acquire_ledger_locks(self.db, [ledger.id])
        accounts = self.ledger_service.list_accounts(owner, ledger.id)
        return {
            account.id: self.rebuild_account_balance(owner, account.id)
            for account in accounts
        }

    # --- Read path ---

    def get_current_balance(self, account_id: int) -> int:
        """Balance from the newest snapshot, 0 for an untouched account."""
        latest = self._latest_snapshot(account_id)
        return latest.balance if latest else 0

    def get_account_balance(self, owner: str, account_id: int) -> int:
        account = self.ledger_service.get_account(owner, account_id)
        return self.get_current_balance(account.id)

    def get_account_balance_history(
        self, owner: str, account_id: int, limit: int | None = None
    ) -> list[BalanceSnapshot]:
        """Return the account's snapshots, newest first."""
        if limit is None:
            limit = self.settings.BALANCE_HISTORY_DEFAULT_LIMIT
        if limit <= 0:
            raise InvalidInputError(
                f"limit must be positive (got {limit})",
                details={"field": "limit"},
            )

        account = self.ledger_service.get_account(owner, account_id)
        snapshots = self.db.execute(
            select(BalanceSnapshot)
            .where(BalanceSnapshot.account_id == account.id)
            .order_by(
                BalanceSnapshot.transaction_id.desc(),
                BalanceSnapshot.id.desc(),
            )
            .limit(limit)
        ).scalars().all()
        return list(snapshots)

    def get_ledger_balances(
        self, owner: str, ledger_id: int
    ) -> list[AccountBalanceResponse]:
        """Current balance of every account in a ledger, by type then name."""
        accounts = self.ledger_service.list_accounts(owner, ledger_id)
        return [
            AccountBalanceResponse(
                account_id=account.id,
                name=account.name,
                account_type=account.account_type,
                internal_type=account.internal_type,
                balance=self.get_current_balance(account.id),
            )
            for account in accounts
        ]

    def verify_account_balance(self, owner: str, account_id: int) -> int:
        """
        Check an account's chain against its transaction history.

        Verifies the arithmetic of every snapshot, that each one
        starts where the previous one ended, and that the chain
        matches a replay of the transactions. Raises
        InconsistentError on the first mismatch; returns the
        balance otherwise.
        """
        account = self.ledger_service.get_account(owner, account_id)
        snapshots = self.db.execute(
            select(BalanceSnapshot)
            .where(BalanceSnapshot.account_id == account.id)
            .order_by(BalanceSnapshot.transaction_id, BalanceSnapshot.id)
        ).scalars().all()
        transactions = self._transactions_for(account)

        details = {"resource": "Account", "id": account.id,
                   "ledger_id": account.ledger_id}

        if len(snapshots) != len(transactions):
            raise InconsistentError(
                f"Account {account.id} has {len(snapshots)} balance snapshots "
                f"for {len(transactions)} transactions",
                details=details,
            )

        running = 0
        for snapshot, transaction in zip(snapshots, transactions):
            expected_delta = transaction_delta(account, transaction)
            if (
                snapshot.transaction_id != transaction.id
                or snapshot.previous_balance != running
                or snapshot.delta != expected_delta
                or snapshot.balance != snapshot.previous_balance + snapshot.delta
            ):
                raise InconsistentError(
                    f"Balance chain of account {account.id} breaks at "
                    f"transaction {transaction.id}",
                    details={**details, "transaction_id": transaction.id},
                )
            running = snapshot.balance

        return running

    # --- Helpers ---

    def _latest_snapshot(self, account_id: int) -> BalanceSnapshot | None:
        return self.db.execute(
            select(BalanceSnapshot)
            .where(BalanceSnapshot.account_id == account_id)
            .order_by(
                BalanceSnapshot.transaction_id.desc(),
                BalanceSnapshot.id.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()

    def _transactions_for(self, account: Account) -> list[Transaction]:
        transactions = self.db.execute(
            select(Transaction)
            .where(
                or_(
                    Transaction.debit_account_id == account.id,
                    Transaction.credit_account_id == account.id,
                )
            )
            .order_by(Transaction.id)
        ).scalars().all()
        return list(transactions)

    def _check_link(
        self,
        account: Account,
        latest: BalanceSnapshot | None,
        transaction: Transaction,
    ) -> None:
        """Refuse to extend a chain whose head is broken or out of order."""
        if latest is None:
            return
        details = {"resource": "Account", "id": account.id,
                   "ledger_id": account.ledger_id,
                   "transaction_id": transaction.id}
        if latest.balance != latest.previous_balance + latest.delta:
            raise InconsistentError(
                f"Latest balance snapshot of account {account.id} does not "
                f"add up; rebuild the account balance",
                details=details,
            )
        if latest.transaction_id >= transaction.id:
            raise InconsistentError(
                f"Account {account.id} already has a snapshot for transaction "
                f"{latest.transaction_id}, not older than {transaction.id}",
                details=details,
            )
