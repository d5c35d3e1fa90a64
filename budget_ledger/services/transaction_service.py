"""
Transaction service: turns a flow intent into a posting.

Callers describe money moving relative to a subject account
("500 flowed into Checking, category Groceries"). This
service resolves which account is debited and which is
credited, posts the transaction and has BalanceService
materialize both legs.

Each posting:
1. Validates, in order: amount, flow, date and description,
   ledger, subject account, category. Nothing is written
   until every check passes.
2. Resolves the debit/credit pair from the subject's
   internal_type and the flow, and refuses pairs that would
   move money in or out of Income outside of income received
   and category assignments.
3. Takes the ledger write lock.
4. Inserts the transaction and its two balance snapshots.

The caller controls the commit.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from budget_ledger.config import get_settings
from budget_ledger.exceptions import AppException, InvalidInputError, NotFoundError
from budget_ledger.models.account import Account, INCOME_ACCOUNT, UNASSIGNED_ACCOUNT
from budget_ledger.models.enums import (
    AccountType,
    Flow,
    InternalType,
    OperationType,
    TransactionStatus,
)
from budget_ledger.models.transaction import Transaction
from budget_ledger.schemas.transaction import (
    BulkItemResult,
    BulkPostResult,
    CategoryAssignment,
    TransactionCreate,
)
from budget_ledger.services.balance_service import BalanceService
from budget_ledger.services.ledger_service import LedgerService
from budget_ledger.services.locking import acquire_ledger_locks

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 500


def resolve_debit_credit(
    internal_type: InternalType,
    flow: Flow,
    subject_id: int,
    category_id: int,
) -> tuple[int, int]:
    """
    Return (debit_account_id, credit_account_id).

    For asset-like subjects a debit increases the balance, so
    an inflow debits the subject. For liability-like subjects
    a credit increases the balance, so an inflow credits it.
    The category always takes the other leg.
    """
    subject_is_debited = (
        (internal_type == InternalType.ASSET_LIKE and flow == Flow.INFLOW)
        or (internal_type == InternalType.LIABILITY_LIKE and flow == Flow.OUTFLOW)
    )
    if subject_is_debited:
        return subject_id, category_id
    return category_id, subject_id


@dataclass
class PreparedPosting:
    """A validated posting, ready to insert."""
    ledger_id: int
    owner: str
    debit_account_id: int
    credit_account_id: int
    amount: int
    date: date
    description: str
    metadata: dict | None = None


class TransactionService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.balance_service = BalanceService(db)
        self.settings = get_settings()

    # --- Validation ---

    def _validate_amount(self, amount) -> int:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidInputError(
                f"Transaction amount must be an integer number of minor "
                f"units (got {amount!r})",
                details={"field": "amount"},
            )
        if amount <= 0:
            raise InvalidInputError(
                f"Transaction amount must be positive (got {amount})",
                details={"field": "amount"},
            )
        if amount > self.settings.MAX_TRANSACTION_AMOUNT:
            raise InvalidInputError(
                f"Transaction amount exceeds maximum limit of "
                f"{self.settings.MAX_TRANSACTION_AMOUNT} (got {amount})",
                details={"field": "amount"},
            )
        return amount

    def _validate_flow(self, flow) -> Flow:
        if isinstance(flow, Flow):
            return flow
        try:
            return Flow(flow)
        except ValueError:
            raise InvalidInputError(
                f'Invalid flow: "{flow}". Must be either "inflow" or "outflow"',
                details={"field": "flow"},
            )

    def _validate_date(self, value) -> date:
        if not isinstance(value, date):
            raise InvalidInputError(
                f"Transaction date must be a date (got {value!r})",
                details={"field": "date"},
            )
        today = date.today()
        if value > today + timedelta(days=self.settings.TRANSACTION_MAX_FUTURE_DAYS):
            raise InvalidInputError(
                f"Transaction date cannot be more than "
                f"{self.settings.TRANSACTION_MAX_FUTURE_DAYS} days in the future "
                f"(got {value.isoformat()})",
                details={"field": "date"},
            )
        if value < today - timedelta(days=self.settings.TRANSACTION_MAX_PAST_DAYS):
            raise InvalidInputError(
                f"Transaction date cannot be more than "
                f"{self.settings.TRANSACTION_MAX_PAST_DAYS} days in the past "
                f"(got {value.isoformat()})",
                details={"field": "date"},
            )
        return value

    def _validate_description(self, description: str | None) -> str:
        cleaned = (description or "").strip()
        if len(cleaned) > MAX_DESCRIPTION_LENGTH:
            raise InvalidInputError(
                f"Transaction description cannot exceed "
                f"{MAX_DESCRIPTION_LENGTH} characters (got {len(cleaned)})",
                details={"field": "description"},
            )
        return cleaned

    def _resolve_category(
        self, owner: str, ledger_id: int, category_id: int | None
    ) -> Account:
        """The given equity account, or the ledger's Unassigned account."""
        if category_id is None:
            return self.ledger_service.get_special_account(
                owner, ledger_id, UNASSIGNED_ACCOUNT
            )

        category = self.db.execute(
            select(Account).where(
                Account.id == category_id,
                Account.ledger_id == ledger_id,
                Account.owner == owner,
                Account.account_type == AccountType.EQUITY,
            )
        ).scalar_one_or_none()
        if not category:
            raise NotFoundError("Category", category_id, ledger_id=ledger_id)
        return category

    def _check_budget_flow(
        self, ledger_id: int, subject: Account, category: Account, debit_id: int
    ) -> None:
        """
        Keep Income equal to income received minus money budgeted.

        A special account is only a valid category for postings on
        real (asset or liability) accounts. Income may be credited
        only from a real account and debited only into a budget
        category.
        """
        details = {"field": "category_id", "ledger_id": ledger_id}
        if category.is_special and subject.account_type not in (
            AccountType.ASSET, AccountType.LIABILITY,
        ):
            raise InvalidInputError(
                f'"{category.name}" can only be the category of a transaction '
                f"on an asset or liability account",
                details=details,
            )

        debited, credited = (
            (subject, category) if debit_id == subject.id else (category, subject)
        )
        if (
            credited.is_special and credited.name == INCOME_ACCOUNT
            and debited.account_type not in (AccountType.ASSET, AccountType.LIABILITY)
        ):
            raise InvalidInputError(
                f'Money can only flow into "{INCOME_ACCOUNT}" from an asset '
                f"or liability account",
                details=details,
            )
        if (
            debited.is_special and debited.name == INCOME_ACCOUNT
            and not credited.is_category
        ):
            raise InvalidInputError(
                f'Money can only leave "{INCOME_ACCOUNT}" by assignment to a '
                f"budget category",
                details=details,
            )

    def prepare(
        self,
        owner: str,
        ledger_id: int,
        flow,
        amount,
        account_id: int,
        category_id: int | None,
        txn_date,
        description: str | None,
        metadata: dict | None = None,
    ) -> PreparedPosting:
        """
        Validate a flow intent and resolve its debit/credit pair.

        Shared by posting and correction. Performs no writes.
        """
        amount = self._validate_amount(amount)
        flow = self._validate_flow(flow)
        txn_date = self._validate_date(txn_date)
        description = self._validate_description(description)

        ledger = self.ledger_service.get_ledger(owner, ledger_id)
        subject = self.ledger_service.get_ledger_account(owner, ledger.id, account_id)
        category = self._resolve_category(owner, ledger.id, category_id)

        if subject.id == category.id:
            raise InvalidInputError(
                f'Account "{subject.name}" cannot be both the subject and '
                f"the category of a transaction",
                details={"field": "category_id", "ledger_id": ledger.id},
            )

        debit_id, credit_id = resolve_debit_credit(
            subject.internal_type, flow, subject.id, category.id
        )
        self._check_budget_flow(ledger.id, subject, category, debit_id)
        return PreparedPosting(
            ledger_id=ledger.id,
            owner=owner,
            debit_account_id=debit_id,
            credit_account_id=credit_id,
            amount=amount,
            date=txn_date,
            description=description,
            metadata=metadata,
        )

    # --- Posting ---

    def insert(
        self,
        posting: PreparedPosting,
        operation_type: OperationType = OperationType.TRANSACTION_INSERT,
        reversal_of_id: int | None = None,
    ) -> Transaction:
        """
        Insert a resolved posting and materialize its balances.

        The ledger lock is taken before the insert so that
        transaction ids increase in the order postings commit.
        """
        acquire_ledger_locks(self.db, [posting.ledger_id])

        txn = Transaction(
            ledger_id=posting.ledger_id,
            owner=posting.owner,
            date=posting.date,
            description=posting.description,
            meta=posting.metadata,
            amount=posting.amount,
            status=TransactionStatus.POSTED,
            debit_account_id=posting.debit_account_id,
            credit_account_id=posting.credit_account_id,
            reversal_of_id=reversal_of_id,
        )
        self.db.add(txn)
        self.db.flush()

        self.balance_service.apply_transaction(txn, operation_type)
        return txn

    def post_transaction(self, owner: str, request: TransactionCreate) -> Transaction:
        """
        Post a single transaction.

        Raises InvalidInputError or NotFoundError before writing
        anything. The caller commits.
        """
        posting = self.prepare(
            owner,
            request.ledger_id,
            request.flow,
            request.amount,
            request.account_id,
            request.category_id,
            request.date,
            request.description,
            request.metadata,
        )
        txn = self.insert(posting)
        logger.info(
            "Posted transaction %s in ledger %s: %s D:%s C:%s",
            txn.id, txn.ledger_id, txn.amount,
            txn.debit_account_id, txn.credit_account_id,
        )
        return txn

    def bulk_post_transactions(
        self, owner: str, requests: list[TransactionCreate]
    ) -> BulkPostResult:
        """
        Post a batch of transactions all-or-nothing.

        Items are posted in order. On the first failure the
        session is rolled back, and the result reports the
        failing item with its error, earlier items as
        rolled_back and later ones as skipped. This method
        returns instead of raising so the caller always gets
        the per-item report. On success the caller commits.
        """
        results: list[BulkItemResult] = []

        for index, request in enumerate(requests):
            try:
                txn = self.post_transaction(owner, request)
            except AppException as e:
                self.db.rollback()
                logger.warning(
                    "Bulk posting rolled back at item %s of %s: %s",
                    index, len(requests), e.message,
                )
                for done in results:
                    done.status = "rolled_back"
                    done.transaction_id = None
                results.append(BulkItemResult(
                    index=index,
                    status="error",
                    error_code=e.error_code,
                    message=e.message,
                ))
                results.extend(
                    BulkItemResult(index=i, status="skipped")
                    for i in range(index + 1, len(requests))
                )
                return BulkPostResult(committed=False, items=results)

            results.append(BulkItemResult(
                index=index,
                status="success",
                transaction_id=txn.id,
                message="Transaction created successfully",
            ))

        return BulkPostResult(committed=True, items=results)

    def assign_to_category(
        self, owner: str, request: CategoryAssignment
    ) -> Transaction:
        """
        Budget money: move it from Income into a category.

        Posted as an outflow from the Income account, which
        debits Income and credits the category.
        """
        self._validate_amount(request.amount)
        income = self.ledger_service.get_special_account(
            owner,
            self.ledger_service.get_ledger(owner, request.ledger_id).id,
            INCOME_ACCOUNT,
        )
        category = self.ledger_service.get_ledger_account(
            owner, request.ledger_id, request.category_id
        )
        if not category.is_category:
            raise InvalidInputError(
                f'Account "{category.name}" is not a budget category',
                details={"field": "category_id", "ledger_id": request.ledger_id},
            )

        return self.post_transaction(owner, TransactionCreate(
            ledger_id=request.ledger_id,
            date=request.date,
            description=request.description,
            flow=Flow.OUTFLOW.value,
            amount=request.amount,
            account_id=income.id,
            category_id=category.id,
        ))

    # --- Queries ---

    def get_transaction(self, owner: str, transaction_id: int) -> Transaction:
        txn = self.db.execute(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.owner == owner,
            )
        ).scalar_one_or_none()
        if not txn:
            raise NotFoundError("Transaction", transaction_id)
        return txn

    def list_transactions(
        self,
        owner: str,
        ledger_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
        include_deleted: bool = False,
        account_id: int | None = None,
    ) -> list[Transaction]:
        """
        Transactions of a ledger, newest first.

        Reversed originals and their reversals are hidden
        unless include_deleted is set.
        """
        if start_date and end_date and start_date > end_date:
            raise InvalidInputError(
                f"start_date {start_date} is after end_date {end_date}",
                details={"field": "start_date"},
            )
        ledger = self.ledger_service.get_ledger(owner, ledger_id)

        query = select(Transaction).where(
            Transaction.ledger_id == ledger.id,
            Transaction.owner == owner,
        )
        if not include_deleted:
            query = query.where(
                Transaction.deleted_at.is_(None),
                Transaction.reversal_of_id.is_(None),
            )
        if start_date:
            query = query.where(Transaction.date >= start_date)
        if end_date:
            query = query.where(Transaction.date <= end_date)
        if account_id is not None:
            query = query.where(or_(
                Transaction.debit_account_id == account_id,
                Transaction.credit_account_id == account_id,
            ))

        txns = self.db.execute(
            query.order_by(Transaction.date.desc(), Transaction.id.desc())
        ).scalars().all()
        return list(txns)
