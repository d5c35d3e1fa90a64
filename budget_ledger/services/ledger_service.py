"""
Ledger service: ledger and account registry.

Owns creation, lookup, update and deletion of ledgers and
accounts, and the special-account rules:

1. Every ledger gets exactly one Income, one Off-budget and
   one Unassigned account when it is created.
2. Special accounts cannot be deleted, renamed or retyped.
3. An account's internal_type is always derived from its type.

Every method takes the acting owner first. Rows belonging to
another owner behave exactly like missing rows.
"""

import logging

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from budget_ledger.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from budget_ledger.models.account import Account, SPECIAL_ACCOUNT_NAMES
from budget_ledger.models.balance_snapshot import BalanceSnapshot
from budget_ledger.models.enums import AccountType
from budget_ledger.models.ledger import Ledger
from budget_ledger.models.transaction import Transaction
from budget_ledger.models.transaction_log import TransactionLog
from budget_ledger.schemas.ledger import (
    AccountCreate,
    AccountUpdate,
    LedgerCreate,
    LedgerUpdate,
)
from budget_ledger.services.classifier import classify, parse_account_type
from budget_ledger.services.locking import acquire_ledger_locks

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 255
INVALID_NAME_CHARACTERS = set('<>"\\/')


def clean_name(name: str | None, field: str = "name") -> str:
    """Trim a ledger/account name and reject empty, long or unsafe ones."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInputError(
            f"{field.capitalize()} cannot be empty or contain only whitespace",
            details={"field": field},
        )
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidInputError(
            f"{field.capitalize()} cannot exceed {MAX_NAME_LENGTH} characters "
            f"(got {len(cleaned)})",
            details={"field": field},
        )
    if INVALID_NAME_CHARACTERS & set(cleaned):
        raise InvalidInputError(
            f'{field.capitalize()} contains invalid characters. '
            f'Please avoid: < > " \\ /',
            details={"field": field},
        )
    return cleaned


def _check_description(description: str | None) -> str | None:
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        raise InvalidInputError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters "
            f"(got {len(description)})",
            details={"field": "description"},
        )
    return description


class LedgerService:
    """
    The service takes a database session as a constructor
    argument. The caller controls the transaction boundary.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- Ledgers ---

    def create_ledger(self, owner: str, request: LedgerCreate) -> Ledger:
        """
        Create a ledger and its three special accounts.

        Raises ConflictError if the owner already has a ledger
        with this name.
        """
        name = clean_name(request.name)
        description = _check_description(request.description)
        self._ensure_ledger_name_free(owner, name)

        ledger = Ledger(
            owner=owner,
            name=name,
            description=description,
            meta=request.metadata,
        )
        self.db.add(ledger)
        self.db.flush()

        for special_name in SPECIAL_ACCOUNT_NAMES:
            self.db.add(Account(
                ledger_id=ledger.id,
                owner=owner,
                name=special_name,
                account_type=AccountType.EQUITY,
                internal_type=classify(AccountType.EQUITY),
            ))
        self.db.flush()

        logger.info("Created ledger %s %r for owner %s", ledger.id, name, owner)
        return ledger

    def get_ledger(self, owner: str, ledger_id: int) -> Ledger:
        ledger = self.db.execute(
            select(Ledger).where(Ledger.id == ledger_id, Ledger.owner == owner)
        ).scalar_one_or_none()
        if not ledger:
            raise NotFoundError("Ledger", ledger_id)
        return ledger

    def list_ledgers(self, owner: str) -> list[Ledger]:
        ledgers = self.db.execute(
            select(Ledger).where(Ledger.owner == owner).order_by(Ledger.name)
        ).scalars().all()
        return list(ledgers)

    def update_ledger(
        self, owner: str, ledger_id: int, request: LedgerUpdate
    ) -> Ledger:
        ledger = self.get_ledger(owner, ledger_id)

        if request.name is not None:
            name = clean_name(request.name)
            if name != ledger.name:
                self._ensure_ledger_name_free(owner, name)
                ledger.name = name
        if request.description is not None:
            ledger.description = _check_description(request.description)
        if request.metadata is not None:
            ledger.meta = request.metadata

        self.db.flush()
        return ledger

    def delete_ledger(self, owner: str, ledger_id: int) -> None:
        """
        Delete a ledger with everything in it.

        Rows are removed child-first so the cascade does not
        depend on the database enforcing foreign keys.
        """
        ledger = self.get_ledger(owner, ledger_id)
        acquire_ledger_locks(self.db, [ledger.id])

        transaction_ids = select(Transaction.id).where(
            Transaction.ledger_id == ledger.id
        )
        account_ids = select(Account.id).where(Account.ledger_id == ledger.id)

        statements = [
            delete(TransactionLog).where(
                TransactionLog.original_transaction_id.in_(transaction_ids)
            ),
            delete(BalanceSnapshot).where(
                BalanceSnapshot.account_id.in_(account_ids)
            ),
            # Reversals reference their originals; drop the links first.
            update(Transaction)
            .where(Transaction.ledger_id == ledger.id)
            .values(reversal_of_id=None),
            delete(Transaction).where(Transaction.ledger_id == ledger.id),
            delete(Account).where(Account.ledger_id == ledger.id),
            delete(Ledger).where(Ledger.id == ledger.id),
        ]
        for statement in statements:
            self.db.execute(
                statement.execution_options(synchronize_session=False)
            )
        self.db.expire_all()

        logger.info("Deleted ledger %s for owner %s", ledger_id, owner)

    # --- Accounts ---

    def create_account(
        self, owner: str, ledger_id: int, request: AccountCreate
    ) -> Account:
        """
        Create an account in a ledger.

        internal_type is derived from the type. Raises
        ConflictError if the name is taken in this ledger.
        """
        ledger = self.get_ledger(owner, ledger_id)
        name = clean_name(request.name)
        account_type = parse_account_type(request.account_type)
        description = _check_description(request.description)
        self._ensure_account_name_free(owner, ledger.id, name)

        account = Account(
            ledger_id=ledger.id,
            owner=owner,
            name=name,
            description=description,
            account_type=account_type,
            internal_type=classify(account_type),
            meta=request.metadata,
        )
        self.db.add(account)
        self.db.flush()

        logger.info(
            "Created %s account %s %r in ledger %s",
            account_type.value, account.id, name, ledger.id,
        )
        return account

    def create_category(self, owner: str, ledger_id: int, name: str) -> Account:
        """Create a budget category: an equity account."""
        return self.create_account(
            owner,
            ledger_id,
            AccountCreate(name=name, account_type=AccountType.EQUITY.value),
        )

    def create_categories(
        self, owner: str, ledger_id: int, names: list[str]
    ) -> list[Account]:
        """
        Create several categories at once.

        Blank names are skipped. Every name is checked before
        anything is written, so one duplicate rejects the lot.
        """
        ledger = self.get_ledger(owner, ledger_id)
        cleaned = [clean_name(n) for n in names if n and n.strip()]

        seen = set()
        for name in cleaned:
            if name in seen:
                raise ConflictError(
                    f'Category "{name}" is listed more than once',
                    details={"resource": "Account", "name": name},
                )
            seen.add(name)
            self._ensure_account_name_free(owner, ledger.id, name)

        return [self.create_category(owner, ledger.id, name) for name in cleaned]

    def get_account(self, owner: str, account_id: int) -> Account:
        account = self.db.execute(
            select(Account).where(
                Account.id == account_id, Account.owner == owner
            )
        ).scalar_one_or_none()
        if not account:
            raise NotFoundError("Account", account_id)
        return account

    def get_ledger_account(
        self, owner: str, ledger_id: int, account_id: int
    ) -> Account:
        """Fetch an account and require it to belong to the given ledger."""
        account = self.db.execute(
            select(Account).where(
                Account.id == account_id,
                Account.ledger_id == ledger_id,
                Account.owner == owner,
            )
        ).scalar_one_or_none()
        if not account:
            raise NotFoundError("Account", account_id, ledger_id=ledger_id)
        return account

    def list_accounts(self, owner: str, ledger_id: int) -> list[Account]:
        ledger = self.get_ledger(owner, ledger_id)
        accounts = self.db.execute(
            select(Account)
            .where(Account.ledger_id == ledger.id, Account.owner == owner)
            .order_by(Account.account_type, Account.name)
        ).scalars().all()
        return list(accounts)

    def list_categories(self, owner: str, ledger_id: int) -> list[Account]:
        """Equity accounts other than the three special ones, by name."""
        ledger = self.get_ledger(owner, ledger_id)
        categories = self.db.execute(
            select(Account)
            .where(
                Account.ledger_id == ledger.id,
                Account.owner == owner,
                Account.account_type == AccountType.EQUITY,
                Account.name.not_in(SPECIAL_ACCOUNT_NAMES),
            )
            .order_by(Account.name)
        ).scalars().all()
        return list(categories)

    def find_category_by_name(
        self, owner: str, ledger_id: int, name: str
    ) -> Account:
        """Case-sensitive exact lookup of an equity account by name."""
        ledger = self.get_ledger(owner, ledger_id)
        category = self.db.execute(
            select(Account).where(
                Account.ledger_id == ledger.id,
                Account.owner == owner,
                Account.account_type == AccountType.EQUITY,
                Account.name == name,
            )
        ).scalar_one_or_none()
        if not category:
            raise NotFoundError(
                "Category", ledger_id=ledger.id,
                message=f'Category "{name}" not found in ledger {ledger.id}',
            )
        return category

    def get_special_account(
        self, owner: str, ledger_id: int, name: str
    ) -> Account:
        """
        Return one of the ledger's special accounts.

        A missing special account means the ledger is corrupted.
        """
        account = self.db.execute(
            select(Account).where(
                Account.ledger_id == ledger_id,
                Account.owner == owner,
                Account.account_type == AccountType.EQUITY,
                Account.name == name,
            )
        ).scalar_one_or_none()
        if not account:
            logger.error("Ledger %s has no %r account", ledger_id, name)
            raise NotFoundError(
                "Account", ledger_id=ledger_id,
                message=(
                    f'Special account "{name}" not found in ledger '
                    f"{ledger_id}. This indicates a corrupted ledger."
                ),
            )
        return account

    def update_account(
        self, owner: str, account_id: int, request: AccountUpdate
    ) -> Account:
        """
        Rename, retype or describe an account.

        A type change re-derives internal_type and rebuilds the
        account's balance chain, because every historical delta
        flips sign with the polarity.
        """
        account = self.get_account(owner, account_id)

        new_name = clean_name(request.name) if request.name is not None else None
        new_type = (
            parse_account_type(request.account_type)
            if request.account_type is not None
            else None
        )

        renaming = new_name is not None and new_name != account.name
        retyping = new_type is not None and new_type != account.account_type
        if account.is_special and (renaming or retyping):
            raise ForbiddenError(
                f'Special account "{account.name}" cannot be renamed or retyped',
                details={"resource": "Account", "id": account.id,
                         "ledger_id": account.ledger_id},
            )

        if renaming:
            self._ensure_account_name_free(owner, account.ledger_id, new_name)
            account.name = new_name
        if request.description is not None:
            account.description = _check_description(request.description)
        if request.metadata is not None:
            account.meta = request.metadata

        if retyping:
            old_internal = account.internal_type
            account.account_type = new_type
            account.internal_type = classify(new_type)
            self.db.flush()
            if account.internal_type != old_internal:
                # Imported here: balance_service depends on this module.
                from budget_ledger.services.balance_service import BalanceService
                BalanceService(self.db).rebuild_account_balance(owner, account.id)

        self.db.flush()
        return account

    def delete_account(self, owner: str, account_id: int) -> None:
        """
        Delete an account.

        Special accounts are rejected with ForbiddenError.
        Accounts referenced by any transaction are rejected with
        ConflictError: history is never rewritten by deleting
        one side of it.
        """
        account = self.get_account(owner, account_id)

        if account.is_special:
            raise ForbiddenError(
                f'Cannot delete special account "{account.name}"',
                details={"resource": "Account", "id": account.id,
                         "ledger_id": account.ledger_id},
            )

        references = self.db.execute(
            select(func.count(Transaction.id)).where(
                or_(
                    Transaction.debit_account_id == account.id,
                    Transaction.credit_account_id == account.id,
                )
            )
        ).scalar()
        if references:
            raise ConflictError(
                f'Account "{account.name}" is referenced by {references} '
                f"transaction(s) and cannot be deleted",
                details={"resource": "Account", "id": account.id,
                         "ledger_id": account.ledger_id},
            )

        self.db.delete(account)
        self.db.flush()
        logger.info("Deleted account %s from ledger %s", account_id, account.ledger_id)

    # --- Helpers ---

    def _ensure_ledger_name_free(self, owner: str, name: str) -> None:
        existing = self.db.execute(
            select(Ledger.id).where(Ledger.owner == owner, Ledger.name == name)
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(
                f"Ledger with name '{name}' already exists",
                details={"resource": "Ledger", "name": name},
            )

    def _ensure_account_name_free(
        self, owner: str, ledger_id: int, name: str
    ) -> None:
        existing = self.db.execute(
            select(Account.id).where(
                Account.ledger_id == ledger_id,
                Account.owner == owner,
                Account.name == name,
            )
        ).scalar_one_or_none()
        if existing:
            raise ConflictError(
                f"Account with name '{name}' already exists in ledger {ledger_id}",
                details={"resource": "Account", "name": name,
                         "ledger_id": ledger_id},
            )
