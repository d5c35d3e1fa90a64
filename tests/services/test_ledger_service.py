"""
Tests for the LedgerService: the ledger and account registry.

Tests cover:
- Ledger creation, its special accounts and name rules
- Owner scoping
- Account and category creation
- Protection of special accounts
- Account deletion rules
- Retyping an account rebuilds its balance
- Cascading ledger deletion
"""

from datetime import date

import pytest
from sqlalchemy import func, select

from budget_ledger.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
)
from budget_ledger.models.account import (
    Account,
    INCOME_ACCOUNT,
    OFF_BUDGET_ACCOUNT,
    SPECIAL_ACCOUNT_NAMES,
    UNASSIGNED_ACCOUNT,
)
from budget_ledger.models.balance_snapshot import BalanceSnapshot
from budget_ledger.models.enums import AccountType, InternalType
from budget_ledger.models.transaction import Transaction
from budget_ledger.schemas.ledger import (
    AccountCreate,
    AccountUpdate,
    LedgerCreate,
    LedgerUpdate,
)
from budget_ledger.schemas.transaction import TransactionCreate
from budget_ledger.services.balance_service import BalanceService
from budget_ledger.services.ledger_service import LedgerService
from budget_ledger.services.transaction_service import TransactionService

OWNER = "alice"


# --- Ledger Tests ---

class TestCreateLedger:

    def test_creates_three_special_accounts(self, db_session):
        service = LedgerService(db_session)
        ledger = service.create_ledger(OWNER, LedgerCreate(name="Personal"))
        db_session.commit()

        accounts = service.list_accounts(OWNER, ledger.id)
        assert sorted(a.name for a in accounts) == sorted(SPECIAL_ACCOUNT_NAMES)
        for account in accounts:
            assert account.account_type == AccountType.EQUITY
            assert account.internal_type == InternalType.LIABILITY_LIKE
            assert account.is_special

    def test_name_is_trimmed(self, db_session):
        ledger = LedgerService(db_session).create_ledger(
            OWNER, LedgerCreate(name="  Household  ")
        )
        assert ledger.name == "Household"

    def test_duplicate_name_rejected(self, db_session):
        service = LedgerService(db_session)
        service.create_ledger(OWNER, LedgerCreate(name="Personal"))
        db_session.commit()

        with pytest.raises(ConflictError, match="already exists"):
            service.create_ledger(OWNER, LedgerCreate(name="Personal"))

    def test_same_name_allowed_for_other_owner(self, db_session):
        service = LedgerService(db_session)
        service.create_ledger(OWNER, LedgerCreate(name="Personal"))
        other = service.create_ledger("bob", LedgerCreate(name="Personal"))
        assert other.id is not None

    @pytest.mark.parametrize("name", ["", "   ", "a<b", 'quote"d', "x/y", "x" * 256])
    def test_invalid_names_rejected(self, db_session, name):
        with pytest.raises(InvalidInputError):
            LedgerService(db_session).create_ledger(OWNER, LedgerCreate(name=name))

    def test_long_description_rejected(self, db_session):
        with pytest.raises(InvalidInputError, match="Description"):
            LedgerService(db_session).create_ledger(
                OWNER, LedgerCreate(name="Personal", description="d" * 256)
            )


class TestLedgerAccess:

    def test_other_owner_sees_not_found(self, db_session, ledger):
        with pytest.raises(NotFoundError):
            LedgerService(db_session).get_ledger("bob", ledger.id)

    def test_list_is_scoped_to_owner(self, db_session, ledger):
        service = LedgerService(db_session)
        service.create_ledger("bob", LedgerCreate(name="Bob's"))
        assert [lg.id for lg in service.list_ledgers(OWNER)] == [ledger.id]

    def test_update_ledger(self, db_session, ledger):
        service = LedgerService(db_session)
        updated = service.update_ledger(
            OWNER, ledger.id,
            LedgerUpdate(name="Family", metadata={"currency": "EUR"}),
        )
        assert updated.name == "Family"
        assert updated.meta == {"currency": "EUR"}


# --- Account Tests ---

class TestCreateAccount:

    def test_internal_type_is_derived(self, db_session, ledger):
        service = LedgerService(db_session)
        card = service.create_account(
            OWNER, ledger.id,
            AccountCreate(name="Visa", account_type="liability"),
        )
        food = service.create_account(
            OWNER, ledger.id,
            AccountCreate(name="Food", account_type="expense"),
        )
        assert card.internal_type == InternalType.LIABILITY_LIKE
        assert food.internal_type == InternalType.ASSET_LIKE

    def test_duplicate_name_rejected(self, db_session, checking):
        with pytest.raises(ConflictError):
            LedgerService(db_session).create_account(
                OWNER, checking.ledger_id,
                AccountCreate(name="Checking", account_type="asset"),
            )

    def test_bad_type_rejected(self, db_session, ledger):
        with pytest.raises(InvalidInputError, match="Invalid account type"):
            LedgerService(db_session).create_account(
                OWNER, ledger.id,
                AccountCreate(name="Savings", account_type="savings"),
            )

    def test_ledger_of_other_owner_not_found(self, db_session, ledger):
        with pytest.raises(NotFoundError):
            LedgerService(db_session).create_account(
                "bob", ledger.id,
                AccountCreate(name="Savings", account_type="asset"),
            )

    def test_create_category_is_equity(self, db_session, groceries):
        assert groceries.account_type == AccountType.EQUITY
        assert groceries.is_category
        assert not groceries.is_special


class TestCategories:

    def test_create_categories_skips_blanks(self, db_session, ledger):
        service = LedgerService(db_session)
        created = service.create_categories(
            OWNER, ledger.id, ["Rent", "  ", "Fuel"]
        )
        assert [c.name for c in created] == ["Rent", "Fuel"]

    def test_duplicate_in_batch_writes_nothing(self, db_session, ledger):
        service = LedgerService(db_session)
        with pytest.raises(ConflictError):
            service.create_categories(OWNER, ledger.id, ["Rent", "Fuel", "Rent"])
        assert service.list_categories(OWNER, ledger.id) == []

    def test_list_categories_excludes_specials(self, db_session, ledger, groceries):
        names = [c.name for c in LedgerService(db_session).list_categories(
            OWNER, ledger.id
        )]
        assert names == ["Groceries"]

    def test_find_category_is_case_sensitive(self, db_session, ledger, groceries):
        service = LedgerService(db_session)
        assert service.find_category_by_name(OWNER, ledger.id, "Groceries").id == groceries.id
        with pytest.raises(NotFoundError):
            service.find_category_by_name(OWNER, ledger.id, "groceries")

    def test_find_category_ignores_non_equity(self, db_session, ledger, checking):
        with pytest.raises(NotFoundError):
            LedgerService(db_session).find_category_by_name(
                OWNER, ledger.id, "Checking"
            )

    def test_special_accounts_resolve(self, db_session, ledger):
        service = LedgerService(db_session)
        for name in (INCOME_ACCOUNT, OFF_BUDGET_ACCOUNT, UNASSIGNED_ACCOUNT):
            assert service.get_special_account(OWNER, ledger.id, name).name == name


class TestSpecialAccountProtection:

    def test_cannot_delete_special_account(self, db_session, ledger):
        service = LedgerService(db_session)
        income = service.get_special_account(OWNER, ledger.id, INCOME_ACCOUNT)
        with pytest.raises(ForbiddenError):
            service.delete_account(OWNER, income.id)

    def test_cannot_rename_special_account(self, db_session, ledger):
        service = LedgerService(db_session)
        income = service.get_special_account(OWNER, ledger.id, INCOME_ACCOUNT)
        with pytest.raises(ForbiddenError):
            service.update_account(OWNER, income.id, AccountUpdate(name="Salary"))

    def test_special_account_description_can_change(self, db_session, ledger):
        service = LedgerService(db_session)
        income = service.get_special_account(OWNER, ledger.id, INCOME_ACCOUNT)
        updated = service.update_account(
            OWNER, income.id, AccountUpdate(description="All paychecks")
        )
        assert updated.description == "All paychecks"


class TestDeleteAccount:

    def test_unreferenced_account_deleted(self, db_session, checking):
        service = LedgerService(db_session)
        service.delete_account(OWNER, checking.id)
        with pytest.raises(NotFoundError):
            service.get_account(OWNER, checking.id)

    def test_referenced_account_rejected(self, db_session, ledger, checking, groceries):
        TransactionService(db_session).post_transaction(OWNER, TransactionCreate(
            ledger_id=ledger.id, date=date.today(), flow="outflow",
            amount=500, account_id=checking.id, category_id=groceries.id,
        ))
        with pytest.raises(ConflictError, match="referenced"):
            LedgerService(db_session).delete_account(OWNER, groceries.id)


class TestRetypeAccount:

    def test_polarity_change_rebuilds_balance(self, db_session, ledger, checking, groceries):
        TransactionService(db_session).post_transaction(OWNER, TransactionCreate(
            ledger_id=ledger.id, date=date.today(), flow="inflow",
            amount=1000, account_id=checking.id, category_id=groceries.id,
        ))
        balances = BalanceService(db_session)
        assert balances.get_account_balance(OWNER, checking.id) == 1000

        account = LedgerService(db_session).update_account(
            OWNER, checking.id, AccountUpdate(account_type="liability")
        )

        assert account.internal_type == InternalType.LIABILITY_LIKE
        # Checking is still the debited leg; for a liability that is negative.
        assert balances.get_account_balance(OWNER, checking.id) == -1000
        assert balances.verify_account_balance(OWNER, checking.id) == -1000

    def test_same_polarity_keeps_balance(self, db_session, ledger, checking, groceries):
        TransactionService(db_session).post_transaction(OWNER, TransactionCreate(
            ledger_id=ledger.id, date=date.today(), flow="inflow",
            amount=1000, account_id=checking.id, category_id=groceries.id,
        ))
        LedgerService(db_session).update_account(
            OWNER, checking.id, AccountUpdate(account_type="expense")
        )
        assert BalanceService(db_session).get_account_balance(OWNER, checking.id) == 1000


class TestDeleteLedger:

    def test_removes_everything(self, db_session, ledger, checking, groceries):
        TransactionService(db_session).post_transaction(OWNER, TransactionCreate(
            ledger_id=ledger.id, date=date.today(), flow="outflow",
            amount=250, account_id=checking.id, category_id=groceries.id,
        ))
        db_session.commit()

        ledger_id = ledger.id
        LedgerService(db_session).delete_ledger(OWNER, ledger_id)
        db_session.commit()

        for model in (Account, Transaction, BalanceSnapshot):
            assert db_session.execute(select(func.count(model.id))).scalar() == 0
        with pytest.raises(NotFoundError):
            LedgerService(db_session).get_ledger(OWNER, ledger_id)
