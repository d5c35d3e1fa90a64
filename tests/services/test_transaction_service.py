"""
Tests for the TransactionService.

Tests cover:
- Debit/credit resolution for every (internal_type, flow) pair
- Zero-sum: every posting changes the two legs by +amount
  and -amount in debit terms
- Validation order and that failed validation writes nothing
- Unassigned as the default category
- Bulk posting, all-or-nothing
- Assigning money to categories
- Flows into and out of Income and the other special accounts
- Listing and fetching transactions
"""

from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from budget_ledger.exceptions import InvalidInputError, NotFoundError
from budget_ledger.models.account import (
    INCOME_ACCOUNT,
    OFF_BUDGET_ACCOUNT,
    UNASSIGNED_ACCOUNT,
)
from budget_ledger.models.balance_snapshot import BalanceSnapshot
from budget_ledger.models.enums import Flow, InternalType
from budget_ledger.models.transaction import Transaction
from budget_ledger.schemas.ledger import AccountCreate
from budget_ledger.schemas.transaction import CategoryAssignment, TransactionCreate
from budget_ledger.services.balance_service import BalanceService
from budget_ledger.services.ledger_service import LedgerService
from budget_ledger.services.transaction_service import (
    TransactionService,
    resolve_debit_credit,
)

OWNER = "alice"


def make_request(ledger, account, category=None, flow="outflow", amount=500, **kwargs):
    return TransactionCreate(
        ledger_id=ledger.id,
        date=kwargs.pop("txn_date", date.today()),
        flow=flow,
        amount=amount,
        account_id=account.id,
        category_id=category.id if category else None,
        **kwargs,
    )


def count_rows(db_session, model):
    return db_session.execute(select(func.count(model.id))).scalar()


# --- Resolution Table ---

@pytest.mark.parametrize("internal_type, flow, subject_debited", [
    (InternalType.ASSET_LIKE, Flow.INFLOW, True),
    (InternalType.ASSET_LIKE, Flow.OUTFLOW, False),
    (InternalType.LIABILITY_LIKE, Flow.INFLOW, False),
    (InternalType.LIABILITY_LIKE, Flow.OUTFLOW, True),
])
def test_resolve_debit_credit(internal_type, flow, subject_debited):
    debit, credit = resolve_debit_credit(internal_type, flow, 1, 2)
    if subject_debited:
        assert (debit, credit) == (1, 2)
    else:
        assert (debit, credit) == (2, 1)


class TestPostingBalances:

    @pytest.mark.parametrize("account_fixture, flow, subject_change, category_change", [
        ("checking", "inflow", 500, 500),
        ("checking", "outflow", -500, -500),
        ("credit_card", "inflow", 500, -500),
        ("credit_card", "outflow", -500, 500),
    ])
    def test_all_four_combinations(
        self, request, db_session, ledger, groceries,
        account_fixture, flow, subject_change, category_change,
    ):
        subject = request.getfixturevalue(account_fixture)
        txn = TransactionService(db_session).post_transaction(
            OWNER, make_request(ledger, subject, groceries, flow=flow)
        )

        balances = BalanceService(db_session)
        assert balances.get_account_balance(OWNER, subject.id) == subject_change
        assert balances.get_account_balance(OWNER, groceries.id) == category_change
        assert {txn.debit_account_id, txn.credit_account_id} == {subject.id, groceries.id}

    @pytest.mark.parametrize("account_fixture", ["checking", "credit_card"])
    @pytest.mark.parametrize("flow", ["inflow", "outflow"])
    def test_zero_sum_in_debit_terms(
        self, request, db_session, ledger, groceries, account_fixture, flow
    ):
        subject = request.getfixturevalue(account_fixture)
        txn = TransactionService(db_session).post_transaction(
            OWNER, make_request(ledger, subject, groceries, flow=flow, amount=730)
        )

        snapshots = db_session.execute(
            select(BalanceSnapshot).where(BalanceSnapshot.transaction_id == txn.id)
        ).scalars().all()
        assert len(snapshots) == 2

        # A debit raises asset-like balances; flip liability-like deltas
        # so both legs are expressed as debits.
        debit_terms = {}
        for snap in snapshots:
            account = LedgerService(db_session).get_account(OWNER, snap.account_id)
            sign = 1 if account.internal_type == InternalType.ASSET_LIKE else -1
            debit_terms[snap.account_id] = sign * snap.delta
        assert debit_terms[txn.debit_account_id] == 730
        assert debit_terms[txn.credit_account_id] == -730

    def test_missing_category_uses_unassigned(self, db_session, ledger, checking):
        txn = TransactionService(db_session).post_transaction(
            OWNER, make_request(ledger, checking, flow="inflow")
        )
        unassigned = LedgerService(db_session).get_special_account(
            OWNER, ledger.id, UNASSIGNED_ACCOUNT
        )
        assert txn.debit_account_id == checking.id
        assert txn.credit_account_id == unassigned.id

    def test_metadata_and_description_stored(self, db_session, ledger, checking, groceries):
        txn = TransactionService(db_session).post_transaction(
            OWNER, make_request(
                ledger, checking, groceries,
                description="  Weekly shop  ", metadata={"store": "Aldi"},
            )
        )
        assert txn.description == "Weekly shop"
        assert txn.meta == {"store": "Aldi"}


class TestValidation:

    @pytest.mark.parametrize("amount", [0, -5, 100_000_001])
    def test_bad_amount_rejected(self, db_session, ledger, checking, amount):
        with pytest.raises(InvalidInputError, match="amount"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, checking, amount=amount)
            )
        assert count_rows(db_session, Transaction) == 0

    def test_amount_checked_before_flow(self, db_session, ledger, checking):
        with pytest.raises(InvalidInputError, match="amount") as exc:
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, checking, flow="sideways", amount=0)
            )
        assert exc.value.details["field"] == "amount"

    def test_bad_flow_rejected(self, db_session, ledger, checking):
        with pytest.raises(InvalidInputError, match="Invalid flow"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, checking, flow="sideways")
            )

    def test_flow_checked_before_ledger(self, db_session, checking):
        request = TransactionCreate(
            ledger_id=9999, date=date.today(), flow="sideways",
            amount=100, account_id=checking.id,
        )
        with pytest.raises(InvalidInputError):
            TransactionService(db_session).post_transaction(OWNER, request)

    @pytest.mark.parametrize("offset", [timedelta(days=366), timedelta(days=-3651)])
    def test_date_out_of_range_rejected(self, db_session, ledger, checking, offset):
        with pytest.raises(InvalidInputError, match="date"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, checking, txn_date=date.today() + offset)
            )

    def test_long_description_rejected(self, db_session, ledger, checking):
        with pytest.raises(InvalidInputError, match="description"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, checking, description="x" * 501)
            )

    def test_unknown_ledger(self, db_session, checking):
        request = TransactionCreate(
            ledger_id=9999, date=date.today(), flow="inflow",
            amount=100, account_id=checking.id,
        )
        with pytest.raises(NotFoundError, match="Ledger"):
            TransactionService(db_session).post_transaction(OWNER, request)

    def test_other_owner_cannot_post(self, db_session, ledger, checking):
        with pytest.raises(NotFoundError):
            TransactionService(db_session).post_transaction(
                "bob", make_request(ledger, checking)
            )

    def test_subject_from_other_ledger_not_found(self, db_session, ledger, checking):
        from budget_ledger.schemas.ledger import LedgerCreate
        service = LedgerService(db_session)
        other = service.create_ledger(OWNER, LedgerCreate(name="Business"))
        with pytest.raises(NotFoundError, match="Account"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(other, checking)
            )

    def test_category_must_be_equity(self, db_session, ledger, checking, credit_card):
        with pytest.raises(NotFoundError, match="Category"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, checking, credit_card)
            )

    def test_subject_cannot_be_its_own_category(self, db_session, ledger, groceries):
        with pytest.raises(InvalidInputError, match="both"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, groceries, groceries)
            )
        assert count_rows(db_session, BalanceSnapshot) == 0


class TestBudgetFlows:

    @pytest.fixture
    def income(self, db_session, ledger):
        return LedgerService(db_session).get_special_account(
            OWNER, ledger.id, INCOME_ACCOUNT
        )

    def test_income_into_off_budget_rejected(self, db_session, ledger, income):
        off_budget = LedgerService(db_session).get_special_account(
            OWNER, ledger.id, OFF_BUDGET_ACCOUNT
        )
        with pytest.raises(InvalidInputError, match="asset or liability"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, income, off_budget, amount=700)
            )
        assert count_rows(db_session, Transaction) == 0

    def test_category_into_unassigned_rejected(self, db_session, ledger, groceries):
        with pytest.raises(InvalidInputError, match="Unassigned"):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, groceries)
            )

    def test_category_back_into_income_rejected(
        self, db_session, ledger, income, groceries
    ):
        with pytest.raises(InvalidInputError, match="into \"Income\""):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, income, groceries, flow="inflow")
            )

    def test_spending_from_income_rejected(self, db_session, ledger, income, checking):
        with pytest.raises(InvalidInputError, match="leave \"Income\""):
            TransactionService(db_session).post_transaction(
                OWNER, make_request(ledger, checking, income, flow="outflow")
            )

    def test_income_received_on_real_accounts(
        self, db_session, ledger, income, checking, credit_card
    ):
        service = TransactionService(db_session)
        service.post_transaction(
            OWNER, make_request(ledger, checking, income, flow="inflow", amount=5000)
        )
        # A cashback credit on the card.
        service.post_transaction(
            OWNER, make_request(ledger, credit_card, income, flow="outflow", amount=20)
        )
        assert BalanceService(db_session).get_account_balance(OWNER, income.id) == 5020


class TestBulkPost:

    def test_all_succeed(self, db_session, ledger, checking, groceries):
        result = TransactionService(db_session).bulk_post_transactions(OWNER, [
            make_request(ledger, checking, groceries, flow="inflow", amount=1000),
            make_request(ledger, checking, groceries, amount=300),
        ])
        db_session.commit()

        assert result.committed
        assert [item.status for item in result.items] == ["success", "success"]
        assert all(item.transaction_id for item in result.items)
        assert BalanceService(db_session).get_account_balance(OWNER, checking.id) == 700

    def test_failure_rolls_back_everything(self, db_session, ledger, checking, groceries):
        result = TransactionService(db_session).bulk_post_transactions(OWNER, [
            make_request(ledger, checking, groceries, amount=100),
            make_request(ledger, checking, groceries, amount=-1),
            make_request(ledger, checking, groceries, amount=200),
        ])

        assert not result.committed
        assert [item.status for item in result.items] == [
            "rolled_back", "error", "skipped",
        ]
        assert result.failed_item.index == 1
        assert result.failed_item.error_code == "ERR_INVALID_INPUT"
        assert result.items[0].transaction_id is None
        assert count_rows(db_session, Transaction) == 0
        assert BalanceService(db_session).get_account_balance(OWNER, checking.id) == 0


class TestAssignToCategory:

    def test_moves_income_into_category(self, db_session, ledger, groceries):
        txn = TransactionService(db_session).assign_to_category(OWNER, CategoryAssignment(
            ledger_id=ledger.id, category_id=groceries.id,
            amount=400, date=date.today(),
        ))
        income = LedgerService(db_session).get_special_account(
            OWNER, ledger.id, INCOME_ACCOUNT
        )
        assert txn.debit_account_id == income.id
        assert txn.credit_account_id == groceries.id

        balances = BalanceService(db_session)
        assert balances.get_account_balance(OWNER, income.id) == -400
        assert balances.get_account_balance(OWNER, groceries.id) == 400

    def test_target_must_be_a_category(self, db_session, ledger, checking):
        with pytest.raises(InvalidInputError, match="not a budget category"):
            TransactionService(db_session).assign_to_category(OWNER, CategoryAssignment(
                ledger_id=ledger.id, category_id=checking.id,
                amount=400, date=date.today(),
            ))

    def test_amount_validated_first(self, db_session, ledger):
        with pytest.raises(InvalidInputError, match="amount"):
            TransactionService(db_session).assign_to_category(OWNER, CategoryAssignment(
                ledger_id=ledger.id, category_id=9999,
                amount=0, date=date.today(),
            ))


class TestQueries:

    def test_get_transaction_scoped_to_owner(self, db_session, ledger, checking):
        service = TransactionService(db_session)
        txn = service.post_transaction(OWNER, make_request(ledger, checking))
        assert service.get_transaction(OWNER, txn.id).id == txn.id
        with pytest.raises(NotFoundError):
            service.get_transaction("bob", txn.id)

    def test_list_newest_first_with_window(self, db_session, ledger, checking):
        service = TransactionService(db_session)
        today = date.today()
        old = service.post_transaction(
            OWNER, make_request(ledger, checking, txn_date=today - timedelta(days=10))
        )
        new = service.post_transaction(OWNER, make_request(ledger, checking))

        assert [t.id for t in service.list_transactions(OWNER, ledger.id)] == [new.id, old.id]
        windowed = service.list_transactions(
            OWNER, ledger.id, start_date=today - timedelta(days=1)
        )
        assert [t.id for t in windowed] == [new.id]

    def test_list_by_account(self, db_session, ledger, checking, credit_card):
        service = TransactionService(db_session)
        service.post_transaction(OWNER, make_request(ledger, checking))
        card_txn = service.post_transaction(OWNER, make_request(ledger, credit_card))
        listed = service.list_transactions(OWNER, ledger.id, account_id=credit_card.id)
        assert [t.id for t in listed] == [card_txn.id]

    def test_inverted_window_rejected(self, db_session, ledger):
        today = date.today()
        with pytest.raises(InvalidInputError):
            TransactionService(db_session).list_transactions(
                OWNER, ledger.id, start_date=today, end_date=today - timedelta(days=1)
            )


def test_expense_subject_is_asset_like(db_session, ledger, groceries):
    dining = LedgerService(db_session).create_account(
        OWNER, ledger.id, AccountCreate(name="Dining", account_type="expense")
    )
    TransactionService(db_session).post_transaction(
        OWNER, make_request(ledger, dining, groceries, flow="inflow", amount=90)
    )
    assert BalanceService(db_session).get_account_balance(OWNER, dining.id) == 90
