"""
Budget service: read-only category reporting.

For each budget category (equity accounts other than the
three special ones) it reports:

- budgeted: money moved from Income into the category
- activity: net money moved between the category and real
  asset or liability accounts (positive in, negative out)
- balance: the category's running balance, or, when a date
  window is given, budgeted + activity within that window

Only live transactions count: reversed originals and the
reversals that cancel them are excluded as a pair.
"""

import calendar
import logging
import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from budget_ledger.exceptions import InvalidInputError
from budget_ledger.models.account import Account, INCOME_ACCOUNT
from budget_ledger.models.enums import AccountType
from budget_ledger.models.transaction import Transaction
from budget_ledger.schemas.budget import BudgetStatusRow, BudgetTotals
from budget_ledger.services.balance_service import BalanceService
from budget_ledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

# Accounts that represent real money for activity and income.
REAL_ACCOUNT_TYPES = (AccountType.ASSET, AccountType.LIABILITY)

PERIOD_PATTERN = re.compile(r"^\d{6}$")


def parse_period(period: str, today: date | None = None) -> tuple[date, date]:
    """
    Turn "YYYYMM" into (first day, last day) of that month.

    The end of the current month is capped at today so it only
    covers days that have happened.
    """
    if not PERIOD_PATTERN.match(period or ""):
        raise InvalidInputError(
            f"Invalid period format {period!r}. Use YYYYMM (e.g., 202508)",
            details={"field": "period"},
        )
    year, month = int(period[:4]), int(period[4:])
    if not 1 <= month <= 12 or year < 1:
        raise InvalidInputError(
            f"Invalid period {period!r}: month must be 01-12",
            details={"field": "period"},
        )
    start = date(year, month, 1)
    end = date(year, month, calendar.monthrange(year, month)[1])
    today = today or date.today()
    if start <= today < end:
        end = today
    return start, end


def _live(query):
    return query.where(
        Transaction.deleted_at.is_(None),
        Transaction.reversal_of_id.is_(None),
    )


def _windowed(query, start_date: date | None, end_date: date | None):
    if start_date is not None:
        query = query.where(Transaction.date >= start_date)
    if end_date is not None:
        query = query.where(Transaction.date <= end_date)
    return query


class BudgetService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger_service = LedgerService(db)
        self.balance_service = BalanceService(db)

    def get_budget_status(
        self,
        owner: str,
        ledger_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[BudgetStatusRow]:
        """Budgeted, activity and balance of every category, by name."""
        if start_date and end_date and start_date > end_date:
            raise InvalidInputError(
                f"start_date {start_date} is after end_date {end_date}",
                details={"field": "start_date"},
            )
        ledger = self.ledger_service.get_ledger(owner, ledger_id)
        categories = self.ledger_service.list_categories(owner, ledger.id)
        if not categories:
            return []
        income = self.ledger_service.get_special_account(
            owner, ledger.id, INCOME_ACCOUNT
        )

        category_ids = [c.id for c in categories]
        budgeted = self._budgeted_by_category(
            ledger.id, owner, income.id, category_ids, start_date, end_date
        )
        activity = self._activity_by_category(
            ledger.id, owner, category_ids, start_date, end_date
        )
        windowed = start_date is not None or end_date is not None

        rows = []
        for category in categories:
            category_budgeted = budgeted.get(category.id, 0)
            category_activity = activity.get(category.id, 0)
            if windowed:
                balance = category_budgeted + category_activity
            else:
                balance = self.balance_service.get_current_balance(category.id)
            rows.append(BudgetStatusRow(
                category_id=category.id,
                category_name=category.name,
                budgeted=category_budgeted,
                activity=category_activity,
                balance=balance,
            ))
        return rows

    def get_income_total(
        self,
        owner: str,
        ledger_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> int:
        """Money credited to Income from asset or liability accounts."""
        ledger = self.ledger_service.get_ledger(owner, ledger_id)
        income = self.ledger_service.get_special_account(
            owner, ledger.id, INCOME_ACCOUNT
        )
        source = aliased(Account)
        query = (
            select(func.coalesce(func.sum(Transaction.amount), 0))
            .join(source, Transaction.debit_account_id == source.id)
            .where(
                Transaction.ledger_id == ledger.id,
                Transaction.owner == owner,
                Transaction.credit_account_id == income.id,
                source.account_type.in_(REAL_ACCOUNT_TYPES),
            )
        )
        query = _windowed(_live(query), start_date, end_date)
        return int(self.db.execute(query).scalar())

    def get_budget_totals(
        self, owner: str, ledger_id: int, period: str | None = None
    ) -> BudgetTotals:
        """
        Income, budgeted and left-to-budget for a month or all time.

        left_to_budget is the Income account's current balance:
        income received minus everything assigned out of it.
        """
        ledger = self.ledger_service.get_ledger(owner, ledger_id)
        start_date = end_date = None
        if period is not None:
            start_date, end_date = parse_period(period)

        income_total = self.get_income_total(owner, ledger.id, start_date, end_date)
        status = self.get_budget_status(owner, ledger.id, start_date, end_date)
        total_budgeted = sum(row.budgeted for row in status)

        income = self.ledger_service.get_special_account(
            owner, ledger.id, INCOME_ACCOUNT
        )
        income_balance = self.balance_service.get_current_balance(income.id)

        if period is not None:
            income_remaining = income_balance - self.get_income_total(
                owner, ledger.id, start_date, None
            )
        else:
            income_remaining = 0

        return BudgetTotals(
            income=income_total,
            income_remaining_from_last_month=income_remaining,
            budgeted=total_budgeted,
            left_to_budget=income_balance,
        )

    # --- Aggregation queries ---

    def _budgeted_by_category(
        self, ledger_id, owner, income_id, category_ids, start_date, end_date
    ) -> dict[int, int]:
        query = (
            select(Transaction.credit_account_id, func.sum(Transaction.amount))
            .where(
                Transaction.ledger_id == ledger_id,
                Transaction.owner == owner,
                Transaction.debit_account_id == income_id,
                Transaction.credit_account_id.in_(category_ids),
            )
            .group_by(Transaction.credit_account_id)
        )
        query = _windowed(_live(query), start_date, end_date)
        return {cid: int(total) for cid, total in self.db.execute(query).all()}

    def _activity_by_category(
        self, ledger_id, owner, category_ids, start_date, end_date
    ) -> dict[int, int]:
        """Credits to a category from real accounts minus debits to real accounts."""
        other = aliased(Account)
        activity: dict[int, int] = {}

        # Category credited, real account debited: money into the category.
        inflows = (
            select(Transaction.credit_account_id, func.sum(Transaction.amount))
            .join(other, Transaction.debit_account_id == other.id)
            .where(
                Transaction.ledger_id == ledger_id,
                Transaction.owner == owner,
                Transaction.credit_account_id.in_(category_ids),
                other.account_type.in_(REAL_ACCOUNT_TYPES),
            )
            .group_by(Transaction.credit_account_id)
        )
        # Category debited, real account credited: money spent.
        outflows = (
            select(Transaction.debit_account_id, func.sum(Transaction.amount))
            .join(other, Transaction.credit_account_id == other.id)
            .where(
                Transaction.ledger_id == ledger_id,
                Transaction.owner == owner,
                Transaction.debit_account_id.in_(category_ids),
                other.account_type.in_(REAL_ACCOUNT_TYPES),
            )
            .group_by(Transaction.debit_account_id)
        )

        for category_id, total in self.db.execute(
            _windowed(_live(inflows), start_date, end_date)
        ).all():
            activity[category_id] = activity.get(category_id, 0) + int(total)
        for category_id, total in self.db.execute(
            _windowed(_live(outflows), start_date, end_date)
        ).all():
            activity[category_id] = activity.get(category_id, 0) - int(total)
        return activity
