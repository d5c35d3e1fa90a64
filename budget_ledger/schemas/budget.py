"""
Pydantic schemas for budget reporting.
"""

from pydantic import BaseModel


class BudgetStatusRow(BaseModel):
    """
    One category's budget figures.

    With a date window, balance is budgeted + activity for
    that window rather than the all-time running balance.
    """
    category_id: int
    category_name: str
    budgeted: int
    activity: int
    balance: int


class BudgetTotals(BaseModel):
    income: int
    income_remaining_from_last_month: int
    budgeted: int
    left_to_budget: int
