"""
Record filters shared by the storage backends.

Neither backend has a query engine, so filtering happens in Python.
All date bounds are inclusive.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pennywise.models.finance import Budget, Expense, Income


def within(
    value: Optional[datetime],
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> bool:
    """True if value lies in [date_from, date_to]; open bounds match anything."""
    if date_from is None and date_to is None:
        return True
    if value is None:
        return False
    if date_from is not None and value < date_from:
        return False
    if date_to is not None and value > date_to:
        return False
    return True


def expense_matches(
    expense: Expense,
    owner_id: str,
    category: Optional[str] = None,
    goal_id: Optional[UUID] = None,
    active: Optional[bool] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    due_from: Optional[datetime] = None,
    due_to: Optional[datetime] = None,
) -> bool:
    if expense.owner_id != owner_id:
        return False
    if category is not None and expense.category != category:
        return False
    if goal_id is not None and expense.goal_id != goal_id:
        return False
    if active is not None and expense.active != active:
        return False
    if not within(expense.date, date_from, date_to):
        return False
    return within(expense.due_date, due_from, due_to)


def budget_matches(
    budget: Budget,
    owner_id: str,
    category: Optional[str] = None,
    rollover: Optional[bool] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> bool:
    if budget.owner_id != owner_id:
        return False
    if category is not None and budget.category != category:
        return False
    if rollover is not None and budget.rollover != rollover:
        return False
    return within(budget.date, date_from, date_to)


def income_matches(
    income: Income,
    owner_id: str,
    active: Optional[bool] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> bool:
    if income.owner_id != owner_id:
        return False
    if active is not None and income.active != active:
        return False
    return within(income.date, date_from, date_to)
