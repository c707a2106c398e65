"""
In-Memory Storage Implementation

Used by the test suite and as the fallback backend when Google Sheets is
not configured. Records are copied on the way in and on the way out, so
callers can never mutate stored state without an explicit update call,
the same as with a remote store.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from pennywise.errors import NotFoundError
from pennywise.models.audit import AuditEvent
from pennywise.models.finance import Budget, Expense, Goal, Income
from pennywise.services.storage.filters import (
    budget_matches,
    expense_matches,
    income_matches,
)
from pennywise.services.storage.interface import (
    AuditStorageInterface,
    FinanceStorageInterface,
)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _copy(record: RecordT) -> RecordT:
    return record.model_copy(deep=True)


class InMemoryFinanceStorage(FinanceStorageInterface):
    """Dict-backed storage. Iteration order is insertion order."""

    def __init__(self):
        self._expenses: dict[UUID, Expense] = {}
        self._budgets: dict[UUID, Budget] = {}
        self._goals: dict[UUID, Goal] = {}
        self._incomes: dict[UUID, Income] = {}

    # Generic helpers

    @staticmethod
    def _replace(table: dict, record, entity_type: str) -> bool:
        if record.id not in table:
            raise NotFoundError(entity_type, record.id)
        table[record.id] = _copy(record)
        return True

    @staticmethod
    def _get(table: dict, record_id: UUID):
        record = table.get(record_id)
        return _copy(record) if record is not None else None

    # Expenses

    async def save_expense(self, expense: Expense) -> bool:
        self._expenses[expense.id] = _copy(expense)
        return True

    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        return self._get(self._expenses, expense_id)

    async def update_expense(self, expense: Expense) -> bool:
        return self._replace(self._expenses, expense, "expense")

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    async def list_expenses(
        self,
        owner_id: str,
        category: Optional[str] = None,
        goal_id: Optional[UUID] = None,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        due_from: Optional[datetime] = None,
        due_to: Optional[datetime] = None,
    ) -> list[Expense]:
        return [
            _copy(expense)
            for expense in self._expenses.values()
            if expense_matches(
                expense,
                owner_id,
                category=category,
                goal_id=goal_id,
                active=active,
                date_from=date_from,
                date_to=date_to,
                due_from=due_from,
                due_to=due_to,
            )
        ]

    async def sum_expenses(
        self,
        owner_id: str,
        category: Optional[str] = None,
        goal_id: Optional[UUID] = None,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Decimal:
        return sum(
            (
                expense.amount
                for expense in self._expenses.values()
                if expense_matches(
                    expense,
                    owner_id,
                    category=category,
                    goal_id=goal_id,
                    active=active,
                    date_from=date_from,
                    date_to=date_to,
                )
            ),
            Decimal("0"),
        )

    async def unlink_goal(self, owner_id: str, goal_id: UUID) -> int:
        count = 0
        for expense in self._expenses.values():
            if expense.owner_id == owner_id and expense.goal_id == goal_id:
                expense.goal_id = None
                count += 1
        return count

    # Budgets

    async def save_budget(self, budget: Budget) -> bool:
        self._budgets[budget.id] = _copy(budget)
        return True

    async def get_budget_by_id(self, budget_id: UUID) -> Optional[Budget]:
        return self._get(self._budgets, budget_id)

    async def update_budget(self, budget: Budget) -> bool:
        return self._replace(self._budgets, budget, "budget")

    async def delete_budget(self, budget_id: UUID) -> bool:
        return self._budgets.pop(budget_id, None) is not None

    async def list_budgets(
        self,
        owner_id: str,
        category: Optional[str] = None,
        rollover: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Budget]:
        return [
            _copy(budget)
            for budget in self._budgets.values()
            if budget_matches(
                budget,
                owner_id,
                category=category,
                rollover=rollover,
                date_from=date_from,
                date_to=date_to,
            )
        ]

    # Goals

    async def save_goal(self, goal: Goal) -> bool:
        self._goals[goal.id] = _copy(goal)
        return True

    async def get_goal_by_id(self, goal_id: UUID) -> Optional[Goal]:
        return self._get(self._goals, goal_id)

    async def update_goal(self, goal: Goal) -> bool:
        return self._replace(self._goals, goal, "goal")

    async def delete_goal(self, goal_id: UUID) -> bool:
        return self._goals.pop(goal_id, None) is not None

    async def list_goals(self, owner_id: str) -> list[Goal]:
        return [_copy(g) for g in self._goals.values() if g.owner_id == owner_id]

    # Incomes

    async def save_income(self, income: Income) -> bool:
        self._incomes[income.id] = _copy(income)
        return True

    async def get_income_by_id(self, income_id: UUID) -> Optional[Income]:
        return self._get(self._incomes, income_id)

    async def update_income(self, income: Income) -> bool:
        return self._replace(self._incomes, income, "income")

    async def delete_income(self, income_id: UUID) -> bool:
        return self._incomes.pop(income_id, None) is not None

    async def list_incomes(
        self,
        owner_id: str,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Income]:
        return [
            _copy(income)
            for income in self._incomes.values()
            if income_matches(
                income,
                owner_id,
                active=active,
                date_from=date_from,
                date_to=date_to,
            )
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
