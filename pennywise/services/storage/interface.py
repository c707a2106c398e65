"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a document database later
2. Use in-memory storage for testing
3. Keep the reconciliation rules decoupled from storage implementation

The interface mirrors a document store: find-by-filter, find-one, create,
update-by-id, delete-by-id and one summation primitive. Single-record
writes are assumed atomic; there are no multi-record transactions.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pennywise.errors import UpstreamFailure
from pennywise.models.audit import AuditEvent
from pennywise.models.finance import Budget, Expense, Goal, Income


class FinanceStorageInterface(ABC):
    """
    Abstract interface for expense, budget, goal and income storage.

    Every list/sum method takes owner_id first: it is the tenancy
    boundary and is never optional.
    """

    # -------------------------------------------------------------------------
    # Expenses
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_expense(self, expense: Expense) -> bool:
        """
        Persist a new expense.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_expense_by_id(self, expense_id: UUID) -> Optional[Expense]:
        """Return the expense, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> bool:
        """
        Overwrite an existing expense.

        Raises:
            NotFoundError: If the expense doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        """Delete an expense. Returns False if it did not exist."""
        pass

    @abstractmethod
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
        """
        List expenses with optional filters.

        Date bounds are inclusive on both ends. due_from/due_to only
        match expenses that have a due date.
        """
        pass

    @abstractmethod
    async def sum_expenses(
        self,
        owner_id: str,
        category: Optional[str] = None,
        goal_id: Optional[UUID] = None,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Decimal:
        """
        Sum the amount of matching expenses.

        Returns Decimal("0") when nothing matches.
        """
        pass

    @abstractmethod
    async def unlink_goal(self, owner_id: str, goal_id: UUID) -> int:
        """
        Clear goal_id on every expense of owner_id linked to goal_id.

        Returns the number of expenses unlinked.
        """
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_budget(self, budget: Budget) -> bool:
        pass

    @abstractmethod
    async def get_budget_by_id(self, budget_id: UUID) -> Optional[Budget]:
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> bool:
        """
        Raises:
            NotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_budgets(
        self,
        owner_id: str,
        category: Optional[str] = None,
        rollover: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Budget]:
        """List budgets with optional filters, in storage order."""
        pass

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_goal(self, goal: Goal) -> bool:
        pass

    @abstractmethod
    async def get_goal_by_id(self, goal_id: UUID) -> Optional[Goal]:
        pass

    @abstractmethod
    async def update_goal(self, goal: Goal) -> bool:
        """
        Raises:
            NotFoundError: If the goal doesn't exist
        """
        pass

    @abstractmethod
    async def delete_goal(self, goal_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_goals(self, owner_id: str) -> list[Goal]:
        pass

    # -------------------------------------------------------------------------
    # Incomes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_income(self, income: Income) -> bool:
        pass

    @abstractmethod
    async def get_income_by_id(self, income_id: UUID) -> Optional[Income]:
        pass

    @abstractmethod
    async def update_income(self, income: Income) -> bool:
        """
        Raises:
            NotFoundError: If the income doesn't exist
        """
        pass

    @abstractmethod
    async def delete_income(self, income_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_incomes(
        self,
        owner_id: str,
        active: Optional[bool] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[Income]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one expense mutation
        and its reconciliation cascade), in chronological order.
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(UpstreamFailure):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
