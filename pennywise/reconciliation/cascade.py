"""
Expense Mutation Cascade

Every expense create, update, soft delete and hard delete is published as
an ExpenseChange. The cascade turns it into reconcile calls for the goals
and budgets the expense touched, before and after the change.

Each step is independent. A failing step is audited and recorded in the
report; it never fails the mutation that triggered it, and it never stops
the remaining steps.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from pennywise.audit import AuditLogger
from pennywise.models.finance import ExpenseChange, MonthRange
from pennywise.reconciliation.budgets import BudgetSpentReconciler
from pennywise.reconciliation.dates import month_range_for
from pennywise.reconciliation.goals import GoalProgressReconciler

logger = structlog.get_logger(__name__)


def budget_targets(change: ExpenseChange) -> list[tuple[str, MonthRange]]:
    """Distinct (category, month) pairs touched by either snapshot."""
    targets: list[tuple[str, MonthRange]] = []
    for snapshot in change.snapshots:
        target = (snapshot.category, month_range_for(snapshot.date))
        if target not in targets:
            targets.append(target)
    return targets


def goal_targets(change: ExpenseChange) -> list[UUID]:
    """Distinct goal ids linked before or after the change."""
    targets: list[UUID] = []
    for snapshot in change.snapshots:
        if snapshot.goal_id is not None and snapshot.goal_id not in targets:
            targets.append(snapshot.goal_id)
    return targets


def linked_delta(change: ExpenseChange, goal_id: UUID) -> Decimal:
    """How much the change moved the active linked sum of goal_id."""
    def contribution(snapshot):
        if snapshot is not None and snapshot.active and snapshot.goal_id == goal_id:
            return snapshot.amount
        return Decimal("0")

    return contribution(change.after) - contribution(change.before)


class CascadeFailure(BaseModel):
    """One reconcile step that raised."""

    target: str
    error: str


class CascadeReport(BaseModel):
    """What a dispatch did."""

    expense_id: UUID
    goals_reconciled: list[UUID] = Field(default_factory=list)
    budgets_reconciled: list[str] = Field(default_factory=list)
    failures: list[CascadeFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


class ReconciliationCascade:
    """Dispatches an expense change to the goal and budget reconcilers."""

    def __init__(
        self,
        goal_reconciler: GoalProgressReconciler,
        budget_reconciler: BudgetSpentReconciler,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._goal_reconciler = goal_reconciler
        self._budget_reconciler = budget_reconciler
        self._audit_logger = audit_logger

    async def dispatch(
        self,
        change: ExpenseChange,
        correlation_id: Optional[UUID] = None,
    ) -> CascadeReport:
        """
        Reconcile everything the change touched.

        Goals first, then budgets. Never raises.
        """
        report = CascadeReport(expense_id=change.expense_id)

        if not change.affects_reconciliation:
            logger.debug("cascade_skipped", expense_id=str(change.expense_id))
            return report

        for goal_id in goal_targets(change):
            target = f"goal:{goal_id}"
            try:
                await self._goal_reconciler.recompute_progress(
                    goal_id,
                    change.owner_id,
                    correlation_id=correlation_id,
                    linked_delta=linked_delta(change, goal_id),
                )
                report.goals_reconciled.append(goal_id)
            except Exception as e:
                await self._record_failure(report, change, target, e, correlation_id)

        for category, month_range in budget_targets(change):
            target = f"budget:{category}:{month_range.token}"
            try:
                await self._budget_reconciler.recompute_spent(
                    change.owner_id,
                    category,
                    month_range,
                    correlation_id=correlation_id,
                )
                report.budgets_reconciled.append(f"{category}:{month_range.token}")
            except Exception as e:
                await self._record_failure(report, change, target, e, correlation_id)

        logger.info(
            "cascade_dispatched",
            expense_id=str(change.expense_id),
            goals=len(report.goals_reconciled),
            budgets=len(report.budgets_reconciled),
            failures=len(report.failures),
        )
        return report

    async def _record_failure(
        self,
        report: CascadeReport,
        change: ExpenseChange,
        target: str,
        error: Exception,
        correlation_id: Optional[UUID],
    ) -> None:
        report.failures.append(CascadeFailure(target=target, error=str(error)))
        logger.error(
            "cascade_step_failed",
            target=target,
            expense_id=str(change.expense_id),
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_reconciliation_failed(
                target=target,
                owner_id=change.owner_id,
                error_message=str(error),
                details={"expense_id": str(change.expense_id)},
                correlation_id=correlation_id,
            )
