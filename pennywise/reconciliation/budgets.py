"""
Budget-Spent Reconciler

Budget.spent is a cache of "sum of active expenses for this owner and
category inside the budget's month". It is always recomputed from the
expense records and overwritten, never adjusted by deltas, so a missed or
doubled update in the past is corrected by the next recompute.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from pennywise.audit import AuditLogger
from pennywise.models.finance import Budget, MonthRange
from pennywise.reconciliation.dates import month_range_for
from pennywise.services.storage import FinanceStorageInterface

logger = structlog.get_logger(__name__)


class BudgetSpentReconciler:
    """Recomputes Budget.spent from the expense records."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def spent_for(
        self,
        owner_id: str,
        category: str,
        month_range: MonthRange,
    ) -> Decimal:
        """Live sum of active expenses for owner+category inside month_range."""
        return await self._storage.sum_expenses(
            owner_id,
            category=category,
            active=True,
            date_from=month_range.start,
            date_to=month_range.end,
        )

    async def recompute_spent(
        self,
        owner_id: str,
        category: str,
        month_range: Optional[MonthRange] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Budget]:
        """
        Overwrite `spent` on the owner's budget for category and month.

        Args:
            owner_id: Authenticated caller
            category: Expense category the budget covers
            month_range: Month to reconcile. None selects the most recently
                dated budget for the category and uses its month.
            correlation_id: Ties the audit events to a triggering mutation

        Returns:
            The most recently dated matching budget after reconciliation,
            or None when the owner has no budget for the category/month.
            No budget is ever created here.
        """
        if month_range is None:
            candidates = await self._storage.list_budgets(owner_id, category=category)
            if not candidates:
                logger.info("no_budget_for_category", owner_id=owner_id, category=category)
                return None
            latest = max(candidates, key=lambda b: b.date)
            month_range = month_range_for(latest.date)

        budgets = await self._storage.list_budgets(
            owner_id,
            category=category,
            date_from=month_range.start,
            date_to=month_range.end,
        )
        if not budgets:
            logger.info(
                "no_budget_for_category",
                owner_id=owner_id,
                category=category,
                month=month_range.token,
            )
            return None

        total = await self.spent_for(owner_id, category, month_range)

        # Duplicate rows for the same category and month all get the same value
        for budget in budgets:
            if budget.spent == total:
                continue
            old_spent = budget.spent
            budget.spent = total
            await self._storage.update_budget(budget)
            logger.info(
                "budget_spent_updated",
                budget_id=str(budget.id),
                category=category,
                month=month_range.token,
                spent=str(total),
            )
            if self._audit_logger:
                await self._audit_logger.log_budget_spent_reconciled(
                    budget_id=budget.id,
                    owner_id=owner_id,
                    category=category,
                    old_spent=str(old_spent),
                    new_spent=str(total),
                    correlation_id=correlation_id,
                )

        return max(budgets, key=lambda b: b.date)
