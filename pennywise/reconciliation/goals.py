"""
Goal-Progress Reconciler

Goal.progress is derived as

    clamp(initial_progress + sum(active linked expenses), 0, goal.amount)

and is always recomputed from those two inputs, never from the previous
progress value, so it can be called from any number of triggers without
drifting.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from pennywise.audit import AuditLogger
from pennywise.models.finance import Goal, GoalReconciliation
from pennywise.services.storage import FinanceStorageInterface

logger = structlog.get_logger(__name__)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    """Bound value to [low, high]."""
    return min(max(value, low), high)


class GoalProgressReconciler:
    """Recomputes Goal.progress from its baseline and linked expenses."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def linked_sum(self, goal_id: UUID, owner_id: str) -> Decimal:
        """Sum of the owner's active expenses linked to goal_id."""
        return await self._storage.sum_expenses(owner_id, goal_id=goal_id, active=True)

    async def recompute_progress(
        self,
        goal_id: UUID,
        owner_id: str,
        correlation_id: Optional[UUID] = None,
        linked_delta: Decimal = Decimal("0"),
    ) -> Optional[Goal]:
        """
        Bring the goal's progress in line with its inputs.

        Args:
            linked_delta: How much the linked sum moved in the expense
                          mutation that triggered this recompute. Baseline
                          seeding looks at the sum from before that mutation.

        Returns:
            The goal (changed or not), or None if it is missing or owned
            by someone else.
        """
        goal = await self._storage.get_goal_by_id(goal_id)
        if goal is None or goal.owner_id != owner_id:
            logger.info("goal_not_found", goal_id=str(goal_id), owner_id=owner_id)
            return None

        expenses_total = await self.linked_sum(goal_id, owner_id)

        # Goals created before linking existed carry manual progress and no
        # baseline. Seed the baseline from that progress exactly once.
        if (
            goal.initial_progress == 0
            and goal.progress > 0
            and expenses_total - linked_delta == 0
        ):
            goal.initial_progress = goal.progress
            await self._storage.update_goal(goal)
            logger.info(
                "goal_baseline_seeded",
                goal_id=str(goal_id),
                initial_progress=str(goal.initial_progress),
            )
            if self._audit_logger:
                await self._audit_logger.log_goal_baseline_seeded(
                    goal_id=goal.id,
                    owner_id=owner_id,
                    initial_progress=str(goal.initial_progress),
                )

        target = clamp(goal.initial_progress + expenses_total, Decimal("0"), goal.amount)

        if target != goal.progress:
            old_progress = goal.progress
            goal.progress = target
            await self._storage.update_goal(goal)
            logger.info(
                "goal_progress_corrected",
                goal_id=str(goal_id),
                old_progress=str(old_progress),
                new_progress=str(target),
            )
            if self._audit_logger:
                await self._audit_logger.log_goal_progress_corrected(
                    goal_id=goal.id,
                    owner_id=owner_id,
                    old_progress=str(old_progress),
                    new_progress=str(target),
                    correlation_id=correlation_id,
                )

        return goal

    async def reconcile_all(self, owner_id: str) -> list[GoalReconciliation]:
        """
        Reconcile every goal the owner has. Used for manual repair.

        Returns one entry per goal with its progress before and after.
        """
        results = []
        for goal in await self._storage.list_goals(owner_id):
            updated = await self.recompute_progress(goal.id, owner_id)
            new_progress = updated.progress if updated else goal.progress
            results.append(
                GoalReconciliation(
                    goal_id=goal.id,
                    name=goal.name,
                    type=goal.type,
                    corrected=new_progress != goal.progress,
                    old_progress=goal.progress,
                    new_progress=new_progress,
                )
            )

        logger.info(
            "goals_reconciled",
            owner_id=owner_id,
            total=len(results),
            corrected=sum(1 for r in results if r.corrected),
        )
        return results
