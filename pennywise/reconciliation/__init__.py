"""
Reconciliation Package

Keeps the derived fields (Budget.spent, Goal.progress,
Budget.rollover_amount) consistent with the expense records, and derives
alerts on request.
"""

from pennywise.reconciliation.alerts import AlertEvaluator
from pennywise.reconciliation.budgets import BudgetSpentReconciler
from pennywise.reconciliation.cascade import (
    CascadeFailure,
    CascadeReport,
    ReconciliationCascade,
    budget_targets,
    goal_targets,
    linked_delta,
)
from pennywise.reconciliation.dates import (
    month_range_for,
    month_token,
    previous_month_range,
    previous_month_token,
    resolve_month_range,
)
from pennywise.reconciliation.goals import GoalProgressReconciler, clamp
from pennywise.reconciliation.rollover import RolloverProcessor

__all__ = [
    "AlertEvaluator",
    "BudgetSpentReconciler",
    "CascadeFailure",
    "CascadeReport",
    "GoalProgressReconciler",
    "ReconciliationCascade",
    "RolloverProcessor",
    "budget_targets",
    "clamp",
    "goal_targets",
    "linked_delta",
    "month_range_for",
    "month_token",
    "previous_month_range",
    "previous_month_token",
    "resolve_month_range",
]
