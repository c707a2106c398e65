"""
Data Models Package

This package contains all Pydantic models used in Pennywise.
All data flowing through the system must conform to these schemas.
"""

from pennywise.models.finance import (
    Alert,
    Budget,
    BudgetInput,
    Expense,
    ExpenseChange,
    ExpenseInput,
    ExpenseSnapshot,
    Goal,
    GoalDetails,
    GoalInput,
    GoalReconciliation,
    GoalType,
    Income,
    IncomeInput,
    MonthlySummaryResult,
    MonthRange,
)
from pennywise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Alert",
    "Budget",
    "BudgetInput",
    "Expense",
    "ExpenseChange",
    "ExpenseInput",
    "ExpenseSnapshot",
    "Goal",
    "GoalDetails",
    "GoalInput",
    "GoalReconciliation",
    "GoalType",
    "Income",
    "IncomeInput",
    "MonthlySummaryResult",
    "MonthRange",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
