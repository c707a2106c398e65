"""
Shared fixtures for Pennywise tests.

Everything runs against in-memory storage with a frozen clock:
Sunday 3 March 2024, 12:00, which is inside the rollover window.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from pennywise.audit import AuditLogger
from pennywise.models import Budget, Expense, Goal, GoalType, Income
from pennywise.orchestrator import (
    AlertFlow,
    BudgetFlow,
    ExpenseFlow,
    GoalFlow,
    IncomeFlow,
    MonthlySummary,
)
from pennywise.reconciliation import (
    AlertEvaluator,
    BudgetSpentReconciler,
    GoalProgressReconciler,
    ReconciliationCascade,
    RolloverProcessor,
)
from pennywise.services.storage import InMemoryAuditStorage, InMemoryFinanceStorage
from pennywise.validation import FinanceValidator

OWNER = "user-1"
OTHER_OWNER = "user-2"
FIXED_NOW = datetime(2024, 3, 3, 12, 0)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def storage():
    return InMemoryFinanceStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def make_expense():
    def factory(**overrides) -> Expense:
        fields = {
            "owner_id": OWNER,
            "amount": Decimal("10.00"),
            "category": "Food",
            "date": datetime(2024, 3, 2, 9, 0),
        }
        fields.update(overrides)
        return Expense(**fields)
    return factory


@pytest.fixture
def make_budget():
    def factory(**overrides) -> Budget:
        fields = {
            "owner_id": OWNER,
            "category": "Food",
            "amount": Decimal("100.00"),
            "date": datetime(2024, 3, 1, 8, 0),
        }
        fields.update(overrides)
        return Budget(**fields)
    return factory


@pytest.fixture
def make_goal():
    def factory(**overrides) -> Goal:
        fields = {
            "owner_id": OWNER,
            "name": "Holiday",
            "amount": Decimal("1000.00"),
            "type": GoalType.SAVINGS,
            "duration": 10,
        }
        fields.update(overrides)
        return Goal(**fields)
    return factory


@pytest.fixture
def make_income():
    def factory(**overrides) -> Income:
        fields = {
            "owner_id": OWNER,
            "amount": Decimal("2000.00"),
            "source": "Salary",
            "date": datetime(2024, 3, 1, 9, 0),
        }
        fields.update(overrides)
        return Income(**fields)
    return factory


@pytest.fixture
def validator():
    return FinanceValidator(max_amount=Decimal("1000000"))


@pytest.fixture
def goal_reconciler(storage, audit_logger):
    return GoalProgressReconciler(storage, audit_logger)


@pytest.fixture
def budget_reconciler(storage, audit_logger):
    return BudgetSpentReconciler(storage, audit_logger)


@pytest.fixture
def cascade(goal_reconciler, budget_reconciler, audit_logger):
    return ReconciliationCascade(goal_reconciler, budget_reconciler, audit_logger)


@pytest.fixture
def rollover(storage, clock, audit_logger):
    return RolloverProcessor(storage, window_days=5, clock=clock, audit_logger=audit_logger)


@pytest.fixture
def evaluator(storage, clock):
    return AlertEvaluator(
        storage,
        clock=clock,
        low_budget_ratio=Decimal("0.2"),
        upcoming_window_days=7,
        currency_symbol="£",
    )


@pytest.fixture
def expense_flow(storage, cascade, audit_logger, validator, clock):
    return ExpenseFlow(storage, cascade, audit_logger, validator, clock)


@pytest.fixture
def budget_flow(storage, budget_reconciler, rollover, audit_logger, validator, clock):
    return BudgetFlow(storage, budget_reconciler, rollover, audit_logger, validator, clock)


@pytest.fixture
def goal_flow(storage, goal_reconciler, audit_logger, validator, clock):
    return GoalFlow(storage, goal_reconciler, audit_logger, validator, clock)


@pytest.fixture
def income_flow(storage, audit_logger, validator, clock):
    return IncomeFlow(storage, audit_logger, validator, clock)


@pytest.fixture
def alert_flow(evaluator, clock):
    return AlertFlow(evaluator, clock)


@pytest.fixture
def monthly_summary(storage, clock):
    return MonthlySummary(storage, clock)
