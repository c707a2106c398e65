"""
Integration tests for the orchestrator flows.

Flows run against in-memory storage with a frozen clock; the reconcilers
are real, so these tests check the derived fields end to end.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pennywise.errors import AuthorizationError, NotFoundError, ValidationError
from pennywise.models import (
    BudgetInput,
    ExpenseInput,
    GoalInput,
    IncomeInput,
)
from pennywise.models.audit import AuditEventType
from pennywise.orchestrator import BudgetFlow, ExpenseFlow, create_app_components
from pennywise.reconciliation import (
    BudgetSpentReconciler,
    GoalProgressReconciler,
    ReconciliationCascade,
)
from pennywise.services.storage import InMemoryFinanceStorage, StorageError


def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in audit_storage.events]


class BrokenSaveStorage(InMemoryFinanceStorage):
    async def save_expense(self, expense):
        raise StorageError("sheet unavailable")


class BrokenGoalUpdateStorage(InMemoryFinanceStorage):
    async def update_goal(self, goal):
        raise StorageError("goal sheet unavailable")


class FailingRollover:
    def should_run(self, now):
        return True

    async def process(self, owner_id, now):
        raise RuntimeError("budget sheet unavailable")


class TestExpenseFlow:
    """Tests for expense mutations and their cascade."""

    async def test_create_reconciles_budget_and_goal(
        self, storage, expense_flow, make_budget, make_goal
    ):
        budget = make_budget()
        goal = make_goal()
        await storage.save_budget(budget)
        await storage.save_goal(goal)

        expense = await expense_flow.create_expense(
            "user-1",
            ExpenseInput(amount=Decimal("42.50"), category="Food", goal_id=goal.id),
        )

        assert expense.date == datetime(2024, 3, 3, 12, 0)
        assert (await storage.get_budget_by_id(budget.id)).spent == Decimal("42.50")
        assert (await storage.get_goal_by_id(goal.id)).progress == Decimal("42.50")

    async def test_deleting_linked_expense_lowers_goal_progress(
        self, storage, expense_flow, make_goal
    ):
        goal = make_goal(initial_progress=Decimal("100"), progress=Decimal("100"))
        await storage.save_goal(goal)
        expense = await expense_flow.create_expense(
            "user-1",
            ExpenseInput(amount=Decimal("40"), category="Savings", goal_id=goal.id),
        )
        assert (await storage.get_goal_by_id(goal.id)).progress == Decimal("140")

        assert await expense_flow.delete_expense("user-1", expense.id) is True

        assert (await storage.get_goal_by_id(goal.id)).progress == Decimal("100")
        assert await storage.get_expense_by_id(expense.id) is None

    @pytest.mark.parametrize("removal", ["delete", "deactivate", "unlink"])
    async def test_removing_only_linked_expense_resets_zero_baseline_goal(
        self, storage, expense_flow, goal_flow, removal
    ):
        goal = await goal_flow.create_goal(
            "user-1", GoalInput(name="Bike", amount=Decimal("500"), type="Savings")
        )
        expense = await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("40"), category="Savings", goal_id=goal.id)
        )
        assert (await storage.get_goal_by_id(goal.id)).progress == Decimal("40")

        if removal == "delete":
            await expense_flow.delete_expense("user-1", expense.id)
        elif removal == "deactivate":
            await expense_flow.deactivate_expense("user-1", expense.id)
        else:
            await expense_flow.update_expense(
                "user-1", expense.id, ExpenseInput(amount=Decimal("40"), category="Savings")
            )

        stored = await storage.get_goal_by_id(goal.id)
        assert stored.progress == Decimal("0")
        assert stored.initial_progress == Decimal("0")

    async def test_linking_to_legacy_goal_keeps_manual_progress(
        self, storage, expense_flow, make_goal
    ):
        goal = make_goal(progress=Decimal("100"))
        await storage.save_goal(goal)

        await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("40"), category="Savings", goal_id=goal.id)
        )

        stored = await storage.get_goal_by_id(goal.id)
        assert stored.initial_progress == Decimal("100")
        assert stored.progress == Decimal("140")

    async def test_category_change_moves_spending(self, storage, expense_flow, make_budget):
        food = make_budget(category="Food")
        rent = make_budget(category="Rent")
        await storage.save_budget(food)
        await storage.save_budget(rent)
        expense = await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("30"), category="Food")
        )

        await expense_flow.update_expense(
            "user-1", expense.id, ExpenseInput(amount=Decimal("30"), category="Rent")
        )

        assert (await storage.get_budget_by_id(food.id)).spent == Decimal("0")
        assert (await storage.get_budget_by_id(rent.id)).spent == Decimal("30")

    async def test_relinking_updates_both_goals(self, storage, expense_flow, make_goal):
        first = make_goal(name="First", initial_progress=Decimal("10"), progress=Decimal("10"))
        second = make_goal(name="Second", initial_progress=Decimal("10"), progress=Decimal("10"))
        await storage.save_goal(first)
        await storage.save_goal(second)
        expense = await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("20"), category="Savings", goal_id=first.id)
        )

        await expense_flow.update_expense(
            "user-1",
            expense.id,
            ExpenseInput(amount=Decimal("20"), category="Savings", goal_id=second.id),
        )

        assert (await storage.get_goal_by_id(first.id)).progress == Decimal("10")
        assert (await storage.get_goal_by_id(second.id)).progress == Decimal("30")

    async def test_deactivate_drops_expense_from_sums(self, storage, expense_flow, make_budget):
        budget = make_budget()
        await storage.save_budget(budget)
        expense = await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("30"), category="Food")
        )

        deactivated = await expense_flow.deactivate_expense("user-1", expense.id)

        assert deactivated.active is False
        assert (await storage.get_expense_by_id(expense.id)).active is False
        assert (await storage.get_budget_by_id(budget.id)).spent == Decimal("0")

    async def test_foreign_expense_is_rejected_before_write(
        self, storage, expense_flow, audit_storage, make_expense
    ):
        expense = make_expense(owner_id="user-2", amount=Decimal("10"))
        await storage.save_expense(expense)

        with pytest.raises(AuthorizationError):
            await expense_flow.update_expense(
                "user-1", expense.id, ExpenseInput(amount=Decimal("99"), category="Food")
            )
        with pytest.raises(AuthorizationError):
            await expense_flow.delete_expense("user-1", expense.id)

        assert (await storage.get_expense_by_id(expense.id)).amount == Decimal("10")
        assert AuditEventType.AUTHORIZATION_DENIED in event_types(audit_storage)

    async def test_missing_expense_is_not_found(self, expense_flow):
        with pytest.raises(NotFoundError):
            await expense_flow.get_expense("user-1", uuid4())

    async def test_link_to_missing_goal_is_not_found(self, storage, expense_flow):
        with pytest.raises(NotFoundError):
            await expense_flow.create_expense(
                "user-1", ExpenseInput(amount=Decimal("5"), category="Food", goal_id=uuid4())
            )
        assert await storage.list_expenses("user-1") == []

    async def test_link_to_foreign_goal_is_unauthorized(self, storage, expense_flow, make_goal):
        goal = make_goal(owner_id="user-2")
        await storage.save_goal(goal)

        with pytest.raises(AuthorizationError):
            await expense_flow.create_expense(
                "user-1", ExpenseInput(amount=Decimal("5"), category="Food", goal_id=goal.id)
            )
        assert (await storage.get_goal_by_id(goal.id)).progress == Decimal("0")

    @pytest.mark.parametrize("amount, category", [
        (Decimal("0"), "Food"),
        (Decimal("-3"), "Food"),
        (Decimal("2000000"), "Food"),
        (Decimal("1.005"), "Food"),
        (Decimal("5"), "   "),
        (Decimal("5"), "x" * 101),
    ])
    async def test_invalid_input_is_rejected(
        self, storage, expense_flow, audit_storage, amount, category
    ):
        with pytest.raises(ValidationError):
            await expense_flow.create_expense(
                "user-1", ExpenseInput(amount=amount, category=category)
            )
        assert await storage.list_expenses("user-1") == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    async def test_over_long_text_is_a_typed_validation_error(
        self, expense_flow, audit_storage
    ):
        with pytest.raises(ValidationError) as exc_info:
            await expense_flow.create_expense(
                "user-1",
                ExpenseInput(amount=Decimal("5"), category="Food", payee="p" * 201),
            )
        assert exc_info.value.field == "payee"
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    async def test_storage_failure_is_audited_and_raised(
        self, cascade, audit_logger, audit_storage, validator, clock
    ):
        flow = ExpenseFlow(BrokenSaveStorage(), cascade, audit_logger, validator, clock)

        with pytest.raises(StorageError):
            await flow.create_expense("user-1", ExpenseInput(amount=Decimal("5"), category="Food"))

        assert AuditEventType.STORAGE_ERROR in event_types(audit_storage)

    async def test_cascade_failure_keeps_the_expense(
        self, audit_logger, audit_storage, validator, clock, make_goal
    ):
        storage = BrokenGoalUpdateStorage()
        cascade = ReconciliationCascade(
            GoalProgressReconciler(storage, audit_logger),
            BudgetSpentReconciler(storage, audit_logger),
            audit_logger,
        )
        flow = ExpenseFlow(storage, cascade, audit_logger, validator, clock)
        goal = make_goal()
        await storage.save_goal(goal)

        expense = await flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("5"), category="Food", goal_id=goal.id)
        )

        assert await storage.get_expense_by_id(expense.id) is not None
        assert flow.last_report.failures
        assert AuditEventType.RECONCILIATION_FAILED in event_types(audit_storage)

    async def test_aware_dates_reconcile_and_alert(
        self, storage, expense_flow, alert_flow, make_budget
    ):
        budget = make_budget()
        await storage.save_budget(budget)

        expense = await expense_flow.create_expense(
            "user-1",
            ExpenseInput(
                amount=Decimal("30"),
                category="Food",
                date=datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
                due_date=datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc),
            ),
        )

        assert expense.date.tzinfo is None
        assert expense_flow.last_report.succeeded
        assert (await storage.get_budget_by_id(budget.id)).spent == Decimal("30")
        alerts = await alert_flow.get_alerts("user-1")
        assert len(alerts) == 1

    async def test_list_is_newest_first_and_month_scoped(self, storage, expense_flow, make_expense):
        await storage.save_expense(make_expense(date=datetime(2024, 3, 1)))
        await storage.save_expense(make_expense(date=datetime(2024, 3, 20)))
        await storage.save_expense(make_expense(date=datetime(2024, 2, 20)))

        march = await expense_flow.list_expenses("user-1", "2024-03")
        everything = await expense_flow.list_expenses("user-1")

        assert [e.date.day for e in march] == [20, 1]
        assert len(everything) == 3


class TestBudgetFlow:
    """Tests for budget upsert, listing and rollover."""

    async def test_save_creates_with_live_spent(self, storage, budget_flow, make_expense):
        await storage.save_expense(make_expense(amount=Decimal("12")))

        budget = await budget_flow.save_budget(
            "user-1", BudgetInput(category="Food", amount=Decimal("200"))
        )

        assert budget.spent == Decimal("12")
        assert budget.date == datetime(2024, 3, 3, 12, 0)

    async def test_save_twice_updates_same_row(self, storage, budget_flow):
        first = await budget_flow.save_budget(
            "user-1", BudgetInput(category="Food", amount=Decimal("200"))
        )
        second = await budget_flow.save_budget(
            "user-1", BudgetInput(category="Food", amount=Decimal("250"), rollover=True)
        )

        assert first.id == second.id
        budgets = await storage.list_budgets("user-1")
        assert len(budgets) == 1
        assert budgets[0].amount == Decimal("250")
        assert budgets[0].rollover is True

    async def test_listing_applies_rollover(self, storage, budget_flow, make_budget):
        await storage.save_budget(make_budget(
            amount=Decimal("500"),
            spent=Decimal("300"),
            rollover=True,
            date=datetime(2024, 2, 1),
        ))
        await storage.save_budget(make_budget(amount=Decimal("400")))

        budgets = await budget_flow.list_budgets("user-1")

        assert len(budgets) == 1
        assert budgets[0].rollover_amount == Decimal("200")

    async def test_rollover_failure_is_audited_and_listing_succeeds(
        self, storage, budget_reconciler, audit_logger, audit_storage, validator, clock, make_budget
    ):
        flow = BudgetFlow(
            storage, budget_reconciler, FailingRollover(), audit_logger, validator, clock
        )
        await storage.save_budget(make_budget())

        budgets = await flow.list_budgets("user-1")

        assert len(budgets) == 1
        errors = [e for e in audit_storage.events if e.event_type == AuditEventType.SYSTEM_ERROR]
        assert len(errors) == 1
        assert errors[0].owner_id == "user-1"
        assert errors[0].error_message == "budget sheet unavailable"
        assert errors[0].details == {"month": "2024-03"}

    async def test_listing_other_month(self, storage, budget_flow, make_budget):
        await storage.save_budget(make_budget(date=datetime(2024, 1, 15)))

        assert len(await budget_flow.list_budgets("user-1", "2024-01")) == 1
        assert await budget_flow.list_budgets("user-1", "2024-03") == []

    async def test_update_category_recomputes_spent(
        self, storage, budget_flow, make_budget, make_expense
    ):
        budget = make_budget(category="Food")
        await storage.save_budget(budget)
        await storage.save_expense(make_expense(category="Rent", amount=Decimal("700")))

        updated = await budget_flow.update_budget(
            "user-1", budget.id, BudgetInput(category="Rent", amount=Decimal("800"))
        )

        assert updated.spent == Decimal("700")

    async def test_delete_foreign_budget_is_unauthorized(self, storage, budget_flow, make_budget):
        budget = make_budget(owner_id="user-2")
        await storage.save_budget(budget)

        with pytest.raises(AuthorizationError):
            await budget_flow.delete_budget("user-1", budget.id)
        assert await storage.get_budget_by_id(budget.id) is not None

    async def test_reconcile_budget(self, storage, budget_flow, make_budget, make_expense):
        budget = make_budget(spent=Decimal("1"))
        await storage.save_budget(budget)
        await storage.save_expense(make_expense(amount=Decimal("8")))

        result = await budget_flow.reconcile_budget("user-1", "Food", "2024-03")

        assert result.spent == Decimal("8")
        assert await budget_flow.reconcile_budget("user-1", "Travel") is None


class TestGoalFlow:
    """Tests for goal baseline bookkeeping."""

    async def test_create_clamps_progress(self, goal_flow):
        goal = await goal_flow.create_goal(
            "user-1",
            GoalInput(name="Car", amount=Decimal("100"), type="Debt", progress=Decimal("150")),
        )
        assert goal.progress == Decimal("100")
        assert goal.initial_progress == Decimal("100")

    async def test_unknown_goal_type_is_rejected(self, goal_flow):
        with pytest.raises(ValidationError) as exc_info:
            await goal_flow.create_goal(
                "user-1", GoalInput(name="Car", amount=Decimal("100"), type="Wishlist")
            )
        assert exc_info.value.field == "type"

    async def test_over_long_name_is_rejected(self, goal_flow):
        with pytest.raises(ValidationError) as exc_info:
            await goal_flow.create_goal(
                "user-1", GoalInput(name="n" * 201, amount=Decimal("100"), type="Savings")
            )
        assert exc_info.value.field == "name"

    async def test_zero_duration_is_rejected(self, goal_flow):
        with pytest.raises(ValidationError):
            await goal_flow.create_goal(
                "user-1",
                GoalInput(name="Car", amount=Decimal("100"), type="Savings", duration=0),
            )

    async def test_update_derives_baseline_from_linked_sum(
        self, storage, goal_flow, expense_flow
    ):
        goal = await goal_flow.create_goal(
            "user-1", GoalInput(name="House", amount=Decimal("1000"), type="Savings")
        )
        await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("300"), category="Savings", goal_id=goal.id)
        )

        updated = await goal_flow.update_goal(
            "user-1",
            goal.id,
            GoalInput(name="House", amount=Decimal("1000"), type="Savings", progress=Decimal("500")),
        )

        assert updated.initial_progress == Decimal("200")
        assert updated.progress == Decimal("500")

    async def test_update_below_linked_sum_floors_baseline(self, goal_flow, expense_flow):
        goal = await goal_flow.create_goal(
            "user-1", GoalInput(name="House", amount=Decimal("1000"), type="Savings")
        )
        await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("300"), category="Savings", goal_id=goal.id)
        )

        updated = await goal_flow.update_goal(
            "user-1",
            goal.id,
            GoalInput(name="House", amount=Decimal("1000"), type="Savings", progress=Decimal("100")),
        )

        assert updated.initial_progress == Decimal("0")
        assert updated.progress == Decimal("300")

    async def test_delete_unlinks_expenses(self, storage, goal_flow, expense_flow):
        goal = await goal_flow.create_goal(
            "user-1", GoalInput(name="Bike", amount=Decimal("500"), type="Savings")
        )
        expense = await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("50"), category="Savings", goal_id=goal.id)
        )

        assert await goal_flow.delete_goal("user-1", goal.id) == 1

        assert await storage.get_goal_by_id(goal.id) is None
        assert (await storage.get_expense_by_id(expense.id)).goal_id is None

    async def test_details_and_linked_expenses(self, goal_flow, expense_flow):
        goal = await goal_flow.create_goal(
            "user-1",
            GoalInput(name="Trip", amount=Decimal("600"), type="Savings", duration=6),
        )
        await expense_flow.create_expense(
            "user-1", ExpenseInput(amount=Decimal("100"), category="Travel", goal_id=goal.id)
        )

        details = await goal_flow.goal_details("user-1", goal.id)
        linked = await goal_flow.linked_expenses("user-1", goal.id)

        assert details.monthly_target == Decimal("100.00")
        assert details.remaining == Decimal("500")
        assert len(linked) == 1

    async def test_foreign_goal_details_unauthorized(self, storage, goal_flow, make_goal):
        goal = make_goal(owner_id="user-2")
        await storage.save_goal(goal)

        with pytest.raises(AuthorizationError):
            await goal_flow.goal_details("user-1", goal.id)

    async def test_reconcile_goals(self, storage, goal_flow, make_goal, make_expense):
        goal = make_goal()
        await storage.save_goal(goal)
        await storage.save_expense(make_expense(amount=Decimal("70"), goal_id=goal.id))

        results = await goal_flow.reconcile_goals("user-1")

        assert results[0].corrected is True
        assert results[0].new_progress == Decimal("70")


class TestIncomeFlow:
    async def test_list_is_oldest_first(self, income_flow):
        await income_flow.add_income(
            "user-1", IncomeInput(amount=Decimal("100"), date=datetime(2024, 3, 20))
        )
        await income_flow.add_income(
            "user-1", IncomeInput(amount=Decimal("200"), date=datetime(2024, 3, 2))
        )
        await income_flow.add_income(
            "user-1", IncomeInput(amount=Decimal("300"), date=datetime(2024, 2, 2))
        )

        incomes = await income_flow.list_incomes("user-1", "2024-03")

        assert [i.amount for i in incomes] == [Decimal("200"), Decimal("100")]

    async def test_update_and_delete(self, storage, income_flow):
        income = await income_flow.add_income("user-1", IncomeInput(amount=Decimal("100")))

        updated = await income_flow.update_income(
            "user-1", income.id, IncomeInput(amount=Decimal("150"), source="Bonus")
        )
        assert updated.amount == Decimal("150")
        assert updated.date == income.date

        with pytest.raises(AuthorizationError):
            await income_flow.delete_income("user-2", income.id)
        assert await income_flow.delete_income("user-1", income.id) is True
        assert await storage.get_income_by_id(income.id) is None

    async def test_non_positive_income_rejected(self, income_flow):
        with pytest.raises(ValidationError):
            await income_flow.add_income("user-1", IncomeInput(amount=Decimal("0")))

    async def test_over_long_source_rejected(self, income_flow):
        with pytest.raises(ValidationError) as exc_info:
            await income_flow.add_income(
                "user-1", IncomeInput(amount=Decimal("10"), source="s" * 201)
            )
        assert exc_info.value.field == "source"


class TestAlertsAndSummary:
    async def test_get_alerts(self, storage, alert_flow, make_budget, make_expense):
        await storage.save_budget(make_budget(amount=Decimal("100")))
        await storage.save_expense(make_expense(amount=Decimal("85")))

        alerts = await alert_flow.get_alerts("user-1")

        assert [a.category for a in alerts] == ["Food"]

    async def test_monthly_summary(self, storage, monthly_summary, make_expense, make_income):
        await storage.save_income(make_income(amount=Decimal("2000")))
        await storage.save_expense(make_expense(amount=Decimal("300"), category="Rent"))
        await storage.save_expense(make_expense(amount=Decimal("45.50")))
        await storage.save_expense(make_expense(amount=Decimal("4.50")))
        await storage.save_expense(make_expense(amount=Decimal("99"), active=False))
        await storage.save_expense(make_expense(amount=Decimal("99"), date=datetime(2024, 2, 1)))

        summary = await monthly_summary.summarize("user-1")

        assert summary.month == "2024-03"
        assert summary.total_income == Decimal("2000")
        assert summary.total_expenses == Decimal("350")
        assert summary.net == Decimal("1650")
        assert summary.by_category == {"Rent": Decimal("300"), "Food": Decimal("50")}


class TestAppComponents:
    def test_in_memory_components(self, clock):
        components = create_app_components(use_storage=False, clock=clock)
        assert isinstance(components.storage, InMemoryFinanceStorage)
        assert components.sheets_client is None

    async def test_components_share_storage(self, clock):
        components = create_app_components(use_storage=False, clock=clock)
        await components.budgets.save_budget(
            "user-1", BudgetInput(category="Food", amount=Decimal("100"))
        )
        await components.expenses.create_expense(
            "user-1", ExpenseInput(amount=Decimal("90"), category="Food")
        )

        budgets = await components.budgets.list_budgets("user-1")
        alerts = await components.alerts.get_alerts("user-1")

        assert budgets[0].spent == Decimal("90")
        assert len(alerts) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
