"""
Main Orchestrator for Pennywise

This module ties together all the components and defines the
end-to-end flows that route handlers call:
1. Expenses (validate → authorize → persist → reconcile goals and budgets)
2. Budgets (upsert, lazy rollover on listing, manual reconcile)
3. Goals (baseline bookkeeping, unlinking on delete, bulk repair)
4. Incomes, alerts and the monthly summary

DESIGN DECISION: The orchestrator enforces the boundaries:
- Validation and authorization abort before any write
- Every primary mutation is audited
- Reconciliation after an expense mutation is best-effort: it is
  audited when it fails but never undoes the mutation

This is the "glue" that ensures the derived fields stay consistent
even when individual components fail.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog

from pennywise.audit import AuditLogger, create_correlation_id
from pennywise.errors import AuthorizationError, NotFoundError, ValidationError
from pennywise.models.audit import AuditEventType
from pennywise.models.finance import (
    Alert,
    Budget,
    BudgetInput,
    Expense,
    ExpenseChange,
    ExpenseInput,
    Goal,
    GoalDetails,
    GoalInput,
    GoalReconciliation,
    GoalType,
    Income,
    IncomeInput,
    MonthlySummaryResult,
)
from pennywise.reconciliation import (
    AlertEvaluator,
    BudgetSpentReconciler,
    CascadeReport,
    GoalProgressReconciler,
    ReconciliationCascade,
    RolloverProcessor,
    clamp,
    month_range_for,
    month_token,
    resolve_month_range,
)
from pennywise.services.storage import (
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryFinanceStorage,
    StorageError,
)
from pennywise.validation import FinanceValidator

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]


class _Flow:
    """Shared plumbing: clock, audit, ownership and storage-error handling."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[FinanceValidator] = None,
        clock: Optional[Clock] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._validator = validator or FinanceValidator()
        self._clock = clock or datetime.now

    async def _guard(
        self,
        operation: str,
        owner_id: str,
        call: Awaitable[T],
        correlation_id: Optional[UUID] = None,
    ) -> T:
        """Await a storage call, auditing and re-raising StorageError."""
        try:
            return await call
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation=operation,
                    error_message=str(e),
                    owner_id=owner_id,
                    correlation_id=correlation_id,
                )
            raise

    async def _validate(self, entity_type: str, owner_id: str, check: Callable[[], None]) -> None:
        try:
            check()
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    entity_type=entity_type,
                    owner_id=owner_id,
                    field=e.field,
                    message=str(e),
                )
            raise

    async def _authorize(
        self,
        entity_type: str,
        record: Optional[T],
        entity_id: UUID,
        owner_id: str,
    ) -> T:
        """The record if the caller owns it; NotFoundError or AuthorizationError otherwise."""
        if record is None:
            raise NotFoundError(entity_type, entity_id)
        if record.owner_id != owner_id:
            if self._audit_logger:
                await self._audit_logger.log_authorization_denied(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    owner_id=owner_id,
                )
            raise AuthorizationError(entity_type, entity_id)
        return record


class ExpenseFlow(_Flow):
    """
    Orchestrates expense mutations.

    Flow:
    1. Validate input
    2. Authorize (existing expense and any linked goal)
    3. Persist
    4. Dispatch the change to the reconciliation cascade

    Step 4 never fails the request.
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        cascade: ReconciliationCascade,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[FinanceValidator] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(storage, audit_logger, validator, clock)
        self._cascade = cascade
        self.last_report: Optional[CascadeReport] = None

    async def _check_goal_link(self, goal_id: Optional[UUID], owner_id: str) -> None:
        if goal_id is None:
            return
        goal = await self._guard("get_goal", owner_id, self._storage.get_goal_by_id(goal_id))
        await self._authorize("goal", goal, goal_id, owner_id)

    async def _dispatch(self, change: ExpenseChange, correlation_id: UUID) -> CascadeReport:
        self.last_report = await self._cascade.dispatch(change, correlation_id=correlation_id)
        return self.last_report

    async def _audit_saved(
        self,
        event_type: AuditEventType,
        expense: Expense,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_expense_saved(
                event_type=event_type,
                expense_id=expense.id,
                owner_id=expense.owner_id,
                category=expense.category,
                amount=str(expense.amount),
                correlation_id=correlation_id,
            )

    async def create_expense(self, owner_id: str, data: ExpenseInput) -> Expense:
        correlation_id = create_correlation_id()

        await self._validate("expense", owner_id, lambda: self._validator.ensure_expense(data))
        await self._check_goal_link(data.goal_id, owner_id)

        expense = Expense(
            owner_id=owner_id,
            amount=data.amount,
            payee=data.payee,
            category=data.category,
            frequency=data.frequency,
            description=data.description,
            date=data.date or self._clock(),
            due_date=data.due_date,
            active=data.active,
            goal_id=data.goal_id,
        )
        await self._guard("save_expense", owner_id, self._storage.save_expense(expense), correlation_id)
        await self._audit_saved(AuditEventType.EXPENSE_CREATED, expense, correlation_id)

        await self._dispatch(
            ExpenseChange(owner_id=owner_id, expense_id=expense.id, after=expense.snapshot()),
            correlation_id,
        )
        return expense

    async def get_expense(self, owner_id: str, expense_id: UUID) -> Expense:
        expense = await self._guard(
            "get_expense", owner_id, self._storage.get_expense_by_id(expense_id)
        )
        return await self._authorize("expense", expense, expense_id, owner_id)

    async def update_expense(self, owner_id: str, expense_id: UUID, data: ExpenseInput) -> Expense:
        """
        Replace an expense's editable fields.

        Changing the category, date, amount, active flag or goal link
        reconciles both the old and the new budget and goal.
        """
        correlation_id = create_correlation_id()

        existing = await self.get_expense(owner_id, expense_id)
        await self._validate("expense", owner_id, lambda: self._validator.ensure_expense(data))
        if data.goal_id != existing.goal_id:
            await self._check_goal_link(data.goal_id, owner_id)

        before = existing.snapshot()
        expense = existing.model_copy(update={
            "amount": data.amount,
            "payee": data.payee,
            "category": data.category,
            "frequency": data.frequency,
            "description": data.description,
            "date": data.date or existing.date,
            "due_date": data.due_date,
            "active": data.active,
            "goal_id": data.goal_id,
        })
        await self._guard(
            "update_expense", owner_id, self._storage.update_expense(expense), correlation_id
        )
        await self._audit_saved(AuditEventType.EXPENSE_UPDATED, expense, correlation_id)

        await self._dispatch(
            ExpenseChange(
                owner_id=owner_id,
                expense_id=expense.id,
                before=before,
                after=expense.snapshot(),
            ),
            correlation_id,
        )
        return expense

    async def deactivate_expense(self, owner_id: str, expense_id: UUID) -> Expense:
        """Soft delete: keep the record, drop it from every sum."""
        correlation_id = create_correlation_id()

        expense = await self.get_expense(owner_id, expense_id)
        before = expense.snapshot()
        expense.active = False
        await self._guard(
            "update_expense", owner_id, self._storage.update_expense(expense), correlation_id
        )
        await self._audit_saved(AuditEventType.EXPENSE_UPDATED, expense, correlation_id)

        await self._dispatch(
            ExpenseChange(
                owner_id=owner_id,
                expense_id=expense.id,
                before=before,
                after=expense.snapshot(),
            ),
            correlation_id,
        )
        return expense

    async def delete_expense(self, owner_id: str, expense_id: UUID) -> bool:
        correlation_id = create_correlation_id()

        expense = await self.get_expense(owner_id, expense_id)
        deleted = await self._guard(
            "delete_expense", owner_id, self._storage.delete_expense(expense_id), correlation_id
        )
        await self._audit_saved(AuditEventType.EXPENSE_DELETED, expense, correlation_id)

        await self._dispatch(
            ExpenseChange(owner_id=owner_id, expense_id=expense.id, before=expense.snapshot()),
            correlation_id,
        )
        return deleted

    async def list_expenses(
        self,
        owner_id: str,
        month: Optional[str] = None,
        goal_id: Optional[UUID] = None,
    ) -> list[Expense]:
        """Newest first. month=None lists every month."""
        month_range = resolve_month_range(month, self._clock()) if month else None
        expenses = await self._guard(
            "list_expenses",
            owner_id,
            self._storage.list_expenses(
                owner_id,
                goal_id=goal_id,
                date_from=month_range.start if month_range else None,
                date_to=month_range.end if month_range else None,
            ),
        )
        return sorted(expenses, key=lambda e: e.date, reverse=True)


class BudgetFlow(_Flow):
    """
    Orchestrates budgets.

    Listing is where rollover happens: during the first days of a month
    the previous month's unspent amounts are carried forward, then the
    month's budgets are re-read so the result shows the new credit.
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        budget_reconciler: BudgetSpentReconciler,
        rollover: RolloverProcessor,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[FinanceValidator] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(storage, audit_logger, validator, clock)
        self._reconciler = budget_reconciler
        self._rollover = rollover

    async def save_budget(self, owner_id: str, data: BudgetInput) -> Budget:
        """
        Create or update the budget for a category in the month of data.date
        (default: the current month). spent starts from the live sum.
        """
        await self._validate("budget", owner_id, lambda: self._validator.ensure_budget(data))

        when = data.date or self._clock()
        month_range = month_range_for(when)
        existing = await self._guard(
            "list_budgets",
            owner_id,
            self._storage.list_budgets(
                owner_id,
                category=data.category,
                date_from=month_range.start,
                date_to=month_range.end,
            ),
        )
        spent = await self._guard(
            "sum_expenses",
            owner_id,
            self._reconciler.spent_for(owner_id, data.category, month_range),
        )

        if existing:
            budget = max(existing, key=lambda b: b.date)
            budget.amount = data.amount
            budget.rollover = data.rollover
            budget.spent = spent
            await self._guard("update_budget", owner_id, self._storage.update_budget(budget))
            created = False
        else:
            budget = Budget(
                owner_id=owner_id,
                category=data.category,
                amount=data.amount,
                rollover=data.rollover,
                spent=spent,
                date=when,
            )
            await self._guard("save_budget", owner_id, self._storage.save_budget(budget))
            created = True

        if self._audit_logger:
            await self._audit_logger.log_budget_saved(
                budget_id=budget.id,
                owner_id=owner_id,
                category=budget.category,
                amount=str(budget.amount),
                created=created,
            )
        return budget

    async def get_budget(self, owner_id: str, budget_id: UUID) -> Budget:
        budget = await self._guard("get_budget", owner_id, self._storage.get_budget_by_id(budget_id))
        return await self._authorize("budget", budget, budget_id, owner_id)

    async def update_budget(self, owner_id: str, budget_id: UUID, data: BudgetInput) -> Budget:
        """Edit amount, category and rollover flag. The budget keeps its month."""
        budget = await self.get_budget(owner_id, budget_id)
        await self._validate("budget", owner_id, lambda: self._validator.ensure_budget(data))

        category_changed = data.category != budget.category
        budget.amount = data.amount
        budget.category = data.category
        budget.rollover = data.rollover
        if category_changed:
            budget.spent = await self._guard(
                "sum_expenses",
                owner_id,
                self._reconciler.spent_for(owner_id, budget.category, month_range_for(budget.date)),
            )

        await self._guard("update_budget", owner_id, self._storage.update_budget(budget))
        if self._audit_logger:
            await self._audit_logger.log_budget_saved(
                budget_id=budget.id,
                owner_id=owner_id,
                category=budget.category,
                amount=str(budget.amount),
                created=False,
            )
        return budget

    async def delete_budget(self, owner_id: str, budget_id: UUID) -> bool:
        budget = await self.get_budget(owner_id, budget_id)
        deleted = await self._guard("delete_budget", owner_id, self._storage.delete_budget(budget_id))
        if self._audit_logger:
            await self._audit_logger.log_entity_deleted(
                event_type=AuditEventType.BUDGET_DELETED,
                entity_type="budget",
                entity_id=budget.id,
                owner_id=owner_id,
                details={"category": budget.category},
            )
        return deleted

    async def list_budgets(self, owner_id: str, month: Optional[str] = None) -> list[Budget]:
        now = self._clock()
        month_range = resolve_month_range(month, now)

        if self._rollover.should_run(now):
            try:
                await self._rollover.process(owner_id, now)
            except Exception as e:
                # Listing still succeeds; the next listing in the window retries
                logger.error("rollover_failed", owner_id=owner_id, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_error(
                        error_type="rollover_failed",
                        error_message=str(e),
                        owner_id=owner_id,
                        details={"month": month_token(now)},
                    )

        return await self._guard(
            "list_budgets",
            owner_id,
            self._storage.list_budgets(
                owner_id,
                date_from=month_range.start,
                date_to=month_range.end,
            ),
        )

    async def reconcile_budget(
        self,
        owner_id: str,
        category: str,
        month: Optional[str] = None,
    ) -> Optional[Budget]:
        """Manual repair of one category. month=None uses the latest budget's month."""
        month_range = resolve_month_range(month, self._clock()) if month else None
        return await self._guard(
            "reconcile_budget",
            owner_id,
            self._reconciler.recompute_spent(owner_id, category, month_range),
        )


class GoalFlow(_Flow):
    """
    Orchestrates goals.

    The user-visible progress is split into a manual baseline
    (initial_progress) and the linked expenses; the reconciler owns the sum.
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        goal_reconciler: GoalProgressReconciler,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[FinanceValidator] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(storage, audit_logger, validator, clock)
        self._reconciler = goal_reconciler

    async def _audit_saved(self, event_type: AuditEventType, goal: Goal) -> None:
        if self._audit_logger:
            await self._audit_logger.log_goal_saved(
                event_type=event_type,
                goal_id=goal.id,
                owner_id=goal.owner_id,
                name=goal.name,
                progress=str(goal.progress),
                initial_progress=str(goal.initial_progress),
            )

    async def create_goal(self, owner_id: str, data: GoalInput) -> Goal:
        await self._validate("goal", owner_id, lambda: self._validator.ensure_goal(data))

        progress = clamp(data.progress, Decimal("0"), data.amount)
        goal = Goal(
            owner_id=owner_id,
            name=data.name,
            amount=data.amount,
            type=GoalType(data.type),
            progress=progress,
            initial_progress=progress,
            duration=data.duration,
            date=data.date or self._clock(),
        )
        await self._guard("save_goal", owner_id, self._storage.save_goal(goal))
        await self._audit_saved(AuditEventType.GOAL_CREATED, goal)
        return goal

    async def get_goal(self, owner_id: str, goal_id: UUID) -> Goal:
        goal = await self._guard("get_goal", owner_id, self._storage.get_goal_by_id(goal_id))
        return await self._authorize("goal", goal, goal_id, owner_id)

    async def update_goal(self, owner_id: str, goal_id: UUID, data: GoalInput) -> Goal:
        """
        Edit a goal. The requested progress includes linked expenses, so the
        stored baseline is max(0, clamp(requested) - linked sum).
        """
        goal = await self.get_goal(owner_id, goal_id)
        await self._validate("goal", owner_id, lambda: self._validator.ensure_goal(data))

        linked = await self._guard(
            "sum_expenses", owner_id, self._reconciler.linked_sum(goal_id, owner_id)
        )
        requested = clamp(data.progress, Decimal("0"), data.amount)

        goal.name = data.name
        goal.amount = data.amount
        goal.type = GoalType(data.type)
        goal.duration = data.duration
        goal.initial_progress = max(Decimal("0"), requested - linked)
        goal.progress = clamp(goal.initial_progress + linked, Decimal("0"), goal.amount)

        await self._guard("update_goal", owner_id, self._storage.update_goal(goal))
        await self._audit_saved(AuditEventType.GOAL_UPDATED, goal)

        reconciled = await self._guard(
            "reconcile_goal", owner_id, self._reconciler.recompute_progress(goal_id, owner_id)
        )
        return reconciled or goal

    async def delete_goal(self, owner_id: str, goal_id: UUID) -> int:
        """Delete the goal and unlink its expenses. Returns how many were unlinked."""
        goal = await self.get_goal(owner_id, goal_id)

        unlinked = await self._guard(
            "unlink_goal", owner_id, self._storage.unlink_goal(owner_id, goal_id)
        )
        await self._guard("delete_goal", owner_id, self._storage.delete_goal(goal_id))

        if self._audit_logger:
            await self._audit_logger.log_entity_deleted(
                event_type=AuditEventType.GOAL_DELETED,
                entity_type="goal",
                entity_id=goal.id,
                owner_id=owner_id,
                details={"name": goal.name, "unlinked_expenses": unlinked},
            )
        return unlinked

    async def list_goals(self, owner_id: str) -> list[Goal]:
        return await self._guard("list_goals", owner_id, self._storage.list_goals(owner_id))

    async def goal_details(self, owner_id: str, goal_id: UUID) -> GoalDetails:
        return GoalDetails.from_goal(await self.get_goal(owner_id, goal_id))

    async def linked_expenses(self, owner_id: str, goal_id: UUID) -> list[Expense]:
        """Every expense linked to the goal, active or not, newest first."""
        await self.get_goal(owner_id, goal_id)
        expenses = await self._guard(
            "list_expenses", owner_id, self._storage.list_expenses(owner_id, goal_id=goal_id)
        )
        return sorted(expenses, key=lambda e: e.date, reverse=True)

    async def reconcile_goals(self, owner_id: str) -> list[GoalReconciliation]:
        return await self._guard(
            "reconcile_goals", owner_id, self._reconciler.reconcile_all(owner_id)
        )


class IncomeFlow(_Flow):
    """Orchestrates income entries. Incomes feed no derived field."""

    async def add_income(self, owner_id: str, data: IncomeInput) -> Income:
        await self._validate("income", owner_id, lambda: self._validator.ensure_income(data))

        income = Income(
            owner_id=owner_id,
            amount=data.amount,
            source=data.source,
            description=data.description,
            date=data.date or self._clock(),
            frequency=data.frequency,
            category=data.category,
            active=data.active,
        )
        await self._guard("save_income", owner_id, self._storage.save_income(income))
        if self._audit_logger:
            await self._audit_logger.log_income_saved(
                income_id=income.id,
                owner_id=owner_id,
                source=income.source,
                amount=str(income.amount),
            )
        return income

    async def get_income(self, owner_id: str, income_id: UUID) -> Income:
        income = await self._guard("get_income", owner_id, self._storage.get_income_by_id(income_id))
        return await self._authorize("income", income, income_id, owner_id)

    async def update_income(self, owner_id: str, income_id: UUID, data: IncomeInput) -> Income:
        existing = await self.get_income(owner_id, income_id)
        await self._validate("income", owner_id, lambda: self._validator.ensure_income(data))

        income = existing.model_copy(update={
            "amount": data.amount,
            "source": data.source,
            "description": data.description,
            "date": data.date or existing.date,
            "frequency": data.frequency,
            "category": data.category,
            "active": data.active,
        })
        await self._guard("update_income", owner_id, self._storage.update_income(income))
        if self._audit_logger:
            await self._audit_logger.log_income_saved(
                income_id=income.id,
                owner_id=owner_id,
                source=income.source,
                amount=str(income.amount),
            )
        return income

    async def delete_income(self, owner_id: str, income_id: UUID) -> bool:
        income = await self.get_income(owner_id, income_id)
        deleted = await self._guard("delete_income", owner_id, self._storage.delete_income(income_id))
        if self._audit_logger:
            await self._audit_logger.log_entity_deleted(
                event_type=AuditEventType.INCOME_DELETED,
                entity_type="income",
                entity_id=income.id,
                owner_id=owner_id,
                details={"source": income.source},
            )
        return deleted

    async def list_incomes(self, owner_id: str, month: Optional[str] = None) -> list[Income]:
        """Oldest first. month=None lists every month."""
        month_range = resolve_month_range(month, self._clock()) if month else None
        incomes = await self._guard(
            "list_incomes",
            owner_id,
            self._storage.list_incomes(
                owner_id,
                date_from=month_range.start if month_range else None,
                date_to=month_range.end if month_range else None,
            ),
        )
        return sorted(incomes, key=lambda i: i.date)


class AlertFlow:
    """Alerts on request. month narrows budget spending to one month."""

    def __init__(self, evaluator: AlertEvaluator, clock: Optional[Clock] = None):
        self._evaluator = evaluator
        self._clock = clock or datetime.now

    async def get_alerts(self, owner_id: str, month: Optional[str] = None) -> list[Alert]:
        now = self._clock()
        month_range = resolve_month_range(month, now) if month else None
        return await self._evaluator.evaluate(owner_id, month_range=month_range, now=now)


class MonthlySummary:
    """Income against active spending for one month."""

    def __init__(self, storage: FinanceStorageInterface, clock: Optional[Clock] = None):
        self._storage = storage
        self._clock = clock or datetime.now

    async def summarize(self, owner_id: str, month: Optional[str] = None) -> MonthlySummaryResult:
        month_range = resolve_month_range(month, self._clock())

        incomes = await self._storage.list_incomes(
            owner_id,
            active=True,
            date_from=month_range.start,
            date_to=month_range.end,
        )
        expenses = await self._storage.list_expenses(
            owner_id,
            active=True,
            date_from=month_range.start,
            date_to=month_range.end,
        )

        by_category: dict[str, Decimal] = {}
        for expense in expenses:
            by_category[expense.category] = by_category.get(expense.category, Decimal("0")) + expense.amount

        total_income = sum((i.amount for i in incomes), Decimal("0"))
        total_expenses = sum(by_category.values(), Decimal("0"))

        return MonthlySummaryResult(
            month=month_range.token,
            total_income=total_income,
            total_expenses=total_expenses,
            net=total_income - total_expenses,
            by_category=by_category,
        )


@dataclass
class AppComponents:
    """Everything a route handler or the dashboard needs."""

    expenses: ExpenseFlow
    budgets: BudgetFlow
    goals: GoalFlow
    incomes: IncomeFlow
    alerts: AlertFlow
    summary: MonthlySummary
    storage: FinanceStorageInterface
    sheets_client: Optional[GoogleSheetsClient] = None


def create_app_components(
    use_storage: bool = True,
    clock: Optional[Clock] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False (or leave Sheets unconfigured) to run
                    against in-memory storage.
        clock: Returns "now". Defaults to datetime.now.
    """
    sheets_client = None
    storage: FinanceStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsFinanceStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = InMemoryFinanceStorage()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        storage = InMemoryFinanceStorage()
        audit_logger = AuditLogger()  # Local-only logging

    validator = FinanceValidator()
    goal_reconciler = GoalProgressReconciler(storage, audit_logger)
    budget_reconciler = BudgetSpentReconciler(storage, audit_logger)
    cascade = ReconciliationCascade(goal_reconciler, budget_reconciler, audit_logger)
    rollover = RolloverProcessor(storage, clock=clock, audit_logger=audit_logger)

    return AppComponents(
        expenses=ExpenseFlow(storage, cascade, audit_logger, validator, clock),
        budgets=BudgetFlow(storage, budget_reconciler, rollover, audit_logger, validator, clock),
        goals=GoalFlow(storage, goal_reconciler, audit_logger, validator, clock),
        incomes=IncomeFlow(storage, audit_logger, validator, clock),
        alerts=AlertFlow(AlertEvaluator(storage, clock=clock), clock),
        summary=MonthlySummary(storage, clock),
        storage=storage,
        sheets_client=sheets_client,
    )
