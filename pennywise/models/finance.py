"""
Core Data Models for Pennywise

These models define the schemas for every record the system stores and
every derived value it returns. They are designed to:
1. Enforce type safety at runtime
2. Make the derived-field invariants explicit (spent, progress, rollover)
3. Be serializable for storage and logging

DESIGN DECISION: Budget.spent, Goal.progress and Budget.rollover_amount are
caches. The reconcilers own them; input models never carry them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def to_naive_local(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# Month windows are naive local time, so every stored date must be too.
LocalDatetime = Annotated[datetime, AfterValidator(to_naive_local)]


# =============================================================================
# ENUMS
# =============================================================================

class GoalType(str, Enum):
    """Kinds of goal a user can track."""
    SAVINGS = "Savings"
    DEBT = "Debt"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Expense(BaseModel):
    """
    A single expense entry.

    active=False is a soft delete: the record is kept but excluded from
    every spent/progress sum.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount spent"
    )
    payee: str = Field(default="", max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(default="Just once", max_length=50)
    description: Optional[str] = Field(default=None, max_length=1000)
    date: LocalDatetime = Field(default_factory=datetime.now)
    due_date: Optional[LocalDatetime] = Field(
        default=None,
        description="When the expense falls due, drives upcoming alerts"
    )
    active: bool = True
    goal_id: Optional[UUID] = Field(
        default=None,
        description="Weak reference to the goal this expense contributes to"
    )

    def snapshot(self) -> "ExpenseSnapshot":
        """The fields that feed budget and goal reconciliation."""
        return ExpenseSnapshot(
            category=self.category,
            goal_id=self.goal_id,
            amount=self.amount,
            active=self.active,
            date=self.date,
        )


class Budget(BaseModel):
    """
    One category's budget for one month.

    The month is taken from `date`. Several rows for the same
    category and month are tolerated.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    spent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Sum of active expenses in the category and month"
    )
    rollover: bool = Field(
        default=False,
        description="Carry unspent amount into next month's budget"
    )
    rollover_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Credit carried forward from last month"
    )
    date: LocalDatetime = Field(default_factory=datetime.now)

    @property
    def remaining(self) -> Decimal:
        """Budget left including rollover credit (negative when overspent)."""
        return self.amount + self.rollover_amount - self.spent


class Goal(BaseModel):
    """
    A savings or debt-repayment goal.

    progress = clamp(initial_progress + linked active expenses, 0, amount)
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: GoalType
    progress: Decimal = Field(default=Decimal("0"), ge=0)
    initial_progress: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Manually set baseline, excludes linked expenses"
    )
    duration: int = Field(default=1, ge=1, description="Duration in months")
    date: LocalDatetime = Field(default_factory=datetime.now)

    @model_validator(mode='after')
    def validate_progress(self) -> 'Goal':
        """Progress can never exceed the goal amount."""
        if self.progress > self.amount:
            raise ValueError("Progress cannot exceed goal amount")
        return self


class Income(BaseModel):
    """An income entry."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    source: str = Field(default="", max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    date: LocalDatetime = Field(default_factory=datetime.now)
    frequency: str = Field(default="Just once", max_length=50)
    category: str = Field(default="Other", max_length=100)
    active: bool = True


# =============================================================================
# DERIVED VALUES
# =============================================================================

class MonthRange(BaseModel):
    """Closed-closed window covering one calendar month."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        return self.start <= value <= self.end

    @property
    def token(self) -> str:
        """The YYYY-MM token this range was built from."""
        return self.start.strftime("%Y-%m")


class Alert(BaseModel):
    """A notification computed on request. Never persisted."""

    category: str
    message: str


class GoalDetails(BaseModel):
    """Goal enriched with the figures the dashboard shows."""

    id: UUID
    name: str
    type: GoalType
    amount: Decimal
    duration: int
    monthly_target: Decimal
    progress: Decimal
    remaining: Decimal
    initial_progress: Decimal

    @classmethod
    def from_goal(cls, goal: Goal) -> "GoalDetails":
        return cls(
            id=goal.id,
            name=goal.name,
            type=goal.type,
            amount=goal.amount,
            duration=goal.duration,
            monthly_target=(goal.amount / goal.duration).quantize(Decimal("0.01")),
            progress=goal.progress,
            remaining=max(Decimal("0"), goal.amount - goal.progress),
            initial_progress=goal.initial_progress,
        )


class GoalReconciliation(BaseModel):
    """Outcome of reconciling one goal during a bulk repair."""

    goal_id: UUID
    name: str
    type: GoalType
    corrected: bool
    old_progress: Decimal
    new_progress: Decimal


class MonthlySummaryResult(BaseModel):
    """Income against spending for one month."""

    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    total_income: Decimal
    total_expenses: Decimal
    net: Decimal
    by_category: dict[str, Decimal] = Field(default_factory=dict)


# =============================================================================
# EXPENSE MUTATION EVENTS
# =============================================================================

class ExpenseSnapshot(BaseModel):
    """The reconciliation-relevant state of an expense at one moment."""
    model_config = ConfigDict(frozen=True)

    category: str
    goal_id: Optional[UUID] = None
    amount: Decimal
    active: bool
    date: datetime


class ExpenseChange(BaseModel):
    """
    An expense mutation as seen by the reconciliation cascade.

    create: before is None
    delete: after is None
    update: both present
    """

    owner_id: str
    expense_id: UUID
    before: Optional[ExpenseSnapshot] = None
    after: Optional[ExpenseSnapshot] = None

    @model_validator(mode='after')
    def validate_snapshots(self) -> 'ExpenseChange':
        if self.before is None and self.after is None:
            raise ValueError("An expense change needs a before or after snapshot")
        return self

    @property
    def snapshots(self) -> list[ExpenseSnapshot]:
        return [s for s in (self.before, self.after) if s is not None]

    @property
    def affects_reconciliation(self) -> bool:
        """False only for updates that left every reconciled field alone."""
        if self.before is None or self.after is None:
            return True
        return self.before != self.after


# =============================================================================
# INPUT MODELS
# =============================================================================
# Plain carriers for mutation requests. FinanceValidator checks them before
# anything is written, so amounts here are unconstrained on purpose.

class ExpenseInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal
    category: str
    payee: str = ""
    frequency: str = "Just once"
    description: Optional[str] = None
    date: Optional[LocalDatetime] = None
    due_date: Optional[LocalDatetime] = None
    active: bool = True
    goal_id: Optional[UUID] = None


class BudgetInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    category: str
    amount: Decimal
    rollover: bool = False
    date: Optional[LocalDatetime] = None


class GoalInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    amount: Decimal
    type: str
    progress: Decimal = Decimal("0")
    duration: int = 1
    date: Optional[LocalDatetime] = None


class IncomeInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal
    source: str = ""
    description: Optional[str] = None
    date: Optional[LocalDatetime] = None
    frequency: str = "Just once"
    category: str = "Other"
    active: bool = True
