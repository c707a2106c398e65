"""
Input Validation

DESIGN DECISION: Every mutation is validated before anything is written.
A rejected input never reaches storage, so reconciliation never has to
undo a bad write.

Checks are collected as issues first, so a caller can show all of them,
and `ensure_*` raises ValidationError on the first one for the flows.

IMPORTANT: Validation NEVER silently fixes issues. Clamping goal progress
to [0, amount] is a domain rule applied by the flows, not a fix.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from pennywise.config import get_settings
from pennywise.errors import ValidationError
from pennywise.models.finance import (
    Budget,
    BudgetInput,
    Expense,
    ExpenseInput,
    Goal,
    GoalInput,
    GoalType,
    Income,
    IncomeInput,
)


def max_length_of(model: type[BaseModel], field: str) -> Optional[int]:
    """The max_length declared on a model field, if any."""
    for constraint in model.model_fields[field].metadata:
        limit = getattr(constraint, "max_length", None)
        if limit is not None:
            return limit
    return None


class ValidationIssue(BaseModel):
    """One problem found in an input."""

    field: str
    message: str


class FinanceValidator:
    """Validates mutation inputs against the domain rules."""

    def __init__(self, max_amount: Optional[Decimal] = None):
        """
        Args:
            max_amount: Sanity ceiling for a single amount.
                        Defaults to AppSettings.max_amount.
        """
        self._max_amount = (
            max_amount if max_amount is not None else get_settings().app.max_amount
        )

    def _check_amount(self, amount: Optional[Decimal], field: str = "amount") -> list[ValidationIssue]:
        if amount is None:
            return [ValidationIssue(field=field, message="Amount is required")]
        if not amount.is_finite():
            return [ValidationIssue(field=field, message="Amount must be a number")]
        if amount <= 0:
            return [ValidationIssue(field=field, message="Amount must be greater than zero")]
        if amount.as_tuple().exponent < -2:
            return [ValidationIssue(field=field, message="Amount can have at most two decimal places")]
        if amount > self._max_amount:
            return [ValidationIssue(
                field=field,
                message=f"Amount ({amount:,.2f}) exceeds the maximum of {self._max_amount:,.2f}",
            )]
        return []

    def _check_required_text(self, value: Optional[str], field: str, label: str) -> list[ValidationIssue]:
        if value is None or not value.strip():
            return [ValidationIssue(field=field, message=f"{label} is required")]
        return []

    def _check_lengths(self, data: BaseModel, model: type[BaseModel], fields: list[str]) -> list[ValidationIssue]:
        """Text fields must fit the stored record's limits."""
        issues = []
        for field in fields:
            value = getattr(data, field)
            limit = max_length_of(model, field)
            if value is not None and limit is not None and len(value) > limit:
                issues.append(ValidationIssue(
                    field=field,
                    message=f"{field.replace('_', ' ').capitalize()} must be at most {limit} characters",
                ))
        return issues

    def check_expense(self, data: ExpenseInput) -> list[ValidationIssue]:
        issues = self._check_amount(data.amount)
        issues.extend(self._check_required_text(data.category, "category", "Category"))
        issues.extend(self._check_lengths(
            data, Expense, ["category", "payee", "frequency", "description"]
        ))
        return issues

    def check_budget(self, data: BudgetInput) -> list[ValidationIssue]:
        issues = self._check_amount(data.amount)
        issues.extend(self._check_required_text(data.category, "category", "Category"))
        issues.extend(self._check_lengths(data, Budget, ["category"]))
        return issues

    def check_goal(self, data: GoalInput) -> list[ValidationIssue]:
        issues = self._check_required_text(data.name, "name", "Goal name")
        issues.extend(self._check_amount(data.amount))
        issues.extend(self._check_lengths(data, Goal, ["name"]))

        if data.type not in {t.value for t in GoalType}:
            allowed = ", ".join(t.value for t in GoalType)
            issues.append(ValidationIssue(
                field="type",
                message=f"Goal type must be one of: {allowed}",
            ))

        if data.duration < 1:
            issues.append(ValidationIssue(
                field="duration",
                message="Duration must be at least one month",
            ))

        if data.progress is not None and not data.progress.is_finite():
            issues.append(ValidationIssue(field="progress", message="Progress must be a number"))

        return issues

    def check_income(self, data: IncomeInput) -> list[ValidationIssue]:
        issues = self._check_amount(data.amount)
        issues.extend(self._check_lengths(
            data, Income, ["source", "description", "frequency", "category"]
        ))
        return issues

    @staticmethod
    def _raise_first(issues: list[ValidationIssue]) -> None:
        if issues:
            raise ValidationError(issues[0].message, field=issues[0].field)

    def ensure_expense(self, data: ExpenseInput) -> None:
        self._raise_first(self.check_expense(data))

    def ensure_budget(self, data: BudgetInput) -> None:
        self._raise_first(self.check_budget(data))

    def ensure_goal(self, data: GoalInput) -> None:
        self._raise_first(self.check_goal(data))

    def ensure_income(self, data: IncomeInput) -> None:
        self._raise_first(self.check_income(data))

    def get_user_friendly_summary(self, issues: list[ValidationIssue]) -> str:
        """
        Summary of validation results for the dashboard.

        This is what we show to non-technical users.
        """
        if not issues:
            return "✅ All checks passed!"

        lines = ["❌ Please fix the following before saving:"]
        for issue in issues:
            lines.append(f"   • {issue.message}")
        return "\n".join(lines)
