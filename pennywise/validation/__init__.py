"""Input validation package."""

from pennywise.validation.validator import FinanceValidator, ValidationIssue

__all__ = ["FinanceValidator", "ValidationIssue"]
