"""
Audit Models for Pennywise

Every mutation and every derived-field correction is logged for audit
purposes. This provides:
1. Traceability of who changed what
2. Debugging information when a reconciliation goes wrong
3. A record of corrections made by the self-healing recomputes

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Budgets
    BUDGET_SAVED = "budget_saved"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_SPENT_RECONCILED = "budget_spent_reconciled"
    ROLLOVER_APPLIED = "rollover_applied"

    # Goals
    GOAL_CREATED = "goal_created"
    GOAL_UPDATED = "goal_updated"
    GOAL_DELETED = "goal_deleted"
    GOAL_PROGRESS_CORRECTED = "goal_progress_corrected"
    GOAL_BASELINE_SEEDED = "goal_baseline_seeded"

    # Income
    INCOME_SAVED = "income_saved"
    INCOME_DELETED = "income_deleted"

    # Rejections
    VALIDATION_FAILED = "validation_failed"
    AUTHORIZATION_DENIED = "authorization_denied"

    # Failures
    RECONCILIATION_FAILED = "reconciliation_failed"
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - whose record, and which one?
    owner_id: Optional[str] = Field(
        default=None,
        description="Authenticated caller the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'budget', 'goal')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - ties a mutation to its reconciliation cascade
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_saved(expense_id, owner_id, ...)
        event = AuditEventBuilder.goal_progress_corrected(goal_id, ...)
    """

    @staticmethod
    def expense_saved(
        event_type: AuditEventType,
        expense_id: UUID,
        owner_id: str,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.EXPENSE_CREATED: "created",
            AuditEventType.EXPENSE_UPDATED: "updated",
            AuditEventType.EXPENSE_DELETED: "deleted",
        }[event_type]
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {verb}: {category} - {amount}",
            details={
                "category": category,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_saved(
        budget_id: UUID,
        owner_id: str,
        category: str,
        amount: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SAVED,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget {'added' if created else 'updated'}: {category} - {amount}",
            details={
                "category": category,
                "amount": amount,
                "created": created,
            },
            is_user_action=True,
        )

    @staticmethod
    def entity_deleted(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        owner_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} deleted",
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def budget_spent_reconciled(
        budget_id: UUID,
        owner_id: str,
        category: str,
        old_spent: str,
        new_spent: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_SPENT_RECONCILED,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Spent for {category} budget: {old_spent} -> {new_spent}",
            details={
                "category": category,
                "old_spent": old_spent,
                "new_spent": new_spent,
            },
        )

    @staticmethod
    def rollover_applied(
        budget_id: UUID,
        owner_id: str,
        category: str,
        rollover_amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLLOVER_APPLIED,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Applied rollover of {rollover_amount} to {category} budget",
            details={
                "category": category,
                "rollover_amount": rollover_amount,
            },
        )

    @staticmethod
    def goal_saved(
        event_type: AuditEventType,
        goal_id: UUID,
        owner_id: str,
        name: str,
        progress: str,
        initial_progress: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            owner_id=owner_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal {'created' if event_type == AuditEventType.GOAL_CREATED else 'updated'}: {name}",
            details={
                "progress": progress,
                "initial_progress": initial_progress,
            },
            is_user_action=True,
        )

    @staticmethod
    def goal_progress_corrected(
        goal_id: UUID,
        owner_id: str,
        old_progress: str,
        new_progress: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_PROGRESS_CORRECTED,
            owner_id=owner_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Corrected goal progress: {old_progress} -> {new_progress}",
            details={
                "old_progress": old_progress,
                "new_progress": new_progress,
            },
        )

    @staticmethod
    def goal_baseline_seeded(
        goal_id: UUID,
        owner_id: str,
        initial_progress: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_BASELINE_SEEDED,
            owner_id=owner_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Set initial progress to {initial_progress}",
            details={
                "initial_progress": initial_progress,
            },
        )

    @staticmethod
    def income_saved(
        income_id: UUID,
        owner_id: str,
        source: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INCOME_SAVED,
            owner_id=owner_id,
            entity_type="income",
            entity_id=income_id,
            description=f"Income saved: {source or 'unspecified'} - {amount}",
            details={
                "source": source,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        owner_id: str,
        field: Optional[str],
        message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type=entity_type,
            description=f"Rejected {entity_type} input",
            details={
                "field": field,
            },
            error_message=message,
            is_user_action=True,
        )

    @staticmethod
    def authorization_denied(
        entity_type: str,
        entity_id: UUID,
        owner_id: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTHORIZATION_DENIED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Access to another user's {entity_type} denied",
            is_user_action=True,
        )

    @staticmethod
    def reconciliation_failed(
        target: str,
        owner_id: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type=target,
            correlation_id=correlation_id,
            description=f"Reconciliation of {target} failed",
            details=details or {},
            error_message=error_message,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        owner_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
