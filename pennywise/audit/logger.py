"""
Audit Logger

DESIGN DECISION: Every mutation and every derived-field correction is
logged. This provides:
1. Traceability of who changed what
2. A record of what the self-healing recomputes corrected
3. Visibility into swallowed secondary-effect failures

The audit logger:
- Is async to match the storage layer
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to tie a mutation to its reconciliation cascade
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from pennywise.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from pennywise.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_saved(
        self,
        event_type: AuditEventType,
        expense_id: UUID,
        owner_id: str,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an expense create, update or delete."""
        event = AuditEventBuilder.expense_saved(
            event_type=event_type,
            expense_id=expense_id,
            owner_id=owner_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_saved(
        self,
        budget_id: UUID,
        owner_id: str,
        category: str,
        amount: str,
        created: bool,
    ) -> None:
        event = AuditEventBuilder.budget_saved(
            budget_id=budget_id,
            owner_id=owner_id,
            category=category,
            amount=amount,
            created=created,
        )
        await self.log(event)

    async def log_budget_spent_reconciled(
        self,
        budget_id: UUID,
        owner_id: str,
        category: str,
        old_spent: str,
        new_spent: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.budget_spent_reconciled(
            budget_id=budget_id,
            owner_id=owner_id,
            category=category,
            old_spent=old_spent,
            new_spent=new_spent,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rollover_applied(
        self,
        budget_id: UUID,
        owner_id: str,
        category: str,
        rollover_amount: str,
    ) -> None:
        event = AuditEventBuilder.rollover_applied(
            budget_id=budget_id,
            owner_id=owner_id,
            category=category,
            rollover_amount=rollover_amount,
        )
        await self.log(event)

    async def log_goal_saved(
        self,
        event_type: AuditEventType,
        goal_id: UUID,
        owner_id: str,
        name: str,
        progress: str,
        initial_progress: str,
    ) -> None:
        event = AuditEventBuilder.goal_saved(
            event_type=event_type,
            goal_id=goal_id,
            owner_id=owner_id,
            name=name,
            progress=progress,
            initial_progress=initial_progress,
        )
        await self.log(event)

    async def log_goal_progress_corrected(
        self,
        goal_id: UUID,
        owner_id: str,
        old_progress: str,
        new_progress: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.goal_progress_corrected(
            goal_id=goal_id,
            owner_id=owner_id,
            old_progress=old_progress,
            new_progress=new_progress,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_goal_baseline_seeded(
        self,
        goal_id: UUID,
        owner_id: str,
        initial_progress: str,
    ) -> None:
        event = AuditEventBuilder.goal_baseline_seeded(
            goal_id=goal_id,
            owner_id=owner_id,
            initial_progress=initial_progress,
        )
        await self.log(event)

    async def log_income_saved(
        self,
        income_id: UUID,
        owner_id: str,
        source: str,
        amount: str,
    ) -> None:
        event = AuditEventBuilder.income_saved(
            income_id=income_id,
            owner_id=owner_id,
            source=source,
            amount=amount,
        )
        await self.log(event)

    async def log_entity_deleted(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        owner_id: str,
        details: Optional[dict] = None,
    ) -> None:
        event = AuditEventBuilder.entity_deleted(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            details=details,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        entity_type: str,
        owner_id: str,
        field: Optional[str],
        message: str,
    ) -> None:
        """Log input rejected before persistence."""
        event = AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            owner_id=owner_id,
            field=field,
            message=message,
        )
        await self.log(event)

    async def log_authorization_denied(
        self,
        entity_type: str,
        entity_id: UUID,
        owner_id: str,
    ) -> None:
        """Log an attempt to touch another user's record."""
        event = AuditEventBuilder.authorization_denied(
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
        )
        await self.log(event)

    async def log_reconciliation_failed(
        self,
        target: str,
        owner_id: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a secondary-effect failure that was swallowed."""
        event = AuditEventBuilder.reconciliation_failed(
            target=target,
            owner_id=owner_id,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        owner_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected error that was caught and not re-raised."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            owner_id=owner_id,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a mutation. Pass it through the
    reconciliation cascade it triggers.
    """
    return uuid4()
