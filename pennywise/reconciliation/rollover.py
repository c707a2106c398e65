"""
Monthly Rollover Processor

Carries last month's unspent amount into this month's budget for the same
category, for budgets with rollover enabled. There is no scheduler: the
processor runs lazily when budgets are listed during the first few days
of a month. It is idempotent, so repeated runs inside the window only
cost reads.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

import structlog

from pennywise.audit import AuditLogger
from pennywise.config import get_settings
from pennywise.models.finance import Budget
from pennywise.reconciliation.dates import month_range_for, previous_month_range
from pennywise.services.storage import FinanceStorageInterface

logger = structlog.get_logger(__name__)


class RolloverProcessor:
    """Applies previous-month rollover credit to current-month budgets."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        window_days: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            storage: Finance storage
            window_days: Run only on or before this day of the month.
                Defaults to AppSettings.rollover_window_days.
            clock: Returns "now". Defaults to datetime.now.
            audit_logger: Optional audit trail
        """
        self._storage = storage
        self._window_days = (
            window_days if window_days is not None
            else get_settings().app.rollover_window_days
        )
        self._clock = clock or datetime.now
        self._audit_logger = audit_logger

    def should_run(self, now: Optional[datetime] = None) -> bool:
        """True during the first `window_days` days of the month."""
        now = now or self._clock()
        return now.day <= self._window_days

    async def process(self, owner_id: str, now: Optional[datetime] = None) -> list[Budget]:
        """
        Apply rollover from the previous month to the current month.

        For each previous-month budget with rollover enabled, the unspent
        amount max(0, amount - spent) overwrites rollover_amount on the
        most recently dated current-month budget of the same category.
        With no such budget the rollover is dropped.

        Returns:
            The current-month budgets that were updated.
        """
        now = now or self._clock()
        previous_range = previous_month_range(now)
        current_range = month_range_for(now)

        previous_budgets = await self._storage.list_budgets(
            owner_id,
            rollover=True,
            date_from=previous_range.start,
            date_to=previous_range.end,
        )
        if not previous_budgets:
            return []

        current_budgets = await self._storage.list_budgets(
            owner_id,
            date_from=current_range.start,
            date_to=current_range.end,
        )

        applied: list[Budget] = []
        for previous in previous_budgets:
            matches = [b for b in current_budgets if b.category == previous.category]
            if not matches:
                logger.info(
                    "rollover_dropped",
                    owner_id=owner_id,
                    category=previous.category,
                    month=current_range.token,
                )
                continue

            unspent = max(Decimal("0"), previous.amount - previous.spent)
            if unspent <= 0:
                continue

            current = max(matches, key=lambda b: b.date)
            if current.rollover_amount == unspent:
                continue

            current.rollover_amount = unspent
            await self._storage.update_budget(current)
            applied.append(current)
            logger.info(
                "rollover_applied",
                budget_id=str(current.id),
                category=current.category,
                rollover_amount=str(unspent),
            )
            if self._audit_logger:
                await self._audit_logger.log_rollover_applied(
                    budget_id=current.id,
                    owner_id=owner_id,
                    category=current.category,
                    rollover_amount=str(unspent),
                )

        return applied
