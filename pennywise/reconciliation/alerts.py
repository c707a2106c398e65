"""
Alert Evaluator

Alerts are derived on every request and never stored:
1. Low budget: remaining <= low_budget_ratio * amount, where spending is a
   live sum of active expenses (the cached Budget.spent may be stale)
2. Upcoming expense: an active expense falls due within the next
   upcoming_window_days

Budget alerts come first, then upcoming-expense alerts, each in storage order.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

import structlog

from pennywise.config import get_settings
from pennywise.models.finance import Alert, MonthRange
from pennywise.services.storage import FinanceStorageInterface

logger = structlog.get_logger(__name__)

UPCOMING_EXPENSE_CATEGORY = "Upcoming Expense"


class AlertEvaluator:
    """Computes low-budget and upcoming-expense alerts."""

    def __init__(
        self,
        storage: FinanceStorageInterface,
        clock: Optional[Callable[[], datetime]] = None,
        low_budget_ratio: Optional[Decimal] = None,
        upcoming_window_days: Optional[int] = None,
        currency_symbol: Optional[str] = None,
    ):
        settings = get_settings().app
        self._storage = storage
        self._clock = clock or datetime.now
        self._low_budget_ratio = (
            low_budget_ratio if low_budget_ratio is not None else settings.low_budget_ratio
        )
        self._upcoming_window_days = (
            upcoming_window_days if upcoming_window_days is not None
            else settings.upcoming_window_days
        )
        self._currency_symbol = (
            currency_symbol if currency_symbol is not None else settings.currency_symbol
        )

    async def evaluate(
        self,
        owner_id: str,
        month_range: Optional[MonthRange] = None,
        now: Optional[datetime] = None,
    ) -> list[Alert]:
        """
        Compute the owner's alerts.

        Args:
            owner_id: Authenticated caller
            month_range: Narrow budget spending to one month. None counts
                every active expense in the category.
            now: Reference time for due dates. Defaults to the clock.
        """
        now = now or self._clock()
        alerts = await self.budget_alerts(owner_id, month_range)
        alerts.extend(await self.upcoming_alerts(owner_id, now))
        logger.info("alerts_evaluated", owner_id=owner_id, count=len(alerts))
        return alerts

    async def budget_alerts(
        self,
        owner_id: str,
        month_range: Optional[MonthRange] = None,
    ) -> list[Alert]:
        alerts = []
        for budget in await self._storage.list_budgets(owner_id):
            if budget.amount <= 0:
                continue

            spent_now = await self._storage.sum_expenses(
                owner_id,
                category=budget.category,
                active=True,
                date_from=month_range.start if month_range else None,
                date_to=month_range.end if month_range else None,
            )
            remaining = budget.amount - spent_now

            if remaining <= self._low_budget_ratio * budget.amount:
                alerts.append(
                    Alert(
                        category=budget.category,
                        message=(
                            f'Budget for "{budget.category}" is running low: '
                            f"{self._currency_symbol}{remaining:.2f} remaining."
                        ),
                    )
                )
        return alerts

    async def upcoming_alerts(self, owner_id: str, now: datetime) -> list[Alert]:
        horizon = now + timedelta(days=self._upcoming_window_days)
        # Soft-deleted expenses are excluded here as they are from every sum.
        upcoming = await self._storage.list_expenses(
            owner_id,
            active=True,
            due_from=now,
            due_to=horizon,
        )
        return [
            Alert(
                category=UPCOMING_EXPENSE_CATEGORY,
                message=(
                    f"You have an expense of {self._currency_symbol}{expense.amount:.2f} "
                    f'for "{expense.category}" due on {expense.due_date.strftime("%a %b %d %Y")}.'
                ),
            )
            for expense in upcoming
        ]
