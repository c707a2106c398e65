"""
Month-Range Resolver

Maps a YYYY-MM token to the closed-closed window [first instant of day 1,
23:59:59.999 of the last day]. Every date filter in Pennywise uses this
window with inclusive bounds on both sides.

Resolution never raises: a missing or malformed token resolves to the
month containing `now`.
"""

import calendar
import re
from datetime import datetime, timedelta
from typing import Optional

import structlog

from pennywise.models.finance import MonthRange

logger = structlog.get_logger(__name__)

MONTH_TOKEN_PATTERN = re.compile(r"^\d{4}-\d{2}$")


def month_token(value: datetime) -> str:
    """YYYY-MM token of the month containing value."""
    return value.strftime("%Y-%m")


def month_range_for(value: datetime) -> MonthRange:
    """Range of the calendar month containing value."""
    last_day = calendar.monthrange(value.year, value.month)[1]
    return MonthRange(
        start=datetime(value.year, value.month, 1),
        end=datetime(value.year, value.month, last_day, 23, 59, 59, 999000),
    )


def resolve_month_range(
    month: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MonthRange:
    """
    Resolve a YYYY-MM token to its month range.

    Args:
        month: Month token, e.g. "2024-02". None or "" means current month.
        now: Reference "now" for the fallback. Defaults to the wall clock.

    Returns:
        The month's range; the current month's range for bad input.
    """
    now = now or datetime.now()

    if not month:
        return month_range_for(now)

    if not isinstance(month, str) or not MONTH_TOKEN_PATTERN.match(month):
        logger.warning("invalid_month_token", month=str(month), fallback=month_token(now))
        return month_range_for(now)

    year = int(month[:4])
    month_number = int(month[5:7])
    if year < 1 or not 1 <= month_number <= 12:
        logger.warning("invalid_month_token", month=month, fallback=month_token(now))
        return month_range_for(now)

    return month_range_for(datetime(year, month_number, 1))


def previous_month_range(now: datetime) -> MonthRange:
    """Range of the month before the one containing now."""
    last_day_of_previous = datetime(now.year, now.month, 1) - timedelta(days=1)
    return month_range_for(last_day_of_previous)


def previous_month_token(now: datetime) -> str:
    return previous_month_range(now).token
