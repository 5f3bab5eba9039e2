"""
Standardized Date/Time Handling Utilities

CRITICAL RULES:
- Always store timestamps as timezone-aware UTC (use now_utc())
- Calendar-day comparisons (streaks) use the UTC date
- Never mix naive and aware datetimes
"""

import logging
from datetime import datetime, date, timezone
from typing import Union

logger = logging.getLogger(__name__)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(timezone.utc)


def to_calendar_date(value: Union[date, datetime]) -> date:
    """
    Reduce a date or datetime to its calendar day

    Aware datetimes are converted to UTC first; naive datetimes are taken
    as already being UTC.

    Args:
        value: date or datetime

    Returns:
        date with the time of day dropped
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value
