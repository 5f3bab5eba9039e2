"""
Daily Streak Tracking

A streak counts consecutive calendar days with at least one completed quest.
Only the calendar day matters; time of day is ignored.

Rules:
- First ever activity: streak starts at 1
- Same day: unchanged
- Next day: +1
- Gap of more than one day: reset to 1
- Activity dated before the last one (clock skew): unchanged
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union
import logging

from src.utils.datetime_helpers import to_calendar_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    last_activity_date: date
    increased: bool
    broken: bool


def calculate_next_streak(
    last_activity_date: Optional[Union[date, datetime]],
    now: Union[date, datetime],
    current_streak: int,
    longest_streak: int,
) -> StreakUpdate:
    """
    Compute the streak after an activity happening at `now`

    Args:
        last_activity_date: Day of the previous activity (None if never active)
        now: Day of this activity
        current_streak: Streak before this activity
        longest_streak: Best streak before this activity

    Returns:
        StreakUpdate; last_activity_date is always set to `now`'s day
    """
    today = to_calendar_date(now)
    broken = False

    if last_activity_date is None:
        new_streak = 1
    else:
        day_diff = (today - to_calendar_date(last_activity_date)).days

        if day_diff == 1:
            new_streak = current_streak + 1
        elif day_diff > 1:
            new_streak = 1
            broken = True
        else:
            if day_diff < 0:
                logger.warning(
                    f"Activity on {today} precedes last activity {last_activity_date}; "
                    f"keeping streak at {current_streak}"
                )
            new_streak = current_streak

    return StreakUpdate(
        current_streak=new_streak,
        longest_streak=max(longest_streak, new_streak),
        last_activity_date=today,
        increased=new_streak > current_streak,
        broken=broken,
    )
