"""Unit tests for Streak System (src/gamification/streak_system.py)"""
from datetime import date, datetime, timedelta, timezone

from src.gamification.streak_system import calculate_next_streak


NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)
TODAY = NOW.date()


# ============================================================================
# Streak Update Tests
# ============================================================================

def test_first_activity_starts_streak():
    """Test first activity creates streak of 1"""
    result = calculate_next_streak(None, NOW, current_streak=0, longest_streak=0)

    assert result.current_streak == 1
    assert result.longest_streak == 1
    assert result.last_activity_date == TODAY
    assert result.increased is True
    assert result.broken is False


def test_consecutive_day_increments_streak():
    """Test consecutive day activity increments streak"""
    result = calculate_next_streak(TODAY - timedelta(days=1), NOW, current_streak=5, longest_streak=10)

    assert result.current_streak == 6
    assert result.longest_streak == 10  # Unchanged
    assert result.increased is True


def test_same_day_keeps_streak():
    """Test multiple activities on one day count once"""
    result = calculate_next_streak(TODAY, NOW, current_streak=3, longest_streak=3)

    assert result.current_streak == 3
    assert result.increased is False
    assert result.broken is False


def test_gap_resets_streak():
    """Test missing a day resets the streak to 1"""
    result = calculate_next_streak(TODAY - timedelta(days=3), NOW, current_streak=8, longest_streak=8)

    assert result.current_streak == 1
    assert result.longest_streak == 8
    assert result.broken is True
    assert result.increased is False


def test_new_record_updates_longest():
    result = calculate_next_streak(TODAY - timedelta(days=1), NOW, current_streak=7, longest_streak=7)

    assert result.current_streak == 8
    assert result.longest_streak == 8


def test_activity_before_last_activity_keeps_streak():
    """Clock skew: an activity dated before the last one changes nothing"""
    result = calculate_next_streak(TODAY + timedelta(days=1), NOW, current_streak=4, longest_streak=6)

    assert result.current_streak == 4
    assert result.longest_streak == 6
    assert result.broken is False


def test_time_of_day_is_ignored():
    """Late last night and early this morning are consecutive days"""
    last = datetime(2024, 3, 14, 23, 59, tzinfo=timezone.utc)
    now = datetime(2024, 3, 15, 0, 1, tzinfo=timezone.utc)

    result = calculate_next_streak(last, now, current_streak=2, longest_streak=2)

    assert result.current_streak == 3


def test_calendar_day_uses_utc():
    """An aware timestamp is reduced to its UTC day"""
    plus_two = timezone(timedelta(hours=2))
    # 2024-03-16 01:00 +02:00 is still 2024-03-15 in UTC
    now = datetime(2024, 3, 16, 1, 0, tzinfo=plus_two)

    result = calculate_next_streak(date(2024, 3, 15), now, current_streak=2, longest_streak=2)

    assert result.current_streak == 2
    assert result.last_activity_date == date(2024, 3, 15)


def test_longest_streak_never_below_current():
    last = TODAY - timedelta(days=1)
    for current, longest in [(0, 0), (3, 5), (9, 9), (1, 20)]:
        result = calculate_next_streak(last, NOW, current_streak=current, longest_streak=longest)
        assert result.longest_streak >= result.current_streak
        assert result.longest_streak >= longest
