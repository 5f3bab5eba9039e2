"""
XP and Leveling System

Pure functions for level calculation and quest rewards.

Leveling Curve (triangular, 100 XP step):
- Level 1: 0-99 XP
- Level 2: 100-299 XP
- Level 3: 300-599 XP
- Level k: (k-1)k/2 * 100 up to k(k+1)/2 * 100 - 1

Quest Reward Rules (additive, each floored):
- Base: quest points reward
- Epic difficulty: +50% of base
- Streak milestone (streak grows onto a multiple of 5): +20% of base
"""

from dataclasses import dataclass, field
from typing import Dict
import logging

from src.gamification.streak_system import StreakUpdate
from src.models.quest import Quest, QuestDifficulty

logger = logging.getLogger(__name__)

LEVEL_XP_STEP = 100

EPIC_BONUS_PERCENT = 50
STREAK_MILESTONE_INTERVAL = 5
STREAK_MILESTONE_BONUS_PERCENT = 20


@dataclass(frozen=True)
class QuestReward:
    """XP breakdown for one quest completion"""
    base_xp: int
    bonus_xp: int
    total_xp: int
    bonuses: Dict[str, int] = field(default_factory=dict)


def xp_required_for_level(level: int) -> int:
    """Cumulative XP at which `level` begins"""
    if level <= 1:
        return 0
    return (level - 1) * level // 2 * LEVEL_XP_STEP


def calculate_level_from_xp(total_xp: int) -> int:
    """
    Calculate level from total XP

    Walks the thresholds upward, accumulating level * 100 per level, and
    stops at the first threshold the XP does not reach. Negative XP is
    treated as level 1.
    """
    level = 1
    xp_needed = 0

    while True:
        xp_needed += level * LEVEL_XP_STEP
        if total_xp < xp_needed:
            return level
        level += 1


def get_level_info(total_xp: int) -> Dict[str, int]:
    """
    Level progress details for display

    Returns:
        {
            'current_level': int,
            'xp_in_current_level': int,
            'xp_for_next_level': int,   # span of the current level
            'xp_to_next_level': int,
            'total_xp_for_next_level': int
        }
    """
    total_xp = max(total_xp, 0)
    level = calculate_level_from_xp(total_xp)
    level_start = xp_required_for_level(level)
    next_level_start = xp_required_for_level(level + 1)

    return {
        "current_level": level,
        "xp_in_current_level": total_xp - level_start,
        "xp_for_next_level": next_level_start - level_start,
        "xp_to_next_level": next_level_start - total_xp,
        "total_xp_for_next_level": next_level_start,
    }


def did_level_up(old_total_xp: int, xp_gained: int) -> bool:
    return calculate_level_from_xp(old_total_xp + xp_gained) > calculate_level_from_xp(old_total_xp)


def calculate_quest_reward(quest: Quest, streak: StreakUpdate) -> QuestReward:
    """
    Calculate XP reward for completing a quest

    Args:
        quest: The quest being completed
        streak: Streak outcome of this completion (from calculate_next_streak)

    Returns:
        QuestReward with base, bonus and total XP plus a named bonus breakdown
    """
    base_xp = quest.points_reward
    bonuses: Dict[str, int] = {}

    if quest.difficulty == QuestDifficulty.EPIC:
        bonuses["epic_difficulty"] = base_xp * EPIC_BONUS_PERCENT // 100

    if streak.increased and streak.current_streak % STREAK_MILESTONE_INTERVAL == 0:
        bonuses["streak_milestone"] = base_xp * STREAK_MILESTONE_BONUS_PERCENT // 100

    bonus_xp = sum(bonuses.values())

    return QuestReward(
        base_xp=base_xp,
        bonus_xp=bonus_xp,
        total_xp=base_xp + bonus_xp,
        bonuses=bonuses,
    )
