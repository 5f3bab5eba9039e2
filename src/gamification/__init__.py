"""
Quest progression engine

Pure rules plus the coordinator that applies them atomically:
- XP rewards and triangular leveling
- Daily activity streaks
- Badge catalog and evaluation
- Quest progress state machine
- ProgressionCoordinator (read, compute, conditional commit, retry)
"""

from src.gamification.xp_system import (
    calculate_level_from_xp,
    calculate_quest_reward,
    get_level_info,
    xp_required_for_level,
)
from src.gamification.streak_system import StreakUpdate, calculate_next_streak
from src.gamification.achievement_system import BADGE_CATALOG, evaluate_badges, get_badge
from src.gamification.state_machine import ProgressAction, apply_transition, can_transition
from src.gamification.coordinator import ProgressionCoordinator

__all__ = [
    "calculate_level_from_xp",
    "calculate_quest_reward",
    "get_level_info",
    "xp_required_for_level",
    "StreakUpdate",
    "calculate_next_streak",
    "BADGE_CATALOG",
    "evaluate_badges",
    "get_badge",
    "ProgressAction",
    "apply_transition",
    "can_transition",
    "ProgressionCoordinator",
]
