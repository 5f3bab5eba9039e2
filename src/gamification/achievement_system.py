"""
Badge System

Badges are declared as data: each catalog entry pairs a Badge definition with
an unlock predicate. Evaluation runs once per quest completion, after XP and
streak are final, and is purely a function of its inputs.

Unlocks are monotonic: a badge already held is never emitted again and a
held badge is never revoked.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple
import logging

from src.models.badge import Badge, BadgeRarity, BadgeType
from src.models.progress import UserProgressionState
from src.models.quest import Quest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BadgeContext:
    """Everything a badge predicate may look at"""
    prior_badge_ids: frozenset
    user_state: UserProgressionState  # already updated with this completion
    previous_level: int
    quest: Optional[Quest] = None


@dataclass(frozen=True)
class BadgeRule:
    badge: Badge
    predicate: Callable[[BadgeContext], bool]


def _reached_level(level: int) -> Callable[[BadgeContext], bool]:
    def predicate(ctx: BadgeContext) -> bool:
        return ctx.user_state.current_level >= level and ctx.previous_level < level
    return predicate


BADGE_CATALOG: Tuple[BadgeRule, ...] = (
    BadgeRule(
        Badge(
            id="first_quest",
            name="First Quest",
            description="Complete your very first quest",
            icon="🏆",
            badge_type=BadgeType.COMPLETION,
            rarity=BadgeRarity.COMMON,
        ),
        lambda ctx: not ctx.prior_badge_ids,
    ),
    BadgeRule(
        Badge(
            id="week_warrior",
            name="Week Warrior",
            description="Complete quests for 7 days straight",
            icon="🔥",
            badge_type=BadgeType.STREAK,
            rarity=BadgeRarity.RARE,
        ),
        lambda ctx: ctx.user_state.current_streak == 7,
    ),
    BadgeRule(
        Badge(
            id="rising_star",
            name="Rising Star",
            description="Reach level 10",
            icon="⭐",
            badge_type=BadgeType.LEVEL,
            rarity=BadgeRarity.EPIC,
        ),
        _reached_level(10),
    ),
    BadgeRule(
        Badge(
            id="legend",
            name="Legend",
            description="Reach level 50",
            icon="👑",
            badge_type=BadgeType.SPECIAL,
            rarity=BadgeRarity.LEGENDARY,
        ),
        _reached_level(50),
    ),
)


def evaluate_badges(
    prior_badge_ids: Iterable[str],
    user_state: UserProgressionState,
    previous_level: int,
    quest: Optional[Quest] = None,
    catalog: Iterable[BadgeRule] = BADGE_CATALOG,
) -> List[Badge]:
    """
    Return badges newly unlocked by a completion

    Args:
        prior_badge_ids: Badge ids the user held before this completion
        user_state: Aggregate after XP, level and streak were applied
        previous_level: Level before this completion
        quest: The quest that triggered the evaluation
        catalog: Badge rules to evaluate (defaults to BADGE_CATALOG)

    Returns:
        Badges in catalog order, none of which were already held
    """
    ctx = BadgeContext(
        prior_badge_ids=frozenset(prior_badge_ids),
        user_state=user_state,
        previous_level=previous_level,
        quest=quest,
    )

    unlocked: List[Badge] = []
    seen = set(ctx.prior_badge_ids)

    for rule in catalog:
        if rule.badge.id in seen:
            continue
        if rule.predicate(ctx):
            unlocked.append(rule.badge)
            seen.add(rule.badge.id)

    if unlocked:
        logger.info(
            f"User {user_state.user_id} unlocked badges: "
            f"{', '.join(badge.name for badge in unlocked)}"
        )

    return unlocked


def get_badge(badge_id: str, catalog: Iterable[BadgeRule] = BADGE_CATALOG) -> Optional[Badge]:
    for rule in catalog:
        if rule.badge.id == badge_id:
            return rule.badge
    return None
