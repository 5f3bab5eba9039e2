"""Unit tests for Badge System (src/gamification/achievement_system.py)"""
from src.gamification.achievement_system import (
    BADGE_CATALOG,
    BadgeRule,
    evaluate_badges,
    get_badge,
)
from src.gamification.xp_system import xp_required_for_level
from src.models.badge import Badge, BadgeRarity, BadgeType
from src.models.progress import UserProgressionState


def _state(**fields) -> UserProgressionState:
    fields.setdefault("user_id", "user-1")
    return UserProgressionState(**fields)


def _ids(badges):
    return [badge.id for badge in badges]


# ============================================================================
# Catalog Tests
# ============================================================================

def test_catalog_ids_are_unique():
    ids = [rule.badge.id for rule in BADGE_CATALOG]
    assert len(ids) == len(set(ids))


def test_get_badge():
    badge = get_badge("legend")

    assert badge is not None
    assert badge.rarity == BadgeRarity.LEGENDARY
    assert get_badge("missing") is None


# ============================================================================
# Evaluation Tests
# ============================================================================

def test_first_quest_unlocks_with_no_prior_badges():
    state = _state(total_xp=50, current_level=1, quests_completed=1, current_streak=1)

    unlocked = evaluate_badges(frozenset(), state, previous_level=1)

    assert _ids(unlocked) == ["first_quest"]


def test_first_quest_not_repeated():
    state = _state(total_xp=100, current_level=2, quests_completed=2, current_streak=1)

    unlocked = evaluate_badges({"first_quest"}, state, previous_level=1)

    assert unlocked == []


def test_week_warrior_at_streak_7():
    state = _state(total_xp=400, current_level=2, quests_completed=7, current_streak=7)

    unlocked = evaluate_badges({"first_quest"}, state, previous_level=2)

    assert _ids(unlocked) == ["week_warrior"]


def test_week_warrior_not_at_other_streaks():
    for streak in (6, 8, 14):
        state = _state(current_streak=streak, quests_completed=streak)
        assert evaluate_badges({"first_quest"}, state, previous_level=1) == []


def test_rising_star_on_crossing_level_10():
    xp = xp_required_for_level(10)
    state = _state(total_xp=xp, current_level=10, current_streak=1)

    unlocked = evaluate_badges({"first_quest"}, state, previous_level=9)

    assert _ids(unlocked) == ["rising_star"]


def test_rising_star_requires_crossing():
    """Already level 10 before this completion: nothing new"""
    state = _state(total_xp=xp_required_for_level(10) + 50, current_level=10, current_streak=1)

    assert evaluate_badges({"first_quest"}, state, previous_level=10) == []


def test_jump_across_several_levels_unlocks_both_level_badges():
    state = _state(total_xp=xp_required_for_level(50), current_level=50, current_streak=1)

    unlocked = evaluate_badges({"first_quest"}, state, previous_level=9)

    assert _ids(unlocked) == ["rising_star", "legend"]


def test_multiple_badges_in_catalog_order():
    state = _state(total_xp=xp_required_for_level(10), current_level=10, current_streak=7)

    unlocked = evaluate_badges(frozenset(), state, previous_level=9)

    assert _ids(unlocked) == ["first_quest", "week_warrior", "rising_star"]


def test_held_badges_never_reemitted():
    state = _state(total_xp=xp_required_for_level(10), current_level=10, current_streak=7)
    held = {rule.badge.id for rule in BADGE_CATALOG}

    assert evaluate_badges(held, state, previous_level=9) == []


def test_custom_catalog():
    badge = Badge(
        id="centurion",
        name="Centurion",
        description="Complete 100 quests",
        icon="💯",
        badge_type=BadgeType.COMPLETION,
        rarity=BadgeRarity.EPIC,
    )
    catalog = [BadgeRule(badge, lambda ctx: ctx.user_state.quests_completed >= 100)]

    state = _state(quests_completed=100)

    assert _ids(evaluate_badges(frozenset(), state, previous_level=1, catalog=catalog)) == ["centurion"]
    assert evaluate_badges({"centurion"}, state, previous_level=1, catalog=catalog) == []
