"""Prometheus metrics for quest progression

Exposes counters for progression actions, commit conflicts and retries,
XP awarded and badges unlocked.
"""

import logging
from prometheus_client import Counter

logger = logging.getLogger(__name__)

# Actions handled by the coordinator
# Labels: action (start/submit/complete/abandon), status (success/error code)
progression_actions_total = Counter(
    'progression_actions_total',
    'Total number of quest progression actions',
    ['action', 'status']
)

# Conditional writes rejected because the snapshot was stale
# Labels: action
progression_commit_conflicts_total = Counter(
    'progression_commit_conflicts_total',
    'Total number of progression commit conflicts',
    ['action']
)

# Retry attempts after a conflict
# Labels: action
progression_retries_total = Counter(
    'progression_retries_total',
    'Total number of progression commit retries',
    ['action']
)

xp_awarded_total = Counter(
    'xp_awarded_total',
    'Total XP awarded for quest completions'
)

# Labels: badge_id
badges_unlocked_total = Counter(
    'badges_unlocked_total',
    'Total number of badges unlocked',
    ['badge_id']
)


def record_action(action: str, status: str) -> None:
    """
    Record a finished progression action.

    Args:
        action: start, submit, complete or abandon
        status: 'success' or the error code of the failure
    """
    try:
        progression_actions_total.labels(action=action, status=status).inc()
    except Exception as e:
        logger.error(f"Failed to record action metric: {e}")


def record_conflict_retry(action: str) -> None:
    """
    Record a commit conflict that triggers a retry.

    Args:
        action: Action whose commit conflicted
    """
    try:
        progression_commit_conflicts_total.labels(action=action).inc()
        progression_retries_total.labels(action=action).inc()
        logger.debug(f"[METRICS] Conflict retry recorded for {action}")
    except Exception as e:
        logger.error(f"Failed to record conflict metric: {e}")


def record_rewards(xp: int, badge_ids: list[str]) -> None:
    """
    Record XP and badges granted by a committed completion.
    """
    try:
        xp_awarded_total.inc(xp)
        for badge_id in badge_ids:
            badges_unlocked_total.labels(badge_id=badge_id).inc()
    except Exception as e:
        logger.error(f"Failed to record reward metrics: {e}")
