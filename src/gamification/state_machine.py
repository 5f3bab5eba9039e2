"""
Quest Progress State Machine

- start:    (no row), ABANDONED     -> IN_PROGRESS
- submit:   IN_PROGRESS              -> SUBMITTED
- complete: IN_PROGRESS, SUBMITTED   -> COMPLETED (terminal)
- abandon:  IN_PROGRESS              -> ABANDONED

Transitions return a new QuestProgress and never mutate their input.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Optional
import logging

from src.exceptions import NotFoundError, ValidationError
from src.models.progress import ProgressStatus, QuestProgress
from src.models.quest import Quest

logger = logging.getLogger(__name__)


class ProgressAction(str, Enum):
    START = "start"
    SUBMIT = "submit"
    COMPLETE = "complete"
    ABANDON = "abandon"


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[ProgressStatus]
    target: ProgressStatus
    error_message: str


TRANSITIONS: Dict[ProgressAction, Transition] = {
    ProgressAction.START: Transition(
        sources=frozenset({ProgressStatus.NOT_STARTED, ProgressStatus.ABANDONED}),
        target=ProgressStatus.IN_PROGRESS,
        error_message="Quest already started or completed",
    ),
    ProgressAction.SUBMIT: Transition(
        sources=frozenset({ProgressStatus.IN_PROGRESS}),
        target=ProgressStatus.SUBMITTED,
        error_message="Quest is not in progress",
    ),
    ProgressAction.COMPLETE: Transition(
        sources=frozenset({ProgressStatus.IN_PROGRESS, ProgressStatus.SUBMITTED}),
        target=ProgressStatus.COMPLETED,
        error_message="Quest is not in progress",
    ),
    ProgressAction.ABANDON: Transition(
        sources=frozenset({ProgressStatus.IN_PROGRESS}),
        target=ProgressStatus.ABANDONED,
        error_message="Can only abandon quests in progress",
    ),
}


def current_status(progress: Optional[QuestProgress]) -> ProgressStatus:
    return progress.status if progress is not None else ProgressStatus.NOT_STARTED


def can_transition(status: ProgressStatus, action: ProgressAction) -> bool:
    return status in TRANSITIONS[action].sources


def apply_transition(
    progress: Optional[QuestProgress],
    action: ProgressAction,
    *,
    user_id: str,
    quest: Quest,
    now: datetime,
    xp_earned: int = 0,
) -> QuestProgress:
    """
    Validate and apply a transition

    Args:
        progress: Current progress row (None if the quest was never started)
        action: Transition to apply
        user_id: Owner of the progress row
        quest: Quest the progress belongs to
        now: Timestamp recorded on the transition
        xp_earned: Base XP recorded on COMPLETE

    Returns:
        New QuestProgress in the target state

    Raises:
        NotFoundError: Non-start action without a progress row
        ValidationError: Current status does not allow the action, or the
            quest is not available to start
    """
    transition = TRANSITIONS[action]
    status = current_status(progress)

    if action == ProgressAction.START:
        if not quest.is_available:
            raise ValidationError(
                "Quest is not available",
                field="quest_status",
                value=quest.status.value,
                user_id=user_id,
                operation=action.value,
            )
    elif progress is None:
        raise NotFoundError(
            "Quest progress not found. Start the quest first.",
            record_type="QuestProgress",
            record_id=f"{user_id}:{quest.id}",
            user_id=user_id,
            operation=action.value,
        )

    if status not in transition.sources:
        raise ValidationError(
            transition.error_message,
            field="status",
            value=status.value,
            user_id=user_id,
            operation=action.value,
        )

    update = {"status": transition.target, "updated_at": now}

    if action == ProgressAction.START:
        if progress is None:
            return QuestProgress(
                user_id=user_id,
                quest_id=quest.id,
                status=transition.target,
                started_at=now,
                current_step=0,
                total_steps=quest.total_steps,
                updated_at=now,
            )
        update.update(started_at=now, current_step=0, abandoned_at=None)
    elif action == ProgressAction.SUBMIT:
        update["submitted_at"] = now
    elif action == ProgressAction.COMPLETE:
        update.update(completed_at=now, xp_earned=xp_earned, current_step=progress.total_steps)
    elif action == ProgressAction.ABANDON:
        update["abandoned_at"] = now

    logger.debug(f"Progress {user_id}:{quest.id} {status.value} -> {transition.target.value}")

    return progress.model_copy(update=update)
