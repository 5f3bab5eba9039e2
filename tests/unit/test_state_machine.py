"""Unit tests for the quest progress state machine (src/gamification/state_machine.py)"""
import pytest
from datetime import datetime, timedelta, timezone

from src.exceptions import NotFoundError, ValidationError
from src.gamification.state_machine import (
    ProgressAction,
    apply_transition,
    can_transition,
    current_status,
)
from src.models.progress import ProgressStatus, QuestProgress
from src.models.quest import Quest, QuestStatus


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
QUEST = Quest(id="quest-1", title="Read a Book", points_reward=40, total_steps=4)


def _progress(status: ProgressStatus, **fields) -> QuestProgress:
    fields.setdefault("started_at", NOW - timedelta(days=1))
    return QuestProgress(
        user_id="user-1",
        quest_id=QUEST.id,
        status=status,
        total_steps=QUEST.total_steps,
        version=3,
        **fields
    )


def _apply(progress, action, quest=QUEST, **kwargs):
    return apply_transition(progress, action, user_id="user-1", quest=quest, now=NOW, **kwargs)


# ============================================================================
# Transition Table Tests
# ============================================================================

@pytest.mark.parametrize("status,action,allowed", [
    (ProgressStatus.NOT_STARTED, ProgressAction.START, True),
    (ProgressStatus.ABANDONED, ProgressAction.START, True),
    (ProgressStatus.IN_PROGRESS, ProgressAction.START, False),
    (ProgressStatus.SUBMITTED, ProgressAction.START, False),
    (ProgressStatus.COMPLETED, ProgressAction.START, False),
    (ProgressStatus.IN_PROGRESS, ProgressAction.SUBMIT, True),
    (ProgressStatus.SUBMITTED, ProgressAction.SUBMIT, False),
    (ProgressStatus.IN_PROGRESS, ProgressAction.COMPLETE, True),
    (ProgressStatus.SUBMITTED, ProgressAction.COMPLETE, True),
    (ProgressStatus.COMPLETED, ProgressAction.COMPLETE, False),
    (ProgressStatus.ABANDONED, ProgressAction.COMPLETE, False),
    (ProgressStatus.IN_PROGRESS, ProgressAction.ABANDON, True),
    (ProgressStatus.SUBMITTED, ProgressAction.ABANDON, False),
    (ProgressStatus.COMPLETED, ProgressAction.ABANDON, False),
])
def test_can_transition(status, action, allowed):
    assert can_transition(status, action) is allowed


def test_current_status_without_row():
    assert current_status(None) == ProgressStatus.NOT_STARTED


# ============================================================================
# Start Tests
# ============================================================================

def test_start_creates_progress():
    progress = _apply(None, ProgressAction.START)

    assert progress.status == ProgressStatus.IN_PROGRESS
    assert progress.started_at == NOW
    assert progress.current_step == 0
    assert progress.total_steps == 4
    assert progress.version == 0


def test_start_unavailable_quest_rejected():
    draft = QUEST.model_copy(update={"status": QuestStatus.DRAFT})

    with pytest.raises(ValidationError) as exc_info:
        _apply(None, ProgressAction.START, quest=draft)

    assert "not available" in exc_info.value.message


def test_restart_after_abandon_resets_row():
    abandoned = _progress(
        ProgressStatus.ABANDONED,
        current_step=2,
        abandoned_at=NOW - timedelta(hours=1),
        progress_data={"notes": "halfway"},
    )

    progress = _apply(abandoned, ProgressAction.START)

    assert progress.status == ProgressStatus.IN_PROGRESS
    assert progress.started_at == NOW
    assert progress.current_step == 0
    assert progress.abandoned_at is None
    assert progress.version == 3  # commit token is carried, not bumped
    assert progress.progress_data == {"notes": "halfway"}


def test_start_twice_rejected():
    with pytest.raises(ValidationError):
        _apply(_progress(ProgressStatus.IN_PROGRESS), ProgressAction.START)


def test_start_after_completion_rejected():
    with pytest.raises(ValidationError):
        _apply(_progress(ProgressStatus.COMPLETED), ProgressAction.START)


# ============================================================================
# Submit / Complete / Abandon Tests
# ============================================================================

def test_submit_sets_timestamp():
    progress = _apply(_progress(ProgressStatus.IN_PROGRESS), ProgressAction.SUBMIT)

    assert progress.status == ProgressStatus.SUBMITTED
    assert progress.submitted_at == NOW


def test_complete_from_submitted():
    submitted = _progress(ProgressStatus.SUBMITTED, submitted_at=NOW)

    progress = _apply(submitted, ProgressAction.COMPLETE, xp_earned=40)

    assert progress.status == ProgressStatus.COMPLETED
    assert progress.completed_at == NOW
    assert progress.xp_earned == 40
    assert progress.current_step == 4


def test_complete_is_terminal():
    completed = _progress(ProgressStatus.COMPLETED, completed_at=NOW)

    for action in (ProgressAction.SUBMIT, ProgressAction.COMPLETE, ProgressAction.ABANDON):
        with pytest.raises(ValidationError):
            _apply(completed, action)


def test_abandon_sets_timestamp():
    progress = _apply(_progress(ProgressStatus.IN_PROGRESS), ProgressAction.ABANDON)

    assert progress.status == ProgressStatus.ABANDONED
    assert progress.abandoned_at == NOW


def test_abandon_submitted_rejected():
    with pytest.raises(ValidationError) as exc_info:
        _apply(_progress(ProgressStatus.SUBMITTED), ProgressAction.ABANDON)

    assert exc_info.value.message == "Can only abandon quests in progress"


@pytest.mark.parametrize("action", [ProgressAction.SUBMIT, ProgressAction.COMPLETE, ProgressAction.ABANDON])
def test_actions_without_progress_not_found(action):
    with pytest.raises(NotFoundError):
        _apply(None, action)


def test_transition_does_not_mutate_input():
    original = _progress(ProgressStatus.IN_PROGRESS)

    _apply(original, ProgressAction.COMPLETE, xp_earned=40)

    assert original.status == ProgressStatus.IN_PROGRESS
    assert original.completed_at is None
    assert original.xp_earned == 0
