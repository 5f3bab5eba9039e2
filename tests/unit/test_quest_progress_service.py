"""Unit tests for QuestProgressService (src/services/quest_progress_service.py)"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from src.exceptions import TransientFailureError
from src.models.progress import ProgressStatus
from src.services.quest_progress_service import QuestProgressService


@pytest.fixture
def service(coordinator):
    return QuestProgressService(coordinator)


@pytest.mark.asyncio
async def test_success_wraps_data(service, test_user_id, easy_quest):
    result = await service.start_quest(test_user_id, easy_quest.id)

    assert result.success is True
    assert result.error is None
    assert result.data.status == ProgressStatus.IN_PROGRESS
    assert result.timestamp is not None


@pytest.mark.asyncio
async def test_full_flow_through_service(service, test_user_id, easy_quest, make_submission):
    await service.start_quest(test_user_id, easy_quest.id)

    submitted = await service.submit_quest(test_user_id, easy_quest.id, make_submission(test_user_id, easy_quest.id))
    stats = await service.get_user_stats(test_user_id)
    history = await service.list_user_quests(test_user_id, status=ProgressStatus.COMPLETED)

    assert submitted.success is True
    assert submitted.data.rewards.xp_gained == 50
    assert stats.data.total_xp == 50
    assert history.data.total == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("call,expected_code", [
    (lambda s, u, q: s.start_quest("", q), "AUTHENTICATION_ERROR"),
    (lambda s, u, q: s.complete_quest(u, q), "NOT_FOUND"),
    (lambda s, u, q: s.abandon_quest(u, q), "NOT_FOUND"),
    (lambda s, u, q: s.get_progress(u, "missing"), "NOT_FOUND"),
    (lambda s, u, q: s.list_user_quests(u, page=0), "VALIDATION_ERROR"),
])
async def test_engine_errors_become_failed_results(service, test_user_id, easy_quest, call, expected_code):
    result = await call(service, test_user_id, easy_quest.id)

    assert result.success is False
    assert result.data is None
    assert result.error.code == expected_code
    assert result.error.request_id
    assert result.error.user_message


@pytest.mark.asyncio
async def test_invalid_transition_code(service, test_user_id, easy_quest):
    await service.start_quest(test_user_id, easy_quest.id)

    result = await service.start_quest(test_user_id, easy_quest.id)

    assert result.success is False
    assert result.error.code == "VALIDATION_ERROR"
    assert result.error.message == "Quest already started or completed"


@pytest.mark.asyncio
async def test_transient_failure_code():
    coordinator = MagicMock()
    coordinator.complete_quest = AsyncMock(
        side_effect=TransientFailureError("complete kept conflicting", attempts=3)
    )
    service = QuestProgressService(coordinator)

    result = await service.complete_quest("user-1", "quest-1")

    assert result.error.code == "TRANSIENT_FAILURE"


@pytest.mark.asyncio
async def test_unexpected_errors_propagate():
    coordinator = MagicMock()
    coordinator.get_user_stats = AsyncMock(side_effect=RuntimeError("boom"))
    service = QuestProgressService(coordinator)

    with pytest.raises(RuntimeError):
        await service.get_user_stats("user-1")
