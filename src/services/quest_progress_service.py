"""
QuestProgressService - Typed results for quest progression

Wraps the ProgressionCoordinator so callers (HTTP handlers, bots, jobs) get
an ActionResult envelope instead of exceptions. Engine errors become
ErrorInfo with a stable code; anything unexpected still propagates.
"""

import logging
from typing import Awaitable, Optional, TypeVar, Union

from src.exceptions import QuestEngineError
from src.gamification.coordinator import ProgressionCoordinator
from src.models.progress import ProgressStatus, QuestProgress
from src.models.results import (
    ActionResult,
    CompletionResult,
    ErrorInfo,
    ProgressView,
    QuestPage,
    SubmissionResult,
    UserStats,
)
from src.models.submission import Submission

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QuestProgressService:
    """
    Service for quest progression actions.

    Responsibilities:
    - Start, submit, complete and abandon quests
    - Progress, stats and history queries
    - Mapping engine errors to typed failures
    """

    def __init__(self, coordinator: ProgressionCoordinator):
        """
        Initialize QuestProgressService.

        Args:
            coordinator: ProgressionCoordinator bound to a progression store
        """
        self.coordinator = coordinator
        logger.debug("QuestProgressService initialized")

    async def start_quest(self, user_id: str, quest_id: str) -> ActionResult[QuestProgress]:
        return await self._wrap(self.coordinator.start_quest(user_id, quest_id))

    async def submit_quest(
        self,
        user_id: str,
        quest_id: str,
        submission: Optional[Submission],
    ) -> ActionResult[SubmissionResult]:
        return await self._wrap(self.coordinator.submit_quest(user_id, quest_id, submission))

    async def complete_quest(self, user_id: str, quest_id: str) -> ActionResult[CompletionResult]:
        return await self._wrap(self.coordinator.complete_quest(user_id, quest_id))

    async def abandon_quest(self, user_id: str, quest_id: str) -> ActionResult[QuestProgress]:
        return await self._wrap(self.coordinator.abandon_quest(user_id, quest_id))

    async def get_progress(self, user_id: str, quest_id: str) -> ActionResult[ProgressView]:
        return await self._wrap(self.coordinator.get_progress(user_id, quest_id))

    async def get_user_stats(self, user_id: str) -> ActionResult[UserStats]:
        return await self._wrap(self.coordinator.get_user_stats(user_id))

    async def list_user_quests(
        self,
        user_id: str,
        status: Optional[Union[ProgressStatus, str]] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ActionResult[QuestPage]:
        return await self._wrap(self.coordinator.list_user_quests(user_id, status, page, limit))

    @staticmethod
    async def _wrap(action: Awaitable[T]) -> ActionResult[T]:
        try:
            data = await action
        except QuestEngineError as e:
            return ActionResult(
                success=False,
                error=ErrorInfo(
                    code=e.error_code,
                    message=e.message,
                    user_message=e.user_message,
                    request_id=e.request_id,
                ),
            )
        return ActionResult(success=True, data=data)
