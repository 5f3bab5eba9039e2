"""
Progression store contract

The coordinator reads a consistent snapshot, computes the full write set in
memory, and hands it to `commit` as one unit. A store must apply the whole
write set or nothing, and must raise ConflictError when any row changed
since the snapshot was taken (version mismatch or duplicate insert).
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Protocol, Tuple

from src.models.badge import UserBadge
from src.models.progress import ProgressStatus, QuestProgress, UserProgressionState, XPLogEntry
from src.models.quest import Quest


@dataclass(frozen=True)
class ProgressionSnapshot:
    """Rows read for one action; None means the row does not exist"""
    user: Optional[UserProgressionState]
    quest: Optional[Quest]
    progress: Optional[QuestProgress]
    badge_ids: FrozenSet[str] = frozenset()


@dataclass
class ProgressionCommit:
    """
    Write set for one action

    `progress.version` and `user_state.version` carry the versions seen in
    the snapshot; the store writes only if they are still current.
    """
    user_id: str
    quest_id: str
    progress: QuestProgress
    user_state: Optional[UserProgressionState] = None
    quest_completion_increment: int = 0
    new_badges: List[UserBadge] = field(default_factory=list)
    xp_log: Optional[XPLogEntry] = None


class ProgressionStore(Protocol):
    """Persistence collaborator consumed by ProgressionCoordinator"""

    async def load_user_and_progress(self, user_id: str, quest_id: str) -> ProgressionSnapshot:
        ...

    async def commit(self, commit: ProgressionCommit) -> QuestProgress:
        """Apply the write set atomically and return the persisted progress row"""
        ...

    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        ...

    async def get_progress(self, user_id: str, quest_id: str) -> Optional[QuestProgress]:
        ...

    async def get_user_state(self, user_id: str) -> Optional[UserProgressionState]:
        ...

    async def list_progress(
        self,
        user_id: str,
        status: Optional[ProgressStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[QuestProgress], int]:
        """Return one page of progress rows and the total row count"""
        ...
