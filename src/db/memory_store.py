"""
In-memory progression store

Used by tests and by the 'memory' backend. Rows live in dicts and are lost
on restart. Commits are version-checked under a single asyncio.Lock so the
same conflict rules apply as with PostgreSQL.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from src.db.store import ProgressionCommit, ProgressionSnapshot
from src.exceptions import ConflictError
from src.models.badge import UserBadge
from src.models.progress import ProgressStatus, QuestProgress, UserProgressionState, XPLogEntry
from src.models.quest import Quest

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryProgressionStore:
    """In-process store for users, quests, progress, badges and XP ledger"""

    def __init__(self):
        self._users: Dict[str, UserProgressionState] = {}
        self._quests: Dict[str, Quest] = {}
        self._progress: Dict[Tuple[str, str], QuestProgress] = {}
        self._badges: Dict[str, Dict[str, UserBadge]] = {}
        self._xp_log: List[XPLogEntry] = []
        self._lock = asyncio.Lock()

    # Seeding helpers (users and quests are owned outside the engine)

    def add_user(self, user_id: str, **fields) -> UserProgressionState:
        state = UserProgressionState(user_id=user_id, **fields)
        if state.version == 0:
            state = state.model_copy(update={"version": 1})
        self._users[user_id] = state
        return state

    def add_quest(self, quest: Quest) -> Quest:
        self._quests[quest.id] = quest
        return quest

    def add_badge(self, user_id: str, badge_id: str, unlocked_at: Optional[datetime] = None) -> None:
        self._badges.setdefault(user_id, {})[badge_id] = UserBadge(
            user_id=user_id,
            badge_id=badge_id,
            unlocked_at=unlocked_at or datetime.now(timezone.utc),
        )

    # ProgressionStore

    async def load_user_and_progress(self, user_id: str, quest_id: str) -> ProgressionSnapshot:
        async with self._lock:
            return ProgressionSnapshot(
                user=self._copy(self._users.get(user_id)),
                quest=self._copy(self._quests.get(quest_id)),
                progress=self._copy(self._progress.get((user_id, quest_id))),
                badge_ids=frozenset(self._badges.get(user_id, {})),
            )

    async def commit(self, commit: ProgressionCommit) -> QuestProgress:
        key = (commit.user_id, commit.quest_id)

        async with self._lock:
            # Validate the whole write set before touching anything
            stored_progress = self._progress.get(key)
            stored_version = stored_progress.version if stored_progress else 0
            if stored_version != commit.progress.version:
                raise ConflictError(
                    "Quest progress changed since snapshot",
                    record_type="QuestProgress",
                    record_id=f"{commit.user_id}:{commit.quest_id}",
                    expected_version=commit.progress.version,
                    user_id=commit.user_id,
                    operation="commit",
                )

            if commit.user_state is not None:
                stored_user = self._users.get(commit.user_id)
                if stored_user is None or stored_user.version != commit.user_state.version:
                    raise ConflictError(
                        "User progression changed since snapshot",
                        record_type="UserProgressionState",
                        record_id=commit.user_id,
                        expected_version=commit.user_state.version,
                        user_id=commit.user_id,
                        operation="commit",
                    )

            held = self._badges.get(commit.user_id, {})
            for badge in commit.new_badges:
                if badge.badge_id in held:
                    raise ConflictError(
                        "Badge already unlocked",
                        record_type="UserBadge",
                        record_id=f"{commit.user_id}:{badge.badge_id}",
                        user_id=commit.user_id,
                        operation="commit",
                    )

            if commit.quest_completion_increment and commit.quest_id not in self._quests:
                raise ConflictError(
                    "Quest disappeared since snapshot",
                    record_type="Quest",
                    record_id=commit.quest_id,
                    user_id=commit.user_id,
                    operation="commit",
                )

            # Apply
            persisted = commit.progress.model_copy(update={"version": stored_version + 1}, deep=True)
            self._progress[key] = persisted

            if commit.user_state is not None:
                self._users[commit.user_id] = commit.user_state.model_copy(
                    update={"version": commit.user_state.version + 1}
                )

            if commit.quest_completion_increment:
                quest = self._quests[commit.quest_id]
                self._quests[commit.quest_id] = quest.model_copy(
                    update={"completion_count": quest.completion_count + commit.quest_completion_increment}
                )

            for badge in commit.new_badges:
                self._badges.setdefault(commit.user_id, {})[badge.badge_id] = badge

            if commit.xp_log is not None:
                self._xp_log.append(commit.xp_log)

            logger.debug(f"Committed progress {key} at version {persisted.version}")
            return persisted.model_copy(deep=True)

    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        return self._copy(self._quests.get(quest_id))

    async def get_progress(self, user_id: str, quest_id: str) -> Optional[QuestProgress]:
        return self._copy(self._progress.get((user_id, quest_id)))

    async def get_user_state(self, user_id: str) -> Optional[UserProgressionState]:
        return self._copy(self._users.get(user_id))

    async def list_progress(
        self,
        user_id: str,
        status: Optional[ProgressStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[QuestProgress], int]:
        rows = [
            p for (uid, _), p in self._progress.items()
            if uid == user_id and (status is None or p.status == status)
        ]
        # status ascending, most recently touched first within a status
        rows.sort(key=lambda p: p.updated_at or p.started_at or _EPOCH, reverse=True)
        rows.sort(key=lambda p: p.status.value)
        return [p.model_copy(deep=True) for p in rows[offset:offset + limit]], len(rows)

    # Inspection helpers

    async def get_user_badges(self, user_id: str) -> List[UserBadge]:
        return list(self._badges.get(user_id, {}).values())

    async def get_xp_log(self, user_id: str) -> List[XPLogEntry]:
        return [entry for entry in self._xp_log if entry.user_id == user_id]

    @staticmethod
    def _copy(model):
        return model.model_copy(deep=True) if model is not None else None
