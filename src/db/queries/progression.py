"""Quest progression database queries

Tables (managed outside this package):
- user_progression (user_id PK, total_xp, current_level, quests_completed,
  current_streak, longest_streak, last_activity_date, version, updated_at)
- quests (id PK, title, difficulty, status, points_reward, completion_count, total_steps)
- user_quest_progress (user_id, quest_id) unique, lifecycle columns, progress_data JSONB, version
- user_badges (user_id, badge_id) unique, unlocked_at
- xp_logs (user_id, amount, source, source_id, description, created_at)
"""
import json
import logging
from typing import List, Optional, Tuple

import psycopg

from src.db.connection import Database, db as default_db
from src.db.store import ProgressionCommit, ProgressionSnapshot
from src.exceptions import ConflictError, wrap_external_exception
from src.models.progress import ProgressStatus, QuestProgress, UserProgressionState
from src.models.quest import Quest

logger = logging.getLogger(__name__)

USER_COLUMNS = (
    "user_id, total_xp, current_level, quests_completed, current_streak, "
    "longest_streak, last_activity_date, version"
)
QUEST_COLUMNS = "id, title, difficulty, status, points_reward, completion_count, total_steps"
PROGRESS_COLUMNS = (
    "user_id, quest_id, status, started_at, submitted_at, completed_at, abandoned_at, "
    "current_step, total_steps, xp_earned, progress_data, updated_at, version"
)


def _progress_params(progress: QuestProgress) -> tuple:
    return (
        progress.status.value,
        progress.started_at,
        progress.submitted_at,
        progress.completed_at,
        progress.abandoned_at,
        progress.current_step,
        progress.total_steps,
        progress.xp_earned,
        json.dumps(progress.progress_data) if progress.progress_data is not None else None,
        progress.updated_at,
    )


class PostgresProgressionStore:
    """ProgressionStore backed by PostgreSQL through the shared psycopg pool"""

    def __init__(self, database: Database = default_db):
        self.db = database

    # ==========================================
    # Snapshot
    # ==========================================

    async def load_user_and_progress(self, user_id: str, quest_id: str) -> ProgressionSnapshot:
        """
        Read user aggregate, quest, progress row and badge ids in one
        REPEATABLE READ transaction
        """
        try:
            async with self.db.transaction("REPEATABLE READ") as cur:
                await cur.execute(
                    f"SELECT {USER_COLUMNS} FROM user_progression WHERE user_id = %s",
                    (user_id,)
                )
                user_row = await cur.fetchone()

                await cur.execute(
                    f"SELECT {QUEST_COLUMNS} FROM quests WHERE id = %s",
                    (quest_id,)
                )
                quest_row = await cur.fetchone()

                await cur.execute(
                    f"""
                    SELECT {PROGRESS_COLUMNS}
                    FROM user_quest_progress
                    WHERE user_id = %s AND quest_id = %s
                    """,
                    (user_id, quest_id)
                )
                progress_row = await cur.fetchone()

                await cur.execute(
                    "SELECT badge_id FROM user_badges WHERE user_id = %s",
                    (user_id,)
                )
                badge_rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="load_user_and_progress", user_id=user_id, context={"quest_id": quest_id}
            )

        return ProgressionSnapshot(
            user=UserProgressionState(**user_row) if user_row else None,
            quest=Quest(**quest_row) if quest_row else None,
            progress=QuestProgress(**progress_row) if progress_row else None,
            badge_ids=frozenset(row["badge_id"] for row in badge_rows),
        )

    # ==========================================
    # Atomic write
    # ==========================================

    async def commit(self, commit: ProgressionCommit) -> QuestProgress:
        """
        Apply the write set in a single transaction

        Every conditional statement must touch exactly one row; otherwise the
        snapshot was stale and ConflictError rolls the transaction back.
        """
        try:
            async with self.db.transaction() as cur:
                if commit.user_state is not None:
                    await self._update_user_state(cur, commit)

                persisted = await self._write_progress(cur, commit)

                if commit.quest_completion_increment:
                    await cur.execute(
                        """
                        UPDATE quests
                        SET completion_count = completion_count + %s
                        WHERE id = %s
                        """,
                        (commit.quest_completion_increment, commit.quest_id)
                    )
                    self._require_one_row(cur, commit, "Quest", commit.quest_id)

                for badge in commit.new_badges:
                    await cur.execute(
                        """
                        INSERT INTO user_badges (user_id, badge_id, unlocked_at)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (user_id, badge_id) DO NOTHING
                        """,
                        (badge.user_id, badge.badge_id, badge.unlocked_at)
                    )
                    self._require_one_row(cur, commit, "UserBadge", f"{badge.user_id}:{badge.badge_id}")

                if commit.xp_log is not None:
                    entry = commit.xp_log
                    await cur.execute(
                        """
                        INSERT INTO xp_logs (user_id, amount, source, source_id, description, created_at)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        """,
                        (entry.user_id, entry.amount, entry.source, entry.source_id,
                         entry.description, entry.created_at)
                    )
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="commit", user_id=commit.user_id, context={"quest_id": commit.quest_id}
            )

        return persisted

    async def _update_user_state(self, cur, commit: ProgressionCommit) -> None:
        state = commit.user_state
        await cur.execute(
            """
            UPDATE user_progression
            SET total_xp = %s,
                current_level = %s,
                quests_completed = %s,
                current_streak = %s,
                longest_streak = %s,
                last_activity_date = %s,
                version = version + 1,
                updated_at = CURRENT_TIMESTAMP
            WHERE user_id = %s AND version = %s
            """,
            (
                state.total_xp,
                state.current_level,
                state.quests_completed,
                state.current_streak,
                state.longest_streak,
                state.last_activity_date,
                state.user_id,
                state.version,
            )
        )
        self._require_one_row(cur, commit, "UserProgressionState", state.user_id, state.version)

    async def _write_progress(self, cur, commit: ProgressionCommit) -> QuestProgress:
        progress = commit.progress
        record_id = f"{progress.user_id}:{progress.quest_id}"

        if progress.version == 0:
            await cur.execute(
                """
                INSERT INTO user_quest_progress (
                    status, started_at, submitted_at, completed_at, abandoned_at,
                    current_step, total_steps, xp_earned, progress_data, updated_at,
                    user_id, quest_id, version
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, 1)
                ON CONFLICT (user_id, quest_id) DO NOTHING
                """,
                _progress_params(progress) + (progress.user_id, progress.quest_id)
            )
        else:
            await cur.execute(
                """
                UPDATE user_quest_progress
                SET status = %s,
                    started_at = %s,
                    submitted_at = %s,
                    completed_at = %s,
                    abandoned_at = %s,
                    current_step = %s,
                    total_steps = %s,
                    xp_earned = %s,
                    progress_data = %s,
                    updated_at = %s,
                    version = version + 1
                WHERE user_id = %s AND quest_id = %s AND version = %s
                """,
                _progress_params(progress) + (progress.user_id, progress.quest_id, progress.version)
            )
        self._require_one_row(cur, commit, "QuestProgress", record_id, progress.version)

        return progress.model_copy(update={"version": progress.version + 1})

    @staticmethod
    def _require_one_row(cur, commit: ProgressionCommit, record_type: str, record_id: str,
                         expected_version: Optional[int] = None) -> None:
        if cur.rowcount != 1:
            raise ConflictError(
                f"{record_type} changed since snapshot",
                record_type=record_type,
                record_id=record_id,
                expected_version=expected_version,
                user_id=commit.user_id,
                operation="commit",
            )

    # ==========================================
    # Reads
    # ==========================================

    async def get_quest(self, quest_id: str) -> Optional[Quest]:
        row = await self._fetch_one(
            f"SELECT {QUEST_COLUMNS} FROM quests WHERE id = %s", (quest_id,), "get_quest"
        )
        return Quest(**row) if row else None

    async def get_progress(self, user_id: str, quest_id: str) -> Optional[QuestProgress]:
        row = await self._fetch_one(
            f"SELECT {PROGRESS_COLUMNS} FROM user_quest_progress WHERE user_id = %s AND quest_id = %s",
            (user_id, quest_id),
            "get_progress",
        )
        return QuestProgress(**row) if row else None

    async def get_user_state(self, user_id: str) -> Optional[UserProgressionState]:
        row = await self._fetch_one(
            f"SELECT {USER_COLUMNS} FROM user_progression WHERE user_id = %s", (user_id,), "get_user_state"
        )
        return UserProgressionState(**row) if row else None

    async def list_progress(
        self,
        user_id: str,
        status: Optional[ProgressStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[QuestProgress], int]:
        """
        Get one page of a user's quest progress

        Returns:
            (rows ordered by status then most recently updated, total count)
        """
        where = "WHERE user_id = %s"
        params: tuple = (user_id,)
        if status is not None:
            where += " AND status = %s"
            params += (status.value,)

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        SELECT {PROGRESS_COLUMNS}
                        FROM user_quest_progress
                        {where}
                        ORDER BY status ASC, updated_at DESC
                        LIMIT %s OFFSET %s
                        """,
                        params + (limit, offset)
                    )
                    rows = await cur.fetchall()

                    await cur.execute(f"SELECT COUNT(*) AS total FROM user_quest_progress {where}", params)
                    count_row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_progress", user_id=user_id)

        return [QuestProgress(**row) for row in rows], count_row["total"] if count_row else 0

    async def _fetch_one(self, query: str, params: tuple, operation: str) -> Optional[dict]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation=operation)
