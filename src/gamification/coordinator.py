"""
Progression Coordinator

Single entry point for quest actions. Each action:
1. Takes the per-user lock (serializes actions of one user in this process)
2. Loads a snapshot (user aggregate, quest, progress row, badge ids)
3. Computes the complete write set with the pure engine functions
4. Commits it in one conditional write

A stale snapshot (another process wrote first) raises ConflictError from the
store and the whole cycle re-runs, up to COMMIT_MAX_ATTEMPTS times. Nothing
is written on any error path.
"""

import asyncio
import logging
import math
import weakref
from datetime import datetime
from typing import Callable, Iterable, Optional, Tuple, Union

from src.config import AUTO_APPROVE_SUBMISSIONS
from src.db.store import ProgressionCommit, ProgressionSnapshot, ProgressionStore
from src.exceptions import AuthenticationError, NotFoundError, QuestEngineError, ValidationError
from src.gamification.achievement_system import BADGE_CATALOG, BadgeRule, evaluate_badges
from src.gamification.state_machine import ProgressAction, apply_transition
from src.gamification.streak_system import calculate_next_streak
from src.gamification.xp_system import calculate_level_from_xp, calculate_quest_reward, get_level_info
from src.models.badge import UserBadge
from src.models.progress import ProgressStatus, QuestProgress, XPLogEntry
from src.models.results import (
    CompletionResult,
    ProgressView,
    QuestPage,
    Rewards,
    SubmissionResult,
    UserStats,
)
from src.models.submission import Submission, SubmissionStatus
from src.resilience.metrics import record_action, record_conflict_retry, record_rewards
from src.resilience.retry import retry_with_backoff
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# A plan turns a snapshot into a write set plus the rewards it grants
Plan = Callable[[ProgressionSnapshot, datetime], Tuple[ProgressionCommit, Optional[Rewards]]]


class ProgressionCoordinator:
    """
    Orchestrates quest progress transitions, scoring, streaks and badges
    against a ProgressionStore.
    """

    def __init__(
        self,
        store: ProgressionStore,
        *,
        max_attempts: Optional[int] = None,
        auto_approve_submissions: bool = AUTO_APPROVE_SUBMISSIONS,
        clock: Callable[[], datetime] = now_utc,
        badge_catalog: Iterable[BadgeRule] = BADGE_CATALOG,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.auto_approve_submissions = auto_approve_submissions
        self.clock = clock
        self.badge_catalog = tuple(badge_catalog)
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ==========================================
    # Actions
    # ==========================================

    async def start_quest(self, user_id: str, quest_id: str) -> QuestProgress:
        """Start a quest, or restart an abandoned one"""
        def plan(snapshot: ProgressionSnapshot, now: datetime):
            progress = apply_transition(
                snapshot.progress, ProgressAction.START, user_id=user_id, quest=snapshot.quest, now=now
            )
            return ProgressionCommit(user_id=user_id, quest_id=quest_id, progress=progress), None

        progress, _ = await self._run(ProgressAction.START, user_id, quest_id, plan)
        logger.info(f"User {user_id} started quest {quest_id}")
        return progress

    async def submit_quest(
        self,
        user_id: str,
        quest_id: str,
        submission: Optional[Submission],
    ) -> SubmissionResult:
        """
        Submit proof for a quest in progress

        An approved submission (or a pending one when auto-approval is on)
        completes the quest and awards rewards in the same write. Otherwise
        the quest stays SUBMITTED until complete_quest is called.
        """
        self._require_identity(user_id)
        submission = self._check_submission(user_id, quest_id, submission)

        def plan(snapshot: ProgressionSnapshot, now: datetime):
            submitted = apply_transition(
                snapshot.progress, ProgressAction.SUBMIT, user_id=user_id, quest=snapshot.quest, now=now
            )
            if not submission.is_approved:
                return ProgressionCommit(user_id=user_id, quest_id=quest_id, progress=submitted), None
            return self._plan_completion(snapshot, submitted, now)

        progress, rewards = await self._run(ProgressAction.SUBMIT, user_id, quest_id, plan)

        if rewards is None:
            logger.info(f"User {user_id} submitted quest {quest_id}; awaiting approval")

        return SubmissionResult(submission=submission, progress=progress, rewards=rewards)

    async def complete_quest(self, user_id: str, quest_id: str) -> CompletionResult:
        """Complete a quest that is in progress or submitted and award rewards"""
        def plan(snapshot: ProgressionSnapshot, now: datetime):
            return self._plan_completion(snapshot, snapshot.progress, now)

        progress, rewards = await self._run(ProgressAction.COMPLETE, user_id, quest_id, plan)
        return CompletionResult(progress=progress, rewards=rewards)

    async def abandon_quest(self, user_id: str, quest_id: str) -> QuestProgress:
        def plan(snapshot: ProgressionSnapshot, now: datetime):
            progress = apply_transition(
                snapshot.progress, ProgressAction.ABANDON, user_id=user_id, quest=snapshot.quest, now=now
            )
            return ProgressionCommit(user_id=user_id, quest_id=quest_id, progress=progress), None

        progress, _ = await self._run(ProgressAction.ABANDON, user_id, quest_id, plan)
        logger.info(f"User {user_id} abandoned quest {quest_id}")
        return progress

    # ==========================================
    # Queries
    # ==========================================

    async def get_progress(self, user_id: str, quest_id: str) -> ProgressView:
        """Progress for a quest; NOT_STARTED when the user never started it"""
        self._require_identity(user_id)
        self._require_quest_id(user_id, quest_id)

        quest = await self.store.get_quest(quest_id)
        if quest is None:
            raise NotFoundError("Quest not found", record_type="Quest", record_id=quest_id, user_id=user_id)

        progress = await self.store.get_progress(user_id, quest_id)
        if progress is None:
            return ProgressView(status=ProgressStatus.NOT_STARTED, quest=quest)
        return ProgressView(status=progress.status, quest=quest, progress=progress)

    async def get_user_stats(self, user_id: str) -> UserStats:
        self._require_identity(user_id)

        state = await self.store.get_user_state(user_id)
        if state is None:
            raise NotFoundError("User not found", record_type="User", record_id=user_id, user_id=user_id)

        level_info = get_level_info(state.total_xp)
        xp_progress = min(level_info["xp_in_current_level"] / level_info["xp_for_next_level"] * 100, 100.0)

        return UserStats(
            total_xp=state.total_xp,
            current_level=level_info["current_level"],
            xp_for_next_level=level_info["xp_for_next_level"],
            xp_in_current_level=level_info["xp_in_current_level"],
            xp_to_next_level=level_info["xp_to_next_level"],
            xp_progress=round(xp_progress, 2),
            quests_completed=state.quests_completed,
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            last_activity_date=state.last_activity_date,
        )

    async def list_user_quests(
        self,
        user_id: str,
        status: Optional[Union[ProgressStatus, str]] = None,
        page: int = 1,
        limit: int = 20,
    ) -> QuestPage:
        """List a user's quest progress, optionally filtered by status ('all' = no filter)"""
        self._require_identity(user_id)

        if page < 1:
            raise ValidationError("Page must be at least 1", field="page", value=page, user_id=user_id)
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"Limit must be between 1 and {MAX_PAGE_SIZE}", field="limit", value=limit, user_id=user_id
            )

        status_filter = None
        if status is not None and status != "all":
            try:
                status_filter = ProgressStatus(status)
            except ValueError:
                raise ValidationError("Unknown progress status", field="status", value=status, user_id=user_id)

        items, total = await self.store.list_progress(
            user_id, status=status_filter, limit=limit, offset=(page - 1) * limit
        )

        return QuestPage(
            items=items,
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        )

    # ==========================================
    # Internals
    # ==========================================

    async def _run(
        self,
        action: ProgressAction,
        user_id: str,
        quest_id: str,
        plan: Plan,
    ) -> Tuple[QuestProgress, Optional[Rewards]]:
        self._require_identity(user_id)
        self._require_quest_id(user_id, quest_id)

        try:
            async with self._lock_for(user_id):
                result = await retry_with_backoff(
                    self._attempt,
                    user_id,
                    quest_id,
                    plan,
                    max_attempts=self.max_attempts,
                    on_retry=lambda attempt, error: record_conflict_retry(action.value),
                )
        except QuestEngineError as e:
            record_action(action.value, e.error_code)
            raise

        record_action(action.value, "success")
        return result

    async def _attempt(
        self,
        user_id: str,
        quest_id: str,
        plan: Plan,
    ) -> Tuple[QuestProgress, Optional[Rewards]]:
        """One read-compute-commit cycle"""
        snapshot = await self.store.load_user_and_progress(user_id, quest_id)

        if snapshot.user is None:
            raise NotFoundError("User not found", record_type="User", record_id=user_id, user_id=user_id)
        if snapshot.quest is None:
            raise NotFoundError("Quest not found", record_type="Quest", record_id=quest_id, user_id=user_id)

        commit, rewards = plan(snapshot, self.clock())
        persisted = await self.store.commit(commit)

        if rewards is not None:
            record_rewards(rewards.xp_gained, [badge.id for badge in rewards.unlocked_badges])

        return persisted, rewards

    def _plan_completion(
        self,
        snapshot: ProgressionSnapshot,
        progress: Optional[QuestProgress],
        now: datetime,
    ) -> Tuple[ProgressionCommit, Rewards]:
        """Write set for a COMPLETE transition: progress, aggregate, quest counter, badges, XP log"""
        user = snapshot.user
        quest = snapshot.quest

        streak = calculate_next_streak(user.last_activity_date, now, user.current_streak, user.longest_streak)
        reward = calculate_quest_reward(quest, streak)

        completed = apply_transition(
            progress, ProgressAction.COMPLETE, user_id=user.user_id, quest=quest, now=now,
            xp_earned=reward.base_xp,
        )

        previous_level = calculate_level_from_xp(user.total_xp)
        new_total_xp = user.total_xp + reward.total_xp
        new_level = calculate_level_from_xp(new_total_xp)

        updated_user = user.model_copy(update={
            "total_xp": new_total_xp,
            "current_level": new_level,
            "quests_completed": user.quests_completed + 1,
            "current_streak": streak.current_streak,
            "longest_streak": streak.longest_streak,
            "last_activity_date": streak.last_activity_date,
        })

        badges = evaluate_badges(
            snapshot.badge_ids, updated_user, previous_level, quest, catalog=self.badge_catalog
        )

        description = f"Completed quest {quest.title or quest.id}"
        if reward.bonuses:
            description += " (" + ", ".join(f"{name} +{xp}" for name, xp in reward.bonuses.items()) + ")"

        commit = ProgressionCommit(
            user_id=user.user_id,
            quest_id=quest.id,
            progress=completed,
            user_state=updated_user,
            quest_completion_increment=1,
            new_badges=[
                UserBadge(user_id=user.user_id, badge_id=badge.id, unlocked_at=now) for badge in badges
            ],
            xp_log=XPLogEntry(
                user_id=user.user_id,
                amount=reward.total_xp,
                source="quest_completion",
                source_id=quest.id,
                description=description,
                created_at=now,
            ),
        )

        rewards = Rewards(
            xp_gained=reward.total_xp,
            base_xp=reward.base_xp,
            bonus_xp=reward.bonus_xp,
            leveled_up=new_level > previous_level,
            new_level=new_level,
            new_total_xp=new_total_xp,
            streak_increased=streak.increased,
            new_streak=streak.current_streak,
            unlocked_badges=badges,
        )

        logger.info(
            f"User {user.user_id} completed quest {quest.id}: +{reward.total_xp} XP "
            f"(base {reward.base_xp}, bonus {reward.bonus_xp}). Total: {new_total_xp} XP, "
            f"Level: {new_level}, Streak: {streak.current_streak}"
        )
        if rewards.leveled_up:
            logger.info(f"User {user.user_id} leveled up from {previous_level} to {new_level}!")

        return commit, rewards

    def _check_submission(
        self,
        user_id: str,
        quest_id: str,
        submission: Optional[Submission],
    ) -> Submission:
        if submission is None:
            raise NotFoundError("Submission not found", record_type="Submission", user_id=user_id)
        if submission.user_id != user_id or submission.quest_id != quest_id:
            raise ValidationError(
                "Submission does not belong to this quest",
                field="submission",
                value=submission.id,
                user_id=user_id,
            )
        if submission.status == SubmissionStatus.REJECTED:
            raise ValidationError(
                "Submission was rejected",
                field="submission_status",
                value=submission.status.value,
                user_id=user_id,
            )
        if submission.status == SubmissionStatus.PENDING and self.auto_approve_submissions:
            return submission.model_copy(update={
                "status": SubmissionStatus.APPROVED,
                "approved_at": self.clock(),
            })
        return submission

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    @staticmethod
    def _require_identity(user_id: str) -> None:
        if not user_id or not str(user_id).strip():
            raise AuthenticationError()

    @staticmethod
    def _require_quest_id(user_id: str, quest_id: str) -> None:
        if not quest_id:
            raise ValidationError("Quest ID is required", field="quest_id", user_id=user_id)
