"""Result models returned by the progression engine"""
from typing import Generic, Optional, TypeVar
from datetime import date, datetime, timezone
from pydantic import BaseModel, Field

from src.models.badge import Badge
from src.models.progress import ProgressStatus, QuestProgress
from src.models.quest import Quest
from src.models.submission import Submission

T = TypeVar("T")


class Rewards(BaseModel):
    """Outcome of a quest completion"""
    xp_gained: int
    base_xp: int
    bonus_xp: int
    leveled_up: bool
    new_level: int
    new_total_xp: int
    streak_increased: bool
    new_streak: int
    unlocked_badges: list[Badge] = Field(default_factory=list)


class CompletionResult(BaseModel):
    progress: QuestProgress
    rewards: Rewards


class SubmissionResult(BaseModel):
    """Rewards are None while the submission still awaits approval"""
    submission: Submission
    progress: QuestProgress
    rewards: Optional[Rewards] = None


class ProgressView(BaseModel):
    """Progress for a quest, including the implicit NOT_STARTED state"""
    status: ProgressStatus
    quest: Quest
    progress: Optional[QuestProgress] = None


class UserStats(BaseModel):
    total_xp: int
    current_level: int
    xp_for_next_level: int
    xp_in_current_level: int
    xp_to_next_level: int
    xp_progress: float  # percent of the current level, capped at 100
    quests_completed: int
    current_streak: int
    longest_streak: int
    last_activity_date: Optional[date] = None


class QuestPage(BaseModel):
    items: list[QuestProgress]
    page: int
    limit: int
    total: int
    pages: int


class ErrorInfo(BaseModel):
    code: str
    message: str
    user_message: str
    request_id: str


class ActionResult(BaseModel, Generic[T]):
    """Typed envelope so callers can map failures to transport codes"""
    success: bool
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
