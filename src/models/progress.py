"""Quest progress and user progression models"""
from enum import Enum
from typing import Any, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field


class ProgressStatus(str, Enum):
    """Quest progress lifecycle states"""
    NOT_STARTED = "NOT_STARTED"  # implicit: no row exists
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class QuestProgress(BaseModel):
    """Per-(user, quest) lifecycle record"""
    user_id: str
    quest_id: str
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    abandoned_at: Optional[datetime] = None
    current_step: int = Field(default=0, ge=0)
    total_steps: int = Field(default=1, ge=1)
    xp_earned: int = Field(default=0, ge=0)
    progress_data: Optional[dict[str, Any]] = None  # opaque, passed through unvalidated
    updated_at: Optional[datetime] = None
    version: int = Field(default=0, ge=0)  # 0 = row not persisted yet


class UserProgressionState(BaseModel):
    """Per-user aggregate shared by all of the user's quests"""
    user_id: str
    total_xp: int = Field(default=0, ge=0)
    current_level: int = Field(default=1, ge=1)
    quests_completed: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_activity_date: Optional[date] = None
    version: int = Field(default=0, ge=0)


class XPLogEntry(BaseModel):
    """Append-only record of a single XP award"""
    user_id: str
    amount: int = Field(ge=0)
    source: str
    source_id: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
