"""Quest models"""
from enum import Enum
from pydantic import BaseModel, Field


class QuestDifficulty(str, Enum):
    """Quest difficulty levels"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EPIC = "epic"


class QuestStatus(str, Enum):
    """Quest publication status"""
    DRAFT = "DRAFT"
    AVAILABLE = "AVAILABLE"
    ARCHIVED = "ARCHIVED"


class Quest(BaseModel):
    """Quest definition (read-mostly, owned by the catalog)"""
    id: str
    title: str = ""
    difficulty: QuestDifficulty = QuestDifficulty.EASY
    status: QuestStatus = QuestStatus.AVAILABLE
    points_reward: int = Field(default=0, ge=0)
    completion_count: int = Field(default=0, ge=0)
    total_steps: int = Field(default=1, ge=1)

    @property
    def is_available(self) -> bool:
        return self.status == QuestStatus.AVAILABLE
