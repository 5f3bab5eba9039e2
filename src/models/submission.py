"""Quest submission models

Submission content is validated by the submission collaborator; the engine
only looks at ownership and approval status.
"""
from enum import Enum
from typing import Any, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class SubmissionType(str, Enum):
    PHOTO = "PHOTO"
    VIDEO = "VIDEO"
    TEXT = "TEXT"
    CHECKLIST = "CHECKLIST"


class SubmissionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Submission(BaseModel):
    """Proof of quest completion"""
    id: str
    user_id: str
    quest_id: str
    type: SubmissionType
    caption: str = Field(min_length=1, max_length=500)
    privacy: str = "public"  # public, private
    status: SubmissionStatus = SubmissionStatus.PENDING
    approved_at: Optional[datetime] = None
    payload: Optional[dict[str, Any]] = None  # text, media urls, checklist, location

    @property
    def is_approved(self) -> bool:
        return self.status == SubmissionStatus.APPROVED
