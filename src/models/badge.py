"""Badge models for gamification"""
from enum import Enum
from pydantic import BaseModel
from datetime import datetime


class BadgeType(str, Enum):
    """What kind of activity a badge rewards"""
    COMPLETION = "COMPLETION"
    STREAK = "STREAK"
    LEVEL = "LEVEL"
    SPECIAL = "SPECIAL"


class BadgeRarity(str, Enum):
    """Badge rarity tiers"""
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Badge(BaseModel):
    """Badge definition"""
    id: str
    name: str
    description: str
    icon: str
    badge_type: BadgeType
    rarity: BadgeRarity


class UserBadge(BaseModel):
    """User's unlocked badge"""
    user_id: str
    badge_id: str
    unlocked_at: datetime
