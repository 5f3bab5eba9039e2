"""Global test fixtures and utilities for quest engine tests"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, date, timezone

from src.db.connection import Database
from src.db.memory_store import InMemoryProgressionStore
from src.gamification.coordinator import ProgressionCoordinator
from src.models.quest import Quest, QuestDifficulty, QuestStatus
from src.models.submission import Submission, SubmissionType


# ============================================================================
# Clock Fixtures
# ============================================================================

FIXED_NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock for deterministic timestamps"""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


# ============================================================================
# User & Quest Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


@pytest.fixture
def easy_quest():
    return Quest(
        id="quest-easy",
        title="Morning Walk",
        difficulty=QuestDifficulty.EASY,
        points_reward=50,
        total_steps=3,
    )


@pytest.fixture
def epic_quest():
    return Quest(
        id="quest-epic",
        title="Climb a Mountain",
        difficulty=QuestDifficulty.EPIC,
        points_reward=200,
    )


@pytest.fixture
def draft_quest():
    return Quest(id="quest-draft", title="Not Ready", status=QuestStatus.DRAFT, points_reward=10)


# ============================================================================
# Store & Coordinator Fixtures
# ============================================================================

@pytest.fixture
def memory_store(test_user_id, easy_quest, epic_quest, draft_quest):
    """In-memory store seeded with one user and three quests"""
    store = InMemoryProgressionStore()
    store.add_user(test_user_id)
    store.add_quest(easy_quest)
    store.add_quest(epic_quest)
    store.add_quest(draft_quest)
    return store


@pytest.fixture
def coordinator(memory_store, clock):
    return ProgressionCoordinator(memory_store, clock=clock, auto_approve_submissions=True)


@pytest.fixture
def no_retry_delay(monkeypatch):
    """Remove backoff sleeps from conflict retries"""
    monkeypatch.setattr("src.resilience.retry.BASE_DELAY", 0.0)


@pytest.fixture
def make_submission():
    """Factory for submissions; defaults to a PENDING text submission"""
    def _make(user_id: str, quest_id: str, **overrides) -> Submission:
        fields = {
            "id": "sub-1",
            "user_id": user_id,
            "quest_id": quest_id,
            "type": SubmissionType.TEXT,
            "caption": "Done!",
        }
        fields.update(overrides)
        return Submission(**fields)
    return _make


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor; rowcount defaults to one affected row"""
    cursor = AsyncMock()
    cursor.execute = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.rowcount = 1
    return cursor


@pytest.fixture
def mock_db_connection(mock_db_cursor):
    """Mock connection whose cursor() and transaction() are async context managers"""
    conn = MagicMock()
    conn.cursor.return_value.__aenter__ = AsyncMock(return_value=mock_db_cursor)
    conn.cursor.return_value.__aexit__ = AsyncMock(return_value=False)
    conn.transaction.return_value.__aenter__ = AsyncMock(return_value=None)
    conn.transaction.return_value.__aexit__ = AsyncMock(return_value=False)
    return conn


@pytest.fixture
def mock_database(mock_db_connection):
    """Database whose connection() yields mock_db_connection instead of a pooled one"""
    database = Database("postgresql://test")
    pooled = MagicMock()
    pooled.__aenter__ = AsyncMock(return_value=mock_db_connection)
    pooled.__aexit__ = AsyncMock(return_value=False)
    database.connection = MagicMock(return_value=pooled)
    return database


@pytest.fixture
def today():
    return FIXED_NOW.date()


@pytest.fixture
def yesterday():
    return date(2024, 3, 14)
