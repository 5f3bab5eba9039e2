"""
Database queries

Module organization:
- progression.py: user progression aggregate, quests, quest progress,
  badges and XP ledger (PostgresProgressionStore)
"""

from src.db.queries.progression import PostgresProgressionStore

__all__ = [
    "PostgresProgressionStore",
]
