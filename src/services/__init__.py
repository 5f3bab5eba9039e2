"""
Service Layer Package

Separates callers (transport handlers, jobs) from the progression engine and
its storage.

- ServiceContainer: lazy wiring of store, coordinator and services
- QuestProgressService: quest actions and queries with typed results
"""

from src.services.container import ServiceContainer, get_container, init_container, reset_container
from src.services.quest_progress_service import QuestProgressService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "reset_container",
    "QuestProgressService",
]
