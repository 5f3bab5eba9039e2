"""
Service Container - Dependency Injection Container

Simple DI container for the progression store, coordinator and service.
Uses lazy loading to only instantiate them when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from src.config import PROGRESSION_STORE

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    Infrastructure dependencies (db, store backend) are injected.
    """

    # Infrastructure dependencies (injected)
    db: object  # Database instance (used by the postgres backend)
    store_backend: str = PROGRESSION_STORE  # 'postgres' or 'memory'

    # Services (lazy-loaded via properties)
    _progression_store: Optional[object] = field(default=None, init=False, repr=False)
    _coordinator: Optional[object] = field(default=None, init=False, repr=False)
    _quest_progress_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def progression_store(self):
        """Get the ProgressionStore for the configured backend (lazy-loaded)"""
        if self._progression_store is None:
            if self.store_backend == "memory":
                from src.db.memory_store import InMemoryProgressionStore
                self._progression_store = InMemoryProgressionStore()
            else:
                from src.db.queries import PostgresProgressionStore
                self._progression_store = PostgresProgressionStore(self.db)
            logger.debug(f"{type(self._progression_store).__name__} instantiated")
        return self._progression_store

    @property
    def coordinator(self):
        """Get ProgressionCoordinator instance (lazy-loaded)"""
        if self._coordinator is None:
            from src.gamification.coordinator import ProgressionCoordinator
            self._coordinator = ProgressionCoordinator(self.progression_store)
            logger.debug("ProgressionCoordinator instantiated")
        return self._coordinator

    @property
    def quest_progress_service(self):
        """Get QuestProgressService instance (lazy-loaded)"""
        if self._quest_progress_service is None:
            from src.services.quest_progress_service import QuestProgressService
            self._quest_progress_service = QuestProgressService(self.coordinator)
            logger.debug("QuestProgressService instantiated")
        return self._quest_progress_service


# Global container instance (initialized in main.py)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() in main.py before using services."
        )
    return _container


def init_container(db: object, store_backend: str = PROGRESSION_STORE) -> ServiceContainer:
    """
    Initialize the global service container.

    Should be called once in main.py after infrastructure setup.

    Args:
        db: Database connection instance
        store_backend: 'postgres' or 'memory'

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(db=db, store_backend=store_backend)

    logger.info(f"Service container initialized ({store_backend} store)")
    return _container


def reset_container() -> None:
    """Drop the global container (used on shutdown and in tests)"""
    global _container
    _container = None
