"""Main entry point for the quest progression engine"""
import logging
import asyncio
from typing import Optional
from src.config import validate_config, LOG_LEVEL, PROGRESSION_STORE
from src.db.connection import db
from src.services.container import ServiceContainer, init_container, reset_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


async def create_engine(store_backend: Optional[str] = None) -> ServiceContainer:
    """
    Validate configuration, open the database pool if needed and wire services.

    Args:
        store_backend: 'postgres' or 'memory' (default: PROGRESSION_STORE)

    Returns:
        ServiceContainer with the progression store, coordinator and service
    """
    backend = store_backend or PROGRESSION_STORE

    # Validate configuration
    logger.info("Validating configuration...")
    validate_config()

    if backend == "postgres":
        logger.info("Initializing database connection pool...")
        await db.init_pool()

    container = init_container(db, store_backend=backend)
    logger.info("Quest progression engine ready")
    return container


async def shutdown_engine(container: ServiceContainer) -> None:
    """Close the database pool and drop the global container"""
    if container.store_backend == "postgres":
        logger.info("Closing database connection...")
        await db.close_pool()

    reset_container()
    logger.info("Shutdown complete")


async def main() -> None:
    """Main application entry point"""
    container = None
    try:
        container = await create_engine()

        logger.info("Engine is running. Press Ctrl+C to stop.")

        # Keep running until interrupted
        await asyncio.Event().wait()

    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
    finally:
        if container:
            await shutdown_engine(container)


if __name__ == "__main__":
    asyncio.run(main())
