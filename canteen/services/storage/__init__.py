"""
Storage Factory

Provides a single entry point for obtaining the storage backend.
The factory pattern keeps the order service agnostic about where
accounts and orders live.

Usage:
    from canteen.services.storage import get_storage

    # Returns MemoryStorage or DatabaseStorage based on STORAGE_BACKEND
    storage = get_storage()
    await storage.init()

Backend Switching:
    - STORAGE_BACKEND=database → DatabaseStorage (DATABASE_URL)
    - STORAGE_BACKEND=memory → MemoryStorage (no persistence)
"""

import logging
from functools import lru_cache

from canteen.core.config import StorageBackend, get_settings
from canteen.services.storage.base import (
    AccountRecord,
    BaseCollection,
    BaseStorage,
    DuplicateKeyError,
    OrderRecord,
)
from canteen.services.storage.memory import MemoryStorage

logger = logging.getLogger(__name__)


@lru_cache()
def get_storage() -> BaseStorage:
    """
    Get the configured storage instance.

    The instance is cached so every request shares one engine and
    connection pool (or one in-memory data set).

    Returns:
        BaseStorage: Configured storage backend
    """
    settings = get_settings()

    if settings.storage_backend == StorageBackend.MEMORY:
        logger.info("Storage: Using MemoryStorage")
        return MemoryStorage()

    # Imported here so the memory backend works without a database driver
    from canteen.services.storage.database import DatabaseStorage

    logger.info("Storage: Using DatabaseStorage")
    return DatabaseStorage(settings.database_url, echo=settings.database_echo)


def reset_storage() -> None:
    """
    Clear the cached storage instance.

    Useful for testing or when configuration changes at runtime.
    The next call to get_storage() will create a new instance.
    """
    get_storage.cache_clear()
    logger.debug("Storage cache cleared")


__all__ = [
    "get_storage",
    "reset_storage",
    "AccountRecord",
    "BaseCollection",
    "BaseStorage",
    "DuplicateKeyError",
    "OrderRecord",
    "MemoryStorage",
]
