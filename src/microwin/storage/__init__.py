"""Task persistence: one store contract, several backends."""

import logging

from .base import BaseTaskStore, StoreError, StoreReadFailed, StoreWriteFailed
from .memory import InMemoryTaskStore
from .sqlite import SQLiteTaskStore
from .redis_store import RedisTaskStore
from ..config.store_config import StoreConfig

logger = logging.getLogger(__name__)


def create_task_store(config: StoreConfig) -> BaseTaskStore:
    """
    Build the backend selected by configuration.

    Args:
        config: Store configuration

    Returns:
        Task store (call start() before first use)

    Raises:
        ValueError: Unknown backend name
    """
    backend = config.backend.lower()
    logger.debug(f"Creating {backend} task store")

    if backend == "memory":
        return InMemoryTaskStore()
    if backend == "sqlite":
        return SQLiteTaskStore(config.sqlite_path)
    if backend == "redis":
        return RedisTaskStore(config)

    raise ValueError(f"Unknown store backend: {config.backend}")


__all__ = [
    "BaseTaskStore",
    "StoreError",
    "StoreReadFailed",
    "StoreWriteFailed",
    "InMemoryTaskStore",
    "SQLiteTaskStore",
    "RedisTaskStore",
    "create_task_store",
]
