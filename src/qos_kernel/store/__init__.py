"""Durable store contracts and adapters."""

from __future__ import annotations

from qos_kernel.config import KernelSettings

from .base import DurableStore
from .memory import MemoryStore
from .redis_store import RedisStore
from .sqlite import DEFAULT_MIGRATIONS, Migration, SQLiteMigrationRunner, SQLiteStore


def open_store(settings: KernelSettings) -> DurableStore:
    """Build the durable store selected by ``settings.store_backend``."""
    if settings.store_backend == "sqlite":
        return SQLiteStore(settings.sqlite_path)
    if settings.store_backend == "redis":
        return RedisStore(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            key_prefix=settings.redis_key_prefix,
        )
    return MemoryStore()


__all__ = [
    "DEFAULT_MIGRATIONS",
    "DurableStore",
    "MemoryStore",
    "Migration",
    "RedisStore",
    "SQLiteMigrationRunner",
    "SQLiteStore",
    "open_store",
]
