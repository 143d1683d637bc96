"""
Record Store Factory

Provides a single entry point for obtaining the record store instance.
The rest of the application only sees BaseRecordStore.

Usage:
    from plattr.services.store import get_record_store

    store = get_record_store()
    rows = await store.select("dishes", {"id": dish_id}, limit=1)

Backend Switching (STORE_BACKEND):
    - memory   → MemoryRecordStore (no network, development)
    - supabase → SupabaseRecordStore (hosted PostgREST)
    - sql      → SqlRecordStore (PostgreSQL via SQLAlchemy)
"""

import logging
from functools import lru_cache

from plattr.core.config import StoreBackend, get_settings
from plattr.services.store.base import (
    BaseRecordStore,
    Filters,
    Record,
    SortKey,
    TABLES,
)
from plattr.services.store.memory import MemoryRecordStore
from plattr.services.store.supabase import SupabaseRecordStore
from plattr.services.store.sql import SqlRecordStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_record_store() -> BaseRecordStore:
    """
    Get the configured record store instance.

    The instance is cached (singleton pattern) so the in-memory backend
    keeps its state across requests and HTTP clients are reused.

    Raises:
        ValueError: If the supabase backend is selected without credentials
    """
    settings = get_settings()

    if settings.store_backend == StoreBackend.SUPABASE:
        logger.info("Record Store: Using SupabaseRecordStore")
        return SupabaseRecordStore()
    if settings.store_backend == StoreBackend.SQL:
        logger.info("Record Store: Using SqlRecordStore")
        return SqlRecordStore()

    logger.info(
        f"Record Store: Using MemoryRecordStore ({settings.env_mode.value} mode)"
    )
    return MemoryRecordStore()


def reset_record_store() -> None:
    """
    Clear the cached record store instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_record_store.cache_clear()
    logger.debug("Record store cache cleared")


__all__ = [
    "get_record_store",
    "reset_record_store",
    "BaseRecordStore",
    "Filters",
    "Record",
    "SortKey",
    "TABLES",
    "MemoryRecordStore",
    "SupabaseRecordStore",
    "SqlRecordStore",
]
