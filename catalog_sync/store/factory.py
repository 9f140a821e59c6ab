# catalog_sync/store/factory.py
from __future__ import annotations

import logging

from catalog_sync.config import settings
from catalog_sync.store.base import StoreAdapter

logger = logging.getLogger("uvicorn.error")


def build_store(backend: str | None = None) -> StoreAdapter:
    """Pick the store adapter named by STORE_BACKEND (memory | sql | rest)."""
    backend = (backend or settings.STORE_BACKEND or "memory").lower()
    if backend == "sql":
        from catalog_sync.db import get_sessionmaker
        from catalog_sync.store.sql_store import SqlStore
        store: StoreAdapter = SqlStore(get_sessionmaker())
    elif backend == "rest":
        from catalog_sync.store.rest_store import RestStore
        if not settings.STORE_URL or not settings.STORE_API_KEY:
            raise ValueError("STORE_URL and STORE_API_KEY must be set for the rest backend")
        store = RestStore()
    elif backend == "memory":
        from catalog_sync.store.memory_store import MemoryStore
        store = MemoryStore()
    else:
        raise ValueError(f"Unknown STORE_BACKEND {backend!r}")
    logger.info("[STORE] using %s backend", backend)
    return store
