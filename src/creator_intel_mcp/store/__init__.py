"""Table store backends and the process-wide store factory."""

from __future__ import annotations

import logging

from ..config import get_config
from .base import TableStore, latest_generation
from .memory import MemoryTableStore
from .schema import TOPIC_GRAPH_TABLE, VIDEO_INTELLIGENCE_TABLE

logger = logging.getLogger(__name__)

_store: TableStore | None = None


def get_store() -> TableStore:
    """Return (or create) the store selected by ``INTEL_STORE_BACKEND``."""
    global _store
    if _store is not None:
        return _store

    cfg = get_config()
    if cfg.store_backend == "weaviate":
        from .weaviate import WeaviateTableStore

        _store = WeaviateTableStore()
    elif cfg.store_backend == "sqlite":
        from .sqlite import SQLiteTableStore

        _store = SQLiteTableStore(cfg.sqlite_path)
    else:
        _store = MemoryTableStore()
    logger.info("Using %s table store", cfg.store_backend)
    return _store


async def close_store() -> None:
    """Close and forget the shared store."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def reset_store() -> None:
    """Forget the shared store without closing it (testing utility)."""
    global _store
    _store = None


__all__ = [
    "MemoryTableStore",
    "TOPIC_GRAPH_TABLE",
    "TableStore",
    "VIDEO_INTELLIGENCE_TABLE",
    "close_store",
    "get_store",
    "latest_generation",
    "reset_store",
]
