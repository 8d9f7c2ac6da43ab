"""Weaviate client singleton — mirrors the GeminiClient pattern from client.py.

Provides a process-wide WeaviateClient that lazily connects on first use
and idempotently creates one collection per table in store.schema.ALL_TABLES.
Used by store.weaviate.WeaviateTableStore.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from urllib.parse import urlparse

import weaviate
from weaviate.classes.config import Configure, DataType, Property, Tokenization
from weaviate.classes.init import AdditionalConfig, Auth, Timeout

from .config import get_config
from .store.schema import ALL_TABLES, ColumnDef, TableDef

logger = logging.getLogger(__name__)

_client: weaviate.WeaviateClient | None = None
_schema_ensured = False
_lock = threading.Lock()

# List and object columns that Weaviate cannot filter on natively are stored as JSON text
_DATA_TYPE_MAP: dict[str, DataType] = {
    "text": DataType.TEXT,
    "text[]": DataType.TEXT_ARRAY,
    "int": DataType.INT,
    "number": DataType.NUMBER,
    "json": DataType.TEXT,
}


def _resolve_data_type(type_str: str) -> DataType:
    """Map a schema string type name to a Weaviate DataType enum value."""
    dt = _DATA_TYPE_MAP.get(type_str)
    if dt is None:
        raise ValueError(f"Unknown data type: {type_str!r}")
    return dt


def _to_property(column: ColumnDef) -> Property:
    """Convert a ColumnDef to a v4 Property object."""
    return Property(
        name=column.name,
        data_type=_resolve_data_type(column.data_type),
        description=column.description or None,
        skip_vectorization=not column.vectorize,
        index_filterable=True,
        index_range_filters=column.data_type in ("int", "number"),
        index_searchable=column.vectorize,
        tokenization=Tokenization.FIELD if column.exact else None,
    )


_TIMEOUT = Timeout(init=30, query=60, insert=120)
_ADDITIONAL_CONFIG = AdditionalConfig(timeout=_TIMEOUT)


def _connect(url: str, api_key: str) -> weaviate.WeaviateClient:
    """Connect to Weaviate using the appropriate method for the URL scheme.

    Supports:
        - WCS cloud clusters (https://*.weaviate.network, etc.)
        - Local instances (http://localhost:*, http://127.0.0.1:*)
        - Custom deployments (any other URL)
    """
    parsed = urlparse(url)
    host = parsed.hostname or ""
    is_local = host in ("localhost", "127.0.0.1", "::1") or host.startswith("192.168.")

    if is_local:
        port = parsed.port or 8080
        return weaviate.connect_to_local(
            host=host,
            port=port,
            grpc_port=port + 1,  # convention: gRPC on HTTP port + 1
            additional_config=_ADDITIONAL_CONFIG,
        )

    if parsed.scheme == "https":
        return weaviate.connect_to_weaviate_cloud(
            cluster_url=url,
            auth_credentials=Auth.api_key(api_key) if api_key else None,
            additional_config=_ADDITIONAL_CONFIG,
        )

    return weaviate.connect_to_custom(
        http_host=host,
        http_port=parsed.port or 8080,
        http_secure=False,
        grpc_host=host,
        grpc_port=(parsed.port or 8080) + 1,
        grpc_secure=False,
        auth_credentials=Auth.api_key(api_key) if api_key else None,
        additional_config=_ADDITIONAL_CONFIG,
    )


class WeaviateClient:
    """Process-wide Weaviate client singleton (single cluster, not a pool).

    All methods are classmethods operating on module-level _client state.
    Thread-safe via _lock for concurrent asyncio.to_thread usage.
    """

    @classmethod
    def get(cls) -> weaviate.WeaviateClient:
        """Return (or create) the shared Weaviate client.

        Raises:
            ValueError: If WEAVIATE_URL is not configured.
            ConnectionError: If the cluster is unreachable.
        """
        global _client, _schema_ensured
        cfg = get_config()
        if not cfg.weaviate_url:
            raise ValueError("WEAVIATE_URL not configured")

        with _lock:
            if _client is None:
                _client = _connect(cfg.weaviate_url, cfg.weaviate_api_key)
                logger.info("Connected to Weaviate at %s", cfg.weaviate_url)

            if not _schema_ensured:
                cls.ensure_collections()
                _schema_ensured = True

        return _client

    @classmethod
    def ensure_collections(cls) -> None:
        """Create missing collections and add missing properties (additive only)."""
        if _client is None:
            return

        existing = set(_client.collections.list_all().keys())
        for table in ALL_TABLES.values():
            if table.collection not in existing:
                _client.collections.create(
                    name=table.collection,
                    description=table.description,
                    properties=[_to_property(c) for c in table.columns],
                    vector_config=Configure.Vectors.text2vec_weaviate(),
                )
                logger.info("Created Weaviate collection: %s", table.collection)
            else:
                cls._evolve_collection(table)

    @classmethod
    def _evolve_collection(cls, table: TableDef) -> None:
        col = _client.collections.get(table.collection)
        existing_props = {p.name for p in col.config.get().properties}

        for column in table.columns:
            if column.name in existing_props:
                continue
            col.config.add_property(_to_property(column))
            logger.info("Added property %s.%s", table.collection, column.name)

    @classmethod
    def close(cls) -> None:
        """Close the shared client connection."""
        global _client, _schema_ensured
        with _lock:
            if _client is not None:
                try:
                    _client.close()
                except Exception as exc:
                    logger.warning("Error closing Weaviate client: %s", exc)
                _client = None
                _schema_ensured = False
                logger.info("Closed Weaviate client")

    @classmethod
    async def aclose(cls) -> None:
        """Async wrapper for close — runs in thread to avoid blocking."""
        await asyncio.to_thread(cls.close)

    @classmethod
    def reset(cls) -> None:
        """Reset singleton state (testing utility)."""
        global _client, _schema_ensured
        _client = None
        _schema_ensured = False
