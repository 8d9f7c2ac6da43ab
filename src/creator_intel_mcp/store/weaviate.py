"""Weaviate-backed table store.

Each table maps to one collection (see ``store.schema``). Object UUIDs are
derived from the table's key columns with ``generate_uuid5``, so batch
inserts of an existing key overwrite the stored object.

Weaviate has no multi-object transactions, so ``replace`` inserts the new
generation first and only then deletes older generations. A reader that
lands between the two steps sees both generations and keeps the newest
(``store.base.latest_generation``); it never sees an empty topic set.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence

import weaviate.util
from weaviate.classes.data import DataObject
from weaviate.classes.query import Filter

from ..weaviate_client import WeaviateClient
from .base import Eq, Row, key_of, tag_generation
from .schema import TableDef, get_table

logger = logging.getLogger(__name__)

# Weaviate's default QUERY_MAXIMUM_RESULTS
_FETCH_LIMIT = 10_000


def _object_uuid(table: TableDef, row: Row) -> str:
    key = ":".join(str(part) for part in key_of(row, table.key))
    return str(weaviate.util.generate_uuid5(f"{table.name}:{key}"))


def _encode(table: TableDef, row: Row) -> dict:
    props: dict = {}
    for col in table.columns:
        value = row.get(col.name)
        if value is None:
            continue
        props[col.name] = json.dumps(value) if col.data_type == "json" else value
    return props


def _decode(table: TableDef, props: dict, columns: Sequence[str]) -> Row:
    row: Row = {}
    for name in columns:
        value = props.get(name)
        col = table.column(name)
        if col is not None and col.data_type == "json" and isinstance(value, str):
            value = json.loads(value)
        row[name] = value
    return row


class WeaviateTableStore:
    """Table store over the shared ``WeaviateClient`` connection."""

    def _collection(self, table: TableDef):
        return WeaviateClient.get().collections.get(table.collection)

    def _select_sync(self, table_name: str, columns: Sequence[str] | None, eq: Eq) -> list[Row]:
        table = get_table(table_name)
        wanted = list(columns) if columns is not None else table.column_names
        column, value = eq
        response = self._collection(table).query.fetch_objects(
            filters=Filter.by_property(column).equal(value),
            limit=_FETCH_LIMIT,
            return_properties=wanted,
        )
        return [_decode(table, obj.properties, wanted) for obj in response.objects]

    def _insert_sync(self, table_name: str, rows: Sequence[Row]) -> None:
        if not rows:
            return
        table = get_table(table_name)
        objects = [DataObject(properties=_encode(table, r), uuid=_object_uuid(table, r)) for r in rows]
        result = self._collection(table).data.insert_many(objects)
        if result.has_errors:
            first = next(iter(result.errors.values()))
            raise RuntimeError(
                f"{len(result.errors)} of {len(objects)} objects failed in {table.collection}: {first.message}"
            )

    def _delete_sync(self, table_name: str, where) -> int:
        table = get_table(table_name)
        result = self._collection(table).data.delete_many(where=where)
        return result.successful

    async def select(self, table: str, columns: Sequence[str] | None = None, *, eq: Eq) -> list[Row]:
        return await asyncio.to_thread(self._select_sync, table, columns, eq)

    async def upsert(self, table: str, rows: Sequence[Row], *, on_conflict: Sequence[str]) -> None:
        """Batch-write rows. Object identity comes from the table key, so *on_conflict* must match it."""
        if tuple(on_conflict) != get_table(table).key:
            raise ValueError(f"on_conflict {tuple(on_conflict)} does not match key of {table}")
        await asyncio.to_thread(self._insert_sync, table, rows)

    async def delete(self, table: str, *, eq: Eq) -> int:
        column, value = eq
        return await asyncio.to_thread(self._delete_sync, table, Filter.by_property(column).equal(value))

    async def insert(self, table: str, rows: Sequence[Row]) -> None:
        await asyncio.to_thread(self._insert_sync, table, rows)

    async def replace(self, table: str, rows: Sequence[Row], *, eq: Eq, generation: int) -> None:
        column, value = eq
        await asyncio.to_thread(self._insert_sync, table, tag_generation(rows, generation))
        older = Filter.by_property(column).equal(value) & Filter.by_property("generation").less_than(generation)
        removed = await asyncio.to_thread(self._delete_sync, table, older)
        logger.debug("Swapped %s to generation %d, removed %d stale rows", table, generation, removed)

    async def close(self) -> None:
        await WeaviateClient.aclose()
