"""In-process table store, the default backend for local runs and tests."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Sequence

from .base import Eq, Row, key_of, project, tag_generation
from .schema import get_table

logger = logging.getLogger(__name__)


class MemoryTableStore:
    """Dict-of-lists store. Rows are deep-copied on the way in and out.

    Every mutation builds the new table list first and publishes it with a
    single assignment under ``_lock``, so a concurrent reader sees either the
    old list or the new one.
    """

    def __init__(self) -> None:
        self._tables: dict[str, list[Row]] = {}
        self._lock = asyncio.Lock()

    def _rows(self, table: str) -> list[Row]:
        get_table(table)
        return self._tables.get(table, [])

    async def select(self, table: str, columns: Sequence[str] | None = None, *, eq: Eq) -> list[Row]:
        column, value = eq
        return [
            project(copy.deepcopy(row), columns)
            for row in self._rows(table)
            if row.get(column) == value
        ]

    async def upsert(self, table: str, rows: Sequence[Row], *, on_conflict: Sequence[str]) -> None:
        async with self._lock:
            current = list(self._rows(table))
            index = {key_of(row, on_conflict): i for i, row in enumerate(current)}
            for row in rows:
                key = key_of(row, on_conflict)
                if key in index:
                    current[index[key]] = copy.deepcopy(row)
                else:
                    index[key] = len(current)
                    current.append(copy.deepcopy(row))
            self._tables[table] = current

    async def delete(self, table: str, *, eq: Eq) -> int:
        column, value = eq
        async with self._lock:
            current = self._rows(table)
            kept = [row for row in current if row.get(column) != value]
            self._tables[table] = kept
            return len(current) - len(kept)

    async def insert(self, table: str, rows: Sequence[Row]) -> None:
        key = get_table(table).key
        async with self._lock:
            current = list(self._rows(table))
            existing = {key_of(row, key) for row in current}
            for row in rows:
                row_key = key_of(row, key)
                if row_key in existing:
                    raise ValueError(f"Duplicate key {row_key} in {table}")
                existing.add(row_key)
                current.append(copy.deepcopy(row))
            self._tables[table] = current

    async def replace(self, table: str, rows: Sequence[Row], *, eq: Eq, generation: int) -> None:
        column, value = eq
        async with self._lock:
            kept = [row for row in self._rows(table) if row.get(column) != value]
            self._tables[table] = kept + copy.deepcopy(tag_generation(rows, generation))
        logger.debug("Replaced %d rows in %s where %s=%r", len(rows), table, column, value)

    async def close(self) -> None:
        return None
