"""SQLite-backed table store with WAL mode.

List and object columns are stored as JSON text. The connection is shared
across worker threads and serialized by ``_lock``; every public method runs
its blocking work via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .base import Eq, Row, tag_generation
from .schema import ALL_TABLES, TableDef, get_table

logger = logging.getLogger(__name__)

_SQL_TYPES = {
    "text": "TEXT",
    "text[]": "TEXT",
    "json": "TEXT",
    "int": "INTEGER",
    "number": "REAL",
}


def _ddl(table: TableDef) -> str:
    columns = ",\n    ".join(f"{c.name} {_SQL_TYPES[c.data_type]}" for c in table.columns)
    key = ", ".join(table.key)
    return f"CREATE TABLE IF NOT EXISTS {table.name} (\n    {columns},\n    PRIMARY KEY ({key})\n);"


def _encode(table: TableDef, row: Row) -> tuple:
    values: list[Any] = []
    for col in table.columns:
        value = row.get(col.name)
        if col.data_type in ("text[]", "json") and value is not None:
            value = json.dumps(value)
        values.append(value)
    return tuple(values)


def _decode(table: TableDef, columns: Sequence[str], values: Sequence[Any]) -> Row:
    row: Row = {}
    for name, value in zip(columns, values):
        col = table.column(name)
        if col is not None and col.data_type in ("text[]", "json") and value is not None:
            value = json.loads(value)
        row[name] = value
    return row


def _checked_columns(table: TableDef, columns: Sequence[str]) -> list[str]:
    unknown = [c for c in columns if table.column(c) is None]
    if unknown:
        raise ValueError(f"Unknown columns for {table.name}: {', '.join(unknown)}")
    return list(columns)


class SQLiteTableStore:
    """Table store persisted to a single SQLite file."""

    def __init__(self, db_path: str) -> None:
        path = Path(db_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.executescript("\n".join(_ddl(t) for t in ALL_TABLES.values()))
        self._lock = threading.Lock()
        logger.info("Opened SQLite store at %s", path)

    def _insert_sql(self, table: TableDef, verb: str) -> str:
        names = ", ".join(table.column_names)
        marks = ", ".join("?" for _ in table.columns)
        return f"{verb} INTO {table.name} ({names}) VALUES ({marks})"

    def _select_sync(self, table_name: str, columns: Sequence[str] | None, eq: Eq) -> list[Row]:
        table = get_table(table_name)
        wanted = _checked_columns(table, columns) if columns is not None else table.column_names
        column, value = eq
        _checked_columns(table, [column])
        sql = f"SELECT {', '.join(wanted)} FROM {table.name} WHERE {column} = ?"
        with self._lock:
            fetched = self._conn.execute(sql, (value,)).fetchall()
        return [_decode(table, wanted, values) for values in fetched]

    def _write_sync(self, table_name: str, rows: Sequence[Row], verb: str) -> None:
        table = get_table(table_name)
        with self._lock, self._conn:
            self._conn.executemany(self._insert_sql(table, verb), [_encode(table, r) for r in rows])

    def _delete_sync(self, table_name: str, eq: Eq) -> int:
        table = get_table(table_name)
        column, value = eq
        _checked_columns(table, [column])
        with self._lock, self._conn:
            cursor = self._conn.execute(f"DELETE FROM {table.name} WHERE {column} = ?", (value,))
        return cursor.rowcount

    def _replace_sync(self, table_name: str, rows: Sequence[Row], eq: Eq, generation: int) -> None:
        table = get_table(table_name)
        column, value = eq
        _checked_columns(table, [column])
        encoded = [_encode(table, r) for r in tag_generation(rows, generation)]
        # Delete and insert commit together or not at all
        with self._lock, self._conn:
            self._conn.execute(f"DELETE FROM {table.name} WHERE {column} = ?", (value,))
            self._conn.executemany(self._insert_sql(table, "INSERT"), encoded)

    async def select(self, table: str, columns: Sequence[str] | None = None, *, eq: Eq) -> list[Row]:
        return await asyncio.to_thread(self._select_sync, table, columns, eq)

    async def upsert(self, table: str, rows: Sequence[Row], *, on_conflict: Sequence[str]) -> None:
        """Insert or replace rows. *on_conflict* must match the table's primary key."""
        if tuple(on_conflict) != get_table(table).key:
            raise ValueError(f"on_conflict {tuple(on_conflict)} does not match key of {table}")
        await asyncio.to_thread(self._write_sync, table, rows, "INSERT OR REPLACE")

    async def delete(self, table: str, *, eq: Eq) -> int:
        return await asyncio.to_thread(self._delete_sync, table, eq)

    async def insert(self, table: str, rows: Sequence[Row]) -> None:
        await asyncio.to_thread(self._write_sync, table, rows, "INSERT")

    async def replace(self, table: str, rows: Sequence[Row], *, eq: Eq, generation: int) -> None:
        await asyncio.to_thread(self._replace_sync, table, rows, eq, generation)

    async def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
