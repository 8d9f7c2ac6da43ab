"""Tabular store interface consumed by the sync and ranking code.

A row is a plain ``dict`` keyed by column name. Filters are a single
``(column, value)`` equality pair. Every backend raises on failure; the
callers wrap failures in ``StoreError`` with an operation-specific message.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]
Eq = tuple[str, Any]


@runtime_checkable
class TableStore(Protocol):
    """Minimal select / upsert / delete / insert / replace repository."""

    async def select(
        self, table: str, columns: Sequence[str] | None = None, *, eq: Eq,
    ) -> list[Row]:
        """Return rows where ``row[eq[0]] == eq[1]``, projected to *columns*."""
        ...

    async def upsert(self, table: str, rows: Sequence[Row], *, on_conflict: Sequence[str]) -> None:
        """Insert rows, overwriting existing rows with the same *on_conflict* key."""
        ...

    async def delete(self, table: str, *, eq: Eq) -> int:
        """Delete matching rows and return how many were removed."""
        ...

    async def insert(self, table: str, rows: Sequence[Row]) -> None:
        """Insert rows; a key collision is an error."""
        ...

    async def replace(self, table: str, rows: Sequence[Row], *, eq: Eq, generation: int) -> None:
        """Swap every row matching *eq* for *rows*, tagged with *generation*.

        Readers never observe an empty or half-written set: either the
        previous rows or the new ones are visible, never neither.
        """
        ...

    async def close(self) -> None:
        ...


def project(row: Row, columns: Sequence[str] | None) -> Row:
    """Return a copy of *row* restricted to *columns* (all columns when None)."""
    if columns is None:
        return dict(row)
    return {col: row.get(col) for col in columns}


def key_of(row: Row, key: Sequence[str]) -> tuple:
    return tuple(row.get(col) for col in key)


def tag_generation(rows: Sequence[Row], generation: int) -> list[Row]:
    return [{**row, "generation": generation} for row in rows]


def latest_generation(rows: Sequence[Row]) -> list[Row]:
    """Keep only rows of the newest ``generation`` present.

    Rows without a generation count as generation 0. Backends whose
    replace is atomic only ever hold one generation, so this is a no-op
    for them.
    """
    if not rows:
        return []
    newest = max(row.get("generation") or 0 for row in rows)
    return [row for row in rows if (row.get("generation") or 0) == newest]
