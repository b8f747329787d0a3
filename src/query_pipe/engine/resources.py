"""Engine-side state behind cursor and appender handles.

Thin wrappers around aiosqlite objects, kept alive between requests.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from query_pipe.engine.errors import EngineError

if TYPE_CHECKING:
    import aiosqlite


def quote_identifier(name: str) -> str:
    """Quote a table name for interpolation into SQL."""
    return '"' + name.replace('"', '""') + '"'


def column_names(cursor: aiosqlite.Cursor) -> list[str]:
    """Column names of a cursor's result; empty for statements without one."""
    if cursor.description is None:
        return []
    return [col[0] for col in cursor.description]


@dataclass
class OpenCursor:
    """A live result set paged out by ``qf`` requests.

    Keeps one row of lookahead so a page can report end of stream exactly,
    even when its last row is the final row of the result.
    """

    cursor: aiosqlite.Cursor
    columns: list[str]
    lookahead: list[Any] = field(default_factory=list)
    eof: bool = False

    async def fetch(self, size: int) -> tuple[list[list[Any]], bool]:
        """Return up to ``size`` rows and whether the result is now exhausted."""
        rows = list(self.lookahead)
        self.lookahead.clear()
        if len(rows) < size and not self.eof:
            batch = await self.cursor.fetchmany(size - len(rows))
            rows.extend(batch)
            if len(rows) < size:
                self.eof = True
        if not self.eof:
            peek = await self.cursor.fetchone()
            if peek is None:
                self.eof = True
            else:
                self.lookahead.append(peek)
        return [list(row) for row in rows], self.eof

    async def close(self) -> None:
        """Release the underlying SQLite statement."""
        await self.cursor.close()


@dataclass
class PendingAppend:
    """Rows buffered for one table until the appender is finalized."""

    database: aiosqlite.Connection
    table: str
    width: int
    rows: list[list[Any]] = field(default_factory=list)

    def add(self, rows: Sequence[Any]) -> None:
        """Buffer a batch, rejecting it whole if any row has the wrong width."""
        batch: list[list[Any]] = []
        for row in rows:
            if not isinstance(row, list):
                raise EngineError("append: row is not an array")
            if len(row) != self.width:
                raise EngineError(f"append: expected {self.width} values, got {len(row)}")
            batch.append(row)
        self.rows.extend(batch)

    async def flush(self) -> None:
        """Insert every buffered row in a single transaction."""
        placeholders = ", ".join("?" for _ in range(self.width))
        sql = f"INSERT INTO {quote_identifier(self.table)} VALUES ({placeholders})"
        await self.database.execute("BEGIN")
        try:
            await self.database.executemany(sql, self.rows)
        except BaseException:
            await self.database.execute("ROLLBACK")
            raise
        await self.database.execute("COMMIT")
        self.rows.clear()
