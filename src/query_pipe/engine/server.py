"""Request loop of the engine process.

Reads one request line from stdin, dispatches it to a handler, writes exactly
one response line to stdout, and repeats until stdin closes or the client
sends close-environment. Handler failures, including values sqlite3 cannot
bind, become ``ok: false`` responses; an unreadable request line is fatal
since request/response order can no longer be trusted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import IO, Any

import aiosqlite

from query_pipe.engine.errors import EngineError, require
from query_pipe.engine.handles import HandleTable
from query_pipe.engine.resources import OpenCursor, PendingAppend, column_names, quote_identifier
from query_pipe.errors import ProtocolError
from query_pipe.wire.codec import decode_request, encode_response
from query_pipe.wire.methods import Method

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]

MEMORY = ":memory:"


def _query_args(params: dict[str, Any]) -> tuple[str, list[Any] | dict[str, Any]]:
    """Extract the SQL text and its optional positional or named parameters."""
    sql = require(params, "q", str)
    args = params.get("p", [])
    if args is None:
        args = []
    if not isinstance(args, list | dict):
        raise EngineError("invalid type for key: p")
    return sql, args


class EngineServer:
    """Serves the line protocol over a pair of binary streams."""

    def __init__(self, stdin: IO[bytes], stdout: IO[bytes], *, root: Path | None = None) -> None:
        """Initialize with the request stream, response stream and database root."""
        self._stdin = stdin
        self._stdout = stdout
        self._root = root
        self._databases: HandleTable[aiosqlite.Connection] = HandleTable("database")
        self._cursors: HandleTable[OpenCursor] = HandleTable("query")
        self._appenders: HandleTable[PendingAppend] = HandleTable("appender")
        self._handlers: dict[str, Handler] = {
            Method.OPEN_DATABASE: self._open_database,
            Method.EXECUTE: self._execute,
            Method.QUERY: self._query,
            Method.FETCH: self._fetch,
            Method.CLOSE_CURSOR: self._close_cursor,
            Method.QUERY_ALL: self._query_all,
            Method.OPEN_APPENDER: self._open_appender,
            Method.APPEND: self._append,
            Method.FINALIZE_APPENDER: self._finalize_appender,
        }

    # -- Framing --

    def _respond(self, payload: dict[str, Any]) -> None:
        self._stdout.write(encode_response(payload))
        self._stdout.flush()

    def _respond_ok(self, fields: dict[str, Any] | None = None) -> None:
        self._respond({"ok": True, **(fields or {})})

    def _respond_err(self, message: str) -> None:
        self._respond({"ok": False, "err": message})

    # -- Loop --

    async def serve(self) -> int:
        """Run the boot handshake and the request loop. Returns a process exit code."""
        if self._root is not None and not self._root.is_dir():
            self._respond_err(f"database root {str(self._root)!r} is not a directory")
            return 1
        self._respond_ok()
        logger.info("Engine ready")

        try:
            while True:
                line = await asyncio.to_thread(self._stdin.readline)
                if not line:
                    logger.info("stdin closed, shutting down")
                    return 0
                try:
                    method, params = decode_request(line)
                except ProtocolError as exc:
                    logger.error("Unreadable request, giving up: %s", exc)
                    return 1
                if method == Method.CLOSE_ENVIRONMENT:
                    self._respond_ok()
                    logger.info("Close requested, shutting down")
                    return 0
                await self._dispatch(method, params)
        finally:
            await self.shutdown()

    async def _dispatch(self, method: str, params: dict[str, Any]) -> None:
        handler = self._handlers.get(method)
        if handler is None:
            self._respond_err(f"unknown command: {method}")
            return
        logger.debug("-> %s %s", method, params)
        try:
            fields = await handler(params)
        # sqlite3 reports unbindable values (ints past 64 bits, for one) as
        # OverflowError/ValueError/TypeError rather than sqlite3.Error.
        except (EngineError, aiosqlite.Error, OverflowError, ValueError, TypeError) as exc:
            logger.debug("<- %s failed: %s", method, exc)
            self._respond_err(str(exc))
            return
        self._respond_ok(fields)

    async def shutdown(self) -> None:
        """Close every cursor and database still open."""
        for pending in self._appenders.drain():
            logger.warning(
                "Discarding %d uncommitted rows for %s", len(pending.rows), pending.table
            )
        for cursor in self._cursors.drain():
            try:
                await cursor.close()
            except aiosqlite.Error:
                logger.warning("Failed to close cursor during shutdown", exc_info=True)
        for db in self._databases.drain():
            await db.close()

    # -- Databases --

    def _resolve(self, name: str) -> str:
        if name == MEMORY:
            return name
        path = Path(name).expanduser()
        if self._root is not None and not path.is_absolute():
            path = self._root / path
        return str(path)

    async def _open_database(self, params: dict[str, Any]) -> dict[str, Any]:
        path = self._resolve(require(params, "p", str))
        db = await aiosqlite.connect(path, isolation_level=None)
        handle = self._databases.insert(db)
        logger.info("Opened database %s as handle %d", path, handle)
        return {"d": handle}

    async def _execute(self, params: dict[str, Any]) -> dict[str, Any]:
        db = self._databases.get(require(params, "d", int))
        sql, args = _query_args(params)
        cursor = await db.execute(sql, args)
        await cursor.close()
        return {}

    # -- Queries --

    async def _query(self, params: dict[str, Any]) -> dict[str, Any]:
        db = self._databases.get(require(params, "d", int))
        sql, args = _query_args(params)
        cursor = await db.execute(sql, args)
        columns = column_names(cursor)
        handle = self._cursors.insert(OpenCursor(cursor, columns))
        return {"h": handle, "c": columns}

    async def _fetch(self, params: dict[str, Any]) -> dict[str, Any]:
        size = require(params, "n", int)
        cursor = self._cursors.get(require(params, "h", int))
        if size < 1:
            raise EngineError("invalid value for key: n")
        rows, eof = await cursor.fetch(size)
        return {"r": rows, "eof": eof}

    async def _close_cursor(self, params: dict[str, Any]) -> dict[str, Any]:
        cursor = self._cursors.pop(require(params, "h", int))
        await cursor.close()
        return {}

    async def _query_all(self, params: dict[str, Any]) -> dict[str, Any]:
        db = self._databases.get(require(params, "d", int))
        sql, args = _query_args(params)
        async with db.execute(sql, args) as cursor:
            columns = column_names(cursor)
            rows = [list(row) for row in await cursor.fetchall()]
        return {"r": rows, "c": columns}

    # -- Appenders --

    async def _open_appender(self, params: dict[str, Any]) -> dict[str, Any]:
        db = self._databases.get(require(params, "d", int))
        table = require(params, "t", str)
        async with db.execute(f"PRAGMA table_info({quote_identifier(table)})") as cursor:
            info = await cursor.fetchall()
        if not info:
            raise EngineError(f"open appender: no such table: {table}")
        handle = self._appenders.insert(PendingAppend(db, table, width=len(info)))
        return {"h": handle}

    async def _append(self, params: dict[str, Any]) -> dict[str, Any]:
        handle = require(params, "h", int)
        rows = require(params, "r", list)
        pending = self._appenders.get(handle)
        try:
            pending.add(rows)
        except EngineError:
            # A rejected batch kills the appender, as a failed append would.
            self._appenders.pop(handle)
            raise
        return {}

    async def _finalize_appender(self, params: dict[str, Any]) -> dict[str, Any]:
        pending = self._appenders.pop(require(params, "h", int))
        count = len(pending.rows)
        await pending.flush()
        logger.debug("Appended %d rows to %s", count, pending.table)
        return {}
