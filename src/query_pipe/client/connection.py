"""One database opened on the engine, and the cursors and appenders made from it."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from query_pipe.client.appender import Appender
from query_pipe.client.cursor import Cursor, resolve_chunk_size
from query_pipe.client.transport import Transport
from query_pipe.models.responses import BufferedResult, FetchResult, OpenResult, QueryOpenResult
from query_pipe.models.row import Row, Schema
from query_pipe.wire.methods import Method

logger = logging.getLogger(__name__)

Params = Sequence[Any] | Mapping[str, Any]


def _encode_params(params: Params) -> list[Any] | dict[str, Any]:
    """Positional parameters travel as a list, named ones as an object."""
    if isinstance(params, Mapping):
        return dict(params)
    if isinstance(params, str | bytes):
        raise TypeError("query parameters must be a sequence or mapping, not a string")
    return list(params)


class Connection:
    """A database context on the engine.

    Owns its transport exclusively. Every cursor and appender it creates
    borrows that transport for individual calls; the ones still open when
    the connection closes are released first.
    """

    def __init__(
        self,
        name: str,
        transport: Transport | None = None,
        *,
        chunk_size: int | None = None,
    ) -> None:
        """Boot the engine and open database ``name`` on it.

        Spawns the configured engine when no transport is given. On failure
        the transport is torn down before the error propagates.
        """
        self.name = name
        self._transport = transport if transport is not None else Transport.spawn()
        self._cursors: dict[int, Cursor] = {}
        self._appenders: dict[int, Appender] = {}
        self._closed = False
        try:
            self._chunk_size = resolve_chunk_size(chunk_size)
            self._transport.boot()
            opened = self._transport.call(Method.OPEN_DATABASE, {"p": name}, OpenResult)
        except BaseException:
            self._transport.close()
            raise
        self._handle = opened.handle
        logger.info("Opened database %r as handle %d", name, self._handle)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Connection {self.name!r} handle={self._handle} {state}>"

    @property
    def handle(self) -> int:
        """The engine's opaque database handle."""
        return self._handle

    @property
    def closed(self) -> bool:
        """True once close() has run."""
        return self._closed

    def _query_params(self, query: str, params: Params) -> dict[str, Any]:
        return {"d": self._handle, "q": query, "p": _encode_params(params)}

    def execute(self, query: str, params: Params = ()) -> None:
        """Run a statement that produces no result set."""
        self._transport.call(Method.EXECUTE, self._query_params(query, params))

    def select(self, query: str, params: Params = ()) -> Cursor:
        """Open a streaming query. No rows are fetched until the cursor is read.

        The caller owns the cursor: use it in a ``with`` block or call
        ``close()``. One that is merely dropped keeps its engine handle open
        until this connection closes.
        """
        opened = self._transport.call(
            Method.QUERY, self._query_params(query, params), QueryOpenResult
        )
        cursor = Cursor(
            self._transport,
            opened.handle,
            opened.columns,
            chunk_size=self._chunk_size,
            on_release=self._forget_cursor,
        )
        self._cursors[cursor.handle] = cursor
        return cursor

    def select_one(self, query: str, params: Params = ()) -> Row | None:
        """Return the first row of a query, or None if it has none."""
        with self.select(query, params) as cursor:
            return cursor.fetch()

    def select_value(self, query: str, params: Params = ()) -> Any:
        """Return the first column of the first row, or None if there are no rows."""
        opened = self._transport.call(
            Method.QUERY, self._query_params(query, params), QueryOpenResult
        )
        try:
            chunk = self._transport.call(Method.FETCH, {"h": opened.handle, "n": 1}, FetchResult)
            if not chunk.rows:
                return None
            return chunk.rows[0][0]
        finally:
            self._transport.call(Method.CLOSE_CURSOR, {"h": opened.handle})

    def select_all(self, query: str, params: Params = ()) -> list[Row]:
        """Run a query and return every row at once.

        The whole result travels in one response; only use it for results
        known to be small.
        """
        result = self._transport.call(
            Method.QUERY_ALL, self._query_params(query, params), BufferedResult
        )
        return Schema(result.columns).label_all(result.rows)

    def appender(self, table: str) -> Appender:
        """Open a bulk-insert appender on ``table``."""
        opened = self._transport.call(
            Method.OPEN_APPENDER, {"d": self._handle, "t": table}, OpenResult
        )
        appender = Appender(
            self._transport, opened.handle, table=table, on_release=self._forget_appender
        )
        self._appenders[appender.handle] = appender
        return appender

    def _forget_cursor(self, cursor: Cursor) -> None:
        self._cursors.pop(cursor.handle, None)

    def _forget_appender(self, appender: Appender) -> None:
        self._appenders.pop(appender.handle, None)

    def close(self) -> None:
        """Release open cursors and appenders, then shut the engine down. Never raises."""
        if self._closed:
            return
        self._closed = True
        for appender in list(self._appenders.values()):
            appender.release()
        for cursor in list(self._cursors.values()):
            cursor.release()
        self._transport.close()
        logger.info("Closed database %r", self.name)

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def connect(
    name: str,
    *,
    command: Sequence[str] | None = None,
    chunk_size: int | None = None,
) -> Connection:
    """Spawn an engine from ``command`` (or the configured default) and open ``name``."""
    return Connection(name, Transport.spawn(command), chunk_size=chunk_size)
