"""Bulk-insert sink backed by an engine-side appender."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from query_pipe.client.transport import Transport
from query_pipe.errors import ClosedError, QueryPipeError
from query_pipe.models.responses import AckResult
from query_pipe.wire.methods import Method

logger = logging.getLogger(__name__)


class Appender:
    """Forwards rows to an engine appender and finalizes it exactly once.

    Rows are buffered by the engine, not here. Nothing is visible in the
    table until ``commit()``. Leaving a ``with`` block (or closing the
    connection) without committing flushes the rows anyway, best-effort;
    a failure on that path is logged and never raised.
    """

    def __init__(
        self,
        transport: Transport,
        handle: int,
        *,
        table: str | None = None,
        on_release: Callable[[Appender], None] | None = None,
    ) -> None:
        """Initialize with the appender handle minted by the engine."""
        self._transport = transport
        self._handle = handle
        self._table = table
        self._on_release = on_release
        self._committed = False
        self._failure: QueryPipeError | None = None

    def __repr__(self) -> str:
        state = "committed" if self._committed else "open"
        return f"<Appender handle={self._handle} table={self._table!r} {state}>"

    @property
    def handle(self) -> int:
        """The engine's opaque appender handle."""
        return self._handle

    @property
    def committed(self) -> bool:
        """True once the appender has been finalized, or invalidated by a failed call."""
        return self._committed

    def _call(self, method: Method, params: Mapping[str, Any]) -> AckResult:
        # Any failure may leave the engine handle dead; never finalize it afterwards.
        try:
            return self._transport.call(method, params)
        except QueryPipeError as exc:
            self._finish(failure=exc)
            raise

    def _finish(self, failure: QueryPipeError | None = None) -> None:
        self._committed = True
        self._failure = failure
        if self._on_release is not None:
            self._on_release(self)

    def _ensure_open(self) -> None:
        if not self._committed:
            return
        if self._failure is not None:
            raise ClosedError(
                f"appender {self._handle} was invalidated by a failed call"
            ) from self._failure
        raise ClosedError(f"appender {self._handle} is already committed")

    def insert_row(self, row: Sequence[Any]) -> None:
        """Append one row."""
        self.insert_rows([row])

    def insert_rows(self, rows: Iterable[Sequence[Any]]) -> None:
        """Append a batch of rows in one call.

        A value the wire codec cannot encode raises TypeError before anything
        is sent. The appender stays open and earlier batches are still
        committed later.
        """
        self._ensure_open()
        batch = [list(row) for row in rows]
        self._call(Method.APPEND, {"h": self._handle, "r": batch})

    def commit(self) -> None:
        """Write every appended row and release the engine appender.

        A second commit after a successful one sends nothing.
        """
        if self._committed and self._failure is None:
            logger.debug("Appender %d already committed", self._handle)
            return
        self._ensure_open()
        self._call(Method.FINALIZE_APPENDER, {"h": self._handle})
        self._finish()

    def release(self) -> None:
        """Finalize an uncommitted appender without raising."""
        if self._committed:
            return
        logger.warning(
            "Appender %d on %r abandoned without commit, flushing buffered rows",
            self._handle,
            self._table,
        )
        try:
            self.commit()
        except QueryPipeError:
            # No caller is left to receive this; rows may be lost.
            logger.error("Implicit commit of appender %d failed", self._handle, exc_info=True)

    def __enter__(self) -> Appender:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
