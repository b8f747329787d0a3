"""Lazy, forward-only view over a server-side streaming result set."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence

from query_pipe.client.transport import Transport
from query_pipe.config import get_chunk_size
from query_pipe.errors import ClosedError, ProtocolError, QueryPipeError
from query_pipe.models.responses import FetchResult
from query_pipe.models.row import Row, Schema
from query_pipe.wire.methods import Method

logger = logging.getLogger(__name__)


def resolve_chunk_size(size: int | None) -> int:
    """Return ``size``, or the configured default when None. Rejects values below 1."""
    if size is None:
        size = get_chunk_size()
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    return size


class Cursor:
    """Pages rows out of an engine cursor handle on demand.

    Iterating yields rows one at a time while fetching them in chunks of
    ``chunk_size``. Iteration never restarts: a second ``iter()`` picks up
    wherever the engine's cursor currently is. The handle is released by
    ``close()``, by leaving a ``with`` block, or when the owning connection
    closes, whether or not the rows were exhausted.
    """

    def __init__(
        self,
        transport: Transport,
        handle: int,
        columns: Sequence[str],
        *,
        chunk_size: int | None = None,
        on_release: Callable[[Cursor], None] | None = None,
    ) -> None:
        """Initialize with the cursor handle and column names from the query response."""
        self._transport = transport
        self._handle = handle
        self._schema = Schema(columns)
        self._chunk_size = resolve_chunk_size(chunk_size)
        self._on_release = on_release
        self._exhausted = False
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "exhausted" if self._exhausted else "open"
        return f"<Cursor handle={self._handle} columns={list(self._schema.columns)} {state}>"

    @property
    def handle(self) -> int:
        """The engine's opaque cursor handle."""
        return self._handle

    @property
    def columns(self) -> tuple[str, ...]:
        """Column names, fixed when the cursor was opened."""
        return self._schema.columns

    @property
    def schema(self) -> Schema:
        """The schema applied to every row of this cursor."""
        return self._schema

    @property
    def exhausted(self) -> bool:
        """True once the engine has reported end of stream."""
        return self._exhausted

    @property
    def closed(self) -> bool:
        """True once the close call has been sent."""
        return self._closed

    def fetch_chunk(self, size: int) -> list[Row] | None:
        """Fetch up to ``size`` rows.

        Returns None once the stream is exhausted, without contacting the
        engine. The final non-empty chunk may already carry end of stream.
        A page larger than ``size`` raises ProtocolError.
        """
        if size < 1:
            raise ValueError(f"chunk size must be positive, got {size}")
        if self._exhausted:
            return None
        if self._closed:
            raise ClosedError(f"cursor {self._handle} is closed")

        result = self._transport.call(Method.FETCH, {"h": self._handle, "n": size}, FetchResult)
        if len(result.rows) > size:
            raise ProtocolError(
                f"engine returned {len(result.rows)} rows for a fetch of at most {size}"
            )
        self._exhausted = result.eof
        return self._schema.label_all(result.rows)

    def fetch(self) -> Row | None:
        """Fetch the next single row, or None when there are no more."""
        chunk = self.fetch_chunk(1)
        if not chunk:
            return None
        return chunk[0]

    def __iter__(self) -> Iterator[Row]:
        while chunk := self.fetch_chunk(self._chunk_size):
            yield from chunk

    def close(self) -> None:
        """Release the engine cursor. Raises if the engine rejects the call."""
        if self._closed:
            return
        self._closed = True
        try:
            self._transport.call(Method.CLOSE_CURSOR, {"h": self._handle})
        finally:
            if self._on_release is not None:
                self._on_release(self)

    def release(self) -> None:
        """Close without raising; for scope exit and connection teardown."""
        try:
            self.close()
        except QueryPipeError:
            logger.warning("Failed to close cursor %d", self._handle, exc_info=True)

    def __enter__(self) -> Cursor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
