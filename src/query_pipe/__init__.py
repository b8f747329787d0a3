"""Client for a line-delimited query engine running as a child process."""

from query_pipe.client import Appender, Connection, Cursor, Transport, connect
from query_pipe.errors import BootError, ClosedError, ProtocolError, QueryPipeError, RemoteError
from query_pipe.models import Row, Schema

__all__ = [
    "Appender",
    "BootError",
    "ClosedError",
    "Connection",
    "Cursor",
    "ProtocolError",
    "QueryPipeError",
    "RemoteError",
    "Row",
    "Schema",
    "Transport",
    "connect",
]
