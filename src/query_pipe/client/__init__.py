"""Client side of the engine protocol."""

from query_pipe.client.appender import Appender
from query_pipe.client.connection import Connection, connect
from query_pipe.client.cursor import Cursor
from query_pipe.client.transport import Transport

__all__ = ["Appender", "Connection", "Cursor", "Transport", "connect"]
