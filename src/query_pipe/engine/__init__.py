"""Reference engine process speaking the line protocol on top of SQLite."""

from query_pipe.engine.errors import EngineError
from query_pipe.engine.server import EngineServer

__all__ = ["EngineError", "EngineServer"]
