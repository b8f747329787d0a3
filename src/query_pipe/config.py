"""Environment-variable-based configuration."""

import os
import shlex
import sys
from pathlib import Path


def get_engine_command() -> list[str]:
    """Return the engine command line from QP_ENGINE_COMMAND."""
    raw = os.environ.get("QP_ENGINE_COMMAND")
    if raw:
        return shlex.split(raw)
    return [sys.executable, "-m", "query_pipe.engine"]


def get_engine_root() -> Path | None:
    """Return the directory relative database names resolve against, from QP_ENGINE_ROOT."""
    raw = os.environ.get("QP_ENGINE_ROOT")
    if not raw:
        return None
    return Path(raw).expanduser()


def get_chunk_size() -> int:
    """Return the cursor iteration page size from QP_CHUNK_SIZE."""
    return int(os.environ.get("QP_CHUNK_SIZE", "100"))


def get_shutdown_timeout() -> float:
    """Return the seconds to wait for the engine to exit from QP_SHUTDOWN_TIMEOUT."""
    return float(os.environ.get("QP_SHUTDOWN_TIMEOUT", "5.0"))


def get_log_level() -> str:
    """Return the logging level from QP_LOG_LEVEL."""
    return os.environ.get("QP_LOG_LEVEL", "WARNING")
