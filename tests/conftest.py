"""Shared test fixtures."""

import io
import json
import os
import sys
from pathlib import Path

import pytest

from query_pipe.client.connection import Connection
from query_pipe.client.transport import Transport
from query_pipe.wire.codec import encode_response


class RecordingStream(io.BytesIO):
    """In-memory pipe end that stays readable after the client closes it."""

    def __init__(self, initial: bytes = b""):
        super().__init__(initial)
        self.was_closed = False

    def close(self):
        self.was_closed = True


class ScriptedEngine:
    """Plays back canned response lines and records every request line.

    Since the protocol is strictly one response per request, a fixed script
    of responses is enough to drive the client synchronously.
    """

    def __init__(self, *responses: dict, boot: dict | None = None):
        lines = [boot if boot is not None else {"ok": True}, *responses]
        self.stdout = RecordingStream(b"".join(encode_response(line) for line in lines))
        self.stdin = RecordingStream()
        self.transport = Transport(self.stdin, self.stdout)

    def requests(self) -> list[dict]:
        """Decoded request lines, in send order."""
        return [json.loads(line) for line in self.stdin.getvalue().splitlines()]

    def methods(self) -> list[str]:
        """Just the method tags of every request sent so far."""
        return [req["@"] for req in self.requests()]


@pytest.fixture
def scripted():
    """Factory for a scripted engine: ``scripted(*responses, boot=...)``."""
    return ScriptedEngine


@pytest.fixture
def scripted_connection():
    """Factory for a Connection already opened on a scripted engine as handle 1.

    Returns ``(connection, engine)``; pass the responses that follow the open.
    """

    def _make(*responses: dict, chunk_size: int | None = None):
        engine = ScriptedEngine({"ok": True, "d": 1}, *responses)
        return Connection("t.db", engine.transport, chunk_size=chunk_size), engine

    return _make


@pytest.fixture
def engine_command(monkeypatch):
    """Command line that starts the real engine with the running interpreter.

    The child inherits PYTHONPATH, so point it at this checkout's sources.
    """
    src = str(Path(__file__).resolve().parent.parent / "src")
    existing = os.environ.get("PYTHONPATH")
    monkeypatch.setenv("PYTHONPATH", src if not existing else os.pathsep.join([src, existing]))
    return [sys.executable, "-m", "query_pipe.engine"]
