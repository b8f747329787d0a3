"""Serialized request/response channel to the engine child process.

The protocol has no request identifiers: the only thing tying a response to
its request is line order. Every call therefore holds an exclusive lock from
the moment its request is written until its response line has been read, and
a transport that loses sync is poisoned for good.
"""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Mapping, Sequence
from typing import IO, Any, TypeVar

from pydantic import BaseModel, ValidationError

from query_pipe.config import get_engine_command, get_shutdown_timeout
from query_pipe.errors import BootError, ClosedError, ProtocolError, RemoteError
from query_pipe.models.responses import AckResult, Envelope
from query_pipe.wire.codec import decode_line, encode_request
from query_pipe.wire.methods import Method

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)


class Transport:
    """Owns the engine's stdin/stdout streams and, optionally, the process itself."""

    def __init__(
        self,
        stdin: IO[bytes],
        stdout: IO[bytes],
        process: subprocess.Popen[bytes] | None = None,
    ) -> None:
        """Initialize with the engine's input stream, output stream and process."""
        self._stdin = stdin
        self._stdout = stdout
        self._process = process
        self._lock = threading.Lock()
        self._booted = False
        self._closed = False
        self._broken: ProtocolError | None = None

    @classmethod
    def spawn(cls, command: Sequence[str] | None = None) -> Transport:
        """Start the engine process and wrap its pipes.

        stderr is inherited so engine logs land on the parent's stderr.
        """
        argv = list(command) if command else get_engine_command()
        logger.debug("Starting engine: %s", argv)
        try:
            process = subprocess.Popen(argv, stdin=subprocess.PIPE, stdout=subprocess.PIPE)
        except OSError as exc:
            raise BootError(f"failed to start engine {argv[0]!r}: {exc}") from exc
        assert process.stdin is not None and process.stdout is not None
        return cls(process.stdin, process.stdout, process)

    @property
    def booted(self) -> bool:
        """True once the readiness line has been read successfully."""
        return self._booted

    @property
    def closed(self) -> bool:
        """True once close() has run or boot failed."""
        return self._closed

    def __enter__(self) -> Transport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def boot(self) -> None:
        """Read the engine's readiness line. Must precede any call."""
        with self._lock:
            if self._booted:
                return
            if self._closed:
                raise ClosedError("transport is closed")
            try:
                envelope = Envelope.model_validate(decode_line(self._stdout.readline()))
            except (OSError, ProtocolError, ValidationError) as exc:
                self._release_streams()
                raise BootError(f"failed to boot: {exc}") from exc
            if not envelope.ok:
                self._release_streams()
                raise BootError(f"failed to boot: {envelope.err}")
            self._booted = True
        logger.info("Engine ready")

    def call(
        self,
        method: Method,
        params: Mapping[str, Any],
        result_type: type[ResultT] = AckResult,  # type: ignore[assignment]
    ) -> ResultT:
        """Send one request and block until its response line arrives.

        Raises RemoteError when the engine reports failure, ProtocolError
        when the response can't be understood.
        """
        line = encode_request(method, params)
        with self._lock:
            self._ensure_usable()
            logger.debug("-> %s", method.name)
            try:
                self._stdin.write(line)
                self._stdin.flush()
                payload = decode_line(self._stdout.readline())
            except (OSError, ValueError) as exc:
                raise self._poison(ProtocolError(f"engine channel failed: {exc}")) from exc
            except ProtocolError as exc:
                raise self._poison(exc) from None

        try:
            envelope = Envelope.model_validate(payload)
        except ValidationError as exc:
            raise ProtocolError(f"invalid response envelope for {method.name}: {exc}") from exc
        if not envelope.ok:
            logger.debug("<- %s failed: %s", method.name, envelope.err)
            raise RemoteError(envelope.err or "unknown engine error", method=str(method))

        try:
            return result_type.model_validate(payload)
        except ValidationError as exc:
            raise ProtocolError(f"unexpected response to {method.name}: {exc}") from exc

    def close(self) -> None:
        """Shut the engine down. Best-effort; never raises."""
        with self._lock:
            if self._closed:
                return
            if self._booted and self._broken is None:
                try:
                    self._stdin.write(encode_request(Method.CLOSE_ENVIRONMENT, {}))
                    self._stdin.flush()
                    self._stdout.readline()
                except (OSError, ValueError):
                    logger.debug("Close-environment call failed", exc_info=True)
            self._release_streams()
        logger.info("Engine transport closed")

    def _ensure_usable(self) -> None:
        if self._closed:
            raise ClosedError("transport is closed")
        if not self._booted:
            raise ClosedError("transport has not been booted")
        if self._broken is not None:
            raise ProtocolError(f"transport is out of sync: {self._broken}")

    def _poison(self, exc: ProtocolError) -> ProtocolError:
        self._broken = exc
        logger.warning("Engine channel lost sync: %s", exc)
        return exc

    def _release_streams(self) -> None:
        self._closed = True
        for stream in (self._stdin, self._stdout):
            try:
                stream.close()
            except OSError:
                logger.debug("Failed to close engine stream", exc_info=True)
        if self._process is None:
            return
        try:
            self._process.wait(timeout=get_shutdown_timeout())
        except subprocess.TimeoutExpired:
            logger.warning("Engine did not exit in time, killing pid %s", self._process.pid)
            self._process.kill()
            self._process.wait()

