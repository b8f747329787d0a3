"""Exception hierarchy shared by the client and the engine."""


class QueryPipeError(Exception):
    """Base class for every error raised by query-pipe."""


class BootError(QueryPipeError):
    """The engine could not be started or failed its readiness handshake."""


class RemoteError(QueryPipeError):
    """The engine answered a request with ``ok: false``.

    ``str(exc)`` is the engine's message, verbatim.
    """

    def __init__(self, message: str, *, method: str | None = None) -> None:
        """Initialize with the engine message and the method that failed."""
        super().__init__(message)
        self.message = message
        self.method = method


class ProtocolError(QueryPipeError):
    """A response line was missing, malformed, or of the wrong shape."""


class ClosedError(QueryPipeError):
    """A transport, cursor or appender was used after it was closed."""
