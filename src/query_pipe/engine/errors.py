"""Errors reported back to the client as ``{"ok": false, "err": ...}``."""

from typing import Any, TypeVar

from query_pipe.errors import QueryPipeError

T = TypeVar("T")


class EngineError(QueryPipeError):
    """A request the engine refuses; the message is sent to the client verbatim."""


def require(params: dict[str, Any], key: str, kind: type[T]) -> T:
    """Fetch a typed request parameter.

    Integers must be real integers, not booleans.
    """
    if key not in params:
        raise EngineError(f"missing key: {key}")
    value = params[key]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise EngineError(f"invalid type for key: {key}")
    return value
