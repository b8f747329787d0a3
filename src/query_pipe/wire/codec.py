"""Line-delimited JSON framing.

One frame is one compact JSON object terminated by ``\\n``. Requests carry
their method tag under the reserved ``@`` key; every other key is a named
parameter.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from query_pipe.errors import ProtocolError

METHOD_KEY = "@"


def _default(value: Any) -> Any:
    """Encode values the json module doesn't know about."""
    if isinstance(value, datetime | date | time):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, bytes | bytearray | memoryview):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dump(obj: Mapping[str, Any]) -> bytes:
    text = json.dumps(obj, separators=(",", ":"), ensure_ascii=False, default=_default)
    return text.encode("utf-8") + b"\n"


def encode_request(method: str, params: Mapping[str, Any]) -> bytes:
    """Serialize a method call to one request line."""
    if METHOD_KEY in params:
        raise ValueError(f"parameter name {METHOD_KEY!r} is reserved for the method tag")
    return _dump({METHOD_KEY: str(method), **params})


def encode_response(payload: Mapping[str, Any]) -> bytes:
    """Serialize a response envelope to one line."""
    return _dump(payload)


def decode_line(line: bytes) -> dict[str, Any]:
    """Parse one line into a JSON object.

    Raises ProtocolError for empty input, invalid JSON, or a non-object.
    """
    if not line:
        raise ProtocolError("unexpected end of stream")
    try:
        obj = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"malformed line: {exc}") from exc
    if not isinstance(obj, dict):
        raise ProtocolError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def decode_request(line: bytes) -> tuple[str, dict[str, Any]]:
    """Split a request line into its method tag and parameters."""
    obj = decode_line(line)
    method = obj.pop(METHOD_KEY, None)
    if not isinstance(method, str):
        raise ProtocolError("no method key")
    return method, obj
