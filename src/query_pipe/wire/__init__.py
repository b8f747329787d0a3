"""Wire framing and method tags."""

from query_pipe.wire.codec import (
    METHOD_KEY,
    decode_line,
    decode_request,
    encode_request,
    encode_response,
)
from query_pipe.wire.methods import Method

__all__ = [
    "METHOD_KEY",
    "Method",
    "decode_line",
    "decode_request",
    "encode_request",
    "encode_response",
]
