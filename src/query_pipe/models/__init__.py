"""Response and row models."""

from query_pipe.models.responses import (
    AckResult,
    BufferedResult,
    Envelope,
    FetchResult,
    OpenResult,
    QueryOpenResult,
)
from query_pipe.models.row import Row, Schema

__all__ = [
    "AckResult",
    "BufferedResult",
    "Envelope",
    "FetchResult",
    "OpenResult",
    "QueryOpenResult",
    "Row",
    "Schema",
]
