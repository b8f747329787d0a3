"""Typed response variants decoded from the success envelope.

Every engine response is ``{"ok": true, ...}`` or ``{"ok": false, "err": ...}``.
The transport checks the envelope, then validates the success payload into
exactly one of the variants below, chosen by the caller per method family.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class Envelope(BaseModel):
    """The generic success/failure wrapper around every response."""

    model_config = ConfigDict(extra="allow", frozen=True)

    ok: bool
    err: str | None = None


class AckResult(BaseModel):
    """Acknowledgement with no payload (execute, close, append, finalize)."""

    model_config = ConfigDict(frozen=True)


class OpenResult(BaseModel):
    """A freshly minted database (``d``) or appender (``h``) handle."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    handle: int = Field(validation_alias=AliasChoices("d", "h", "handle"))


class QueryOpenResult(BaseModel):
    """A streaming cursor handle and its column schema."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    handle: int = Field(validation_alias=AliasChoices("h", "handle"))
    columns: list[str] = Field(validation_alias=AliasChoices("c", "columns"))


class FetchResult(BaseModel):
    """One page of cursor rows plus the end-of-stream flag."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    rows: list[list[Any]] = Field(validation_alias=AliasChoices("r", "rows"))
    eof: bool


class BufferedResult(BaseModel):
    """A complete result set returned inline."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    rows: list[list[Any]] = Field(validation_alias=AliasChoices("r", "rows"))
    columns: list[str] = Field(validation_alias=AliasChoices("c", "columns"))
