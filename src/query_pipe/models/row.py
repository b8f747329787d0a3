"""Column schema and labeled rows."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from query_pipe.errors import ProtocolError


class Schema:
    """Ordered column names of a result set.

    Built once per cursor and shared by every row it produces. When a name
    repeats, lookup by name resolves to the last column carrying it.
    """

    __slots__ = ("_columns", "_index")

    def __init__(self, columns: Sequence[str]) -> None:
        """Initialize with the column names as returned by the engine."""
        self._columns = tuple(columns)
        self._index = {name: i for i, name in enumerate(self._columns)}

    @property
    def columns(self) -> tuple[str, ...]:
        """Column names in result order."""
        return self._columns

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"Schema({list(self._columns)!r})"

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def position(self, name: str) -> int:
        """Return the position of a column name, raising KeyError if absent."""
        return self._index[name]

    def names(self) -> Iterator[str]:
        """Iterate distinct column names, in result order of their last occurrence."""
        return iter(self._index)

    def label(self, values: Sequence[Any]) -> Row:
        """Attach this schema to one raw row."""
        if len(values) != len(self._columns):
            raise ProtocolError(
                f"row has {len(values)} values but the result has {len(self._columns)} columns"
            )
        return Row(self, values)

    def label_all(self, rows: Sequence[Sequence[Any]]) -> list[Row]:
        """Attach this schema to a batch of raw rows, preserving order."""
        return [self.label(values) for values in rows]


class Row(Mapping[str, Any]):
    """A read-only labeled record supporting both named and positional access.

    ``row["x"]`` looks a value up by column name, ``row[0]`` by position.
    Compares equal to any mapping with the same items, so
    ``row == {"x": 1}`` holds for ``select 1 as x``.
    """

    __slots__ = ("_schema", "_values")

    def __init__(self, schema: Schema, values: Sequence[Any]) -> None:
        """Initialize with a shared schema and this row's values."""
        self._schema = schema
        self._values = tuple(values)

    def __getitem__(self, key: str | int) -> Any:
        """Get a column value by name or position."""
        if isinstance(key, int):
            return self._values[key]
        return self._values[self._schema.position(key)]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._schema

    def __iter__(self) -> Iterator[str]:
        return self._schema.names()

    def __len__(self) -> int:
        return sum(1 for _ in self._schema.names())

    def __repr__(self) -> str:
        return f"Row({self.as_dict()!r})"

    @property
    def schema(self) -> Schema:
        """The schema shared with every other row of the same result."""
        return self._schema

    @property
    def values_tuple(self) -> tuple[Any, ...]:
        """The raw values in column order, duplicates included."""
        return self._values

    def as_dict(self) -> dict[str, Any]:
        """Return a plain dict copy of this row."""
        return {name: self[name] for name in self._schema.names()}
