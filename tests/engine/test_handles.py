"""Tests for handle registries and request parameter checks."""

import pytest

from query_pipe.engine.errors import EngineError, require
from query_pipe.engine.handles import HandleTable


def test_handles_start_at_one_and_never_repeat():
    table: HandleTable[str] = HandleTable("query")
    first = table.insert("a")
    second = table.insert("b")
    table.pop(first)
    third = table.insert("c")
    assert (first, second, third) == (1, 2, 3)
    assert len(table) == 2


def test_unknown_handle():
    table: HandleTable[str] = HandleTable("appender")
    with pytest.raises(EngineError, match="no such appender: 4"):
        table.get(4)


def test_drain_empties_table():
    table: HandleTable[str] = HandleTable("database")
    table.insert("a")
    table.insert("b")
    assert table.drain() == ["a", "b"]
    assert len(table) == 0


def test_require():
    assert require({"n": 3}, "n", int) == 3
    with pytest.raises(EngineError, match="missing key: n"):
        require({}, "n", int)
    with pytest.raises(EngineError, match="invalid type for key: n"):
        require({"n": 1.5}, "n", int)
    with pytest.raises(EngineError, match="invalid type for key: n"):
        require({"n": False}, "n", int)
