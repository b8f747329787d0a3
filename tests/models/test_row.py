"""Tests for column schemas and labeled rows."""

import pytest

from query_pipe.errors import ProtocolError
from query_pipe.models.row import Row, Schema


def test_named_and_positional_access():
    row = Schema(["id", "name"]).label([1, "a"])
    assert row["id"] == 1
    assert row["name"] == "a"
    assert row[0] == 1
    assert row[1] == "a"


def test_equals_plain_dict():
    row = Schema(["x"]).label([1])
    assert row == {"x": 1}
    assert row != {"x": 2}


def test_keys_follow_column_order():
    row = Schema(["b", "a", "c"]).label([2, 1, 3])
    assert list(row.keys()) == ["b", "a", "c"]
    assert list(row.values()) == [2, 1, 3]


def test_unknown_column():
    row = Schema(["x"]).label([1])
    with pytest.raises(KeyError):
        row["y"]
    assert "x" in row
    assert "y" not in row
    assert 0 not in row


def test_duplicate_names_resolve_to_last():
    row = Schema(["v", "v"]).label([1, 2])
    assert row["v"] == 2
    assert row.values_tuple == (1, 2)
    assert len(row) == 1
    assert row.as_dict() == {"v": 2}


def test_width_mismatch_is_protocol_error():
    with pytest.raises(ProtocolError, match="2 values but the result has 1 columns"):
        Schema(["x"]).label([1, 2])


def test_label_all_preserves_order_and_shares_schema():
    schema = Schema(["n"])
    rows = schema.label_all([[3], [1], [2]])
    assert [r["n"] for r in rows] == [3, 1, 2]
    assert all(r.schema is schema for r in rows)


def test_repr():
    assert repr(Schema(["x"]).label([1])) == "Row({'x': 1})"


def test_row_is_read_only():
    row = Row(Schema(["x"]), [1])
    with pytest.raises(TypeError):
        row["x"] = 2  # type: ignore[index]
