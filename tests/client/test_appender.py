"""Tests for the bulk-insert appender's commit-exactly-once contract."""

import logging

import pytest

from query_pipe.client.appender import Appender
from query_pipe.errors import ClosedError, RemoteError


def _appender(scripted, *responses):
    engine = scripted(*responses)
    engine.transport.boot()
    return Appender(engine.transport, 3, table="t"), engine


def test_insert_rows_forwards_batch(scripted):
    appender, engine = _appender(scripted, {"ok": True})
    appender.insert_rows([[1, "a"], (2, "b")])
    assert engine.requests() == [{"@": "ai", "h": 3, "r": [[1, "a"], [2, "b"]]}]


def test_insert_row_wraps_single_row(scripted):
    appender, engine = _appender(scripted, {"ok": True})
    appender.insert_row([1, "a"])
    assert engine.requests() == [{"@": "ai", "h": 3, "r": [[1, "a"]]}]


def test_commit_finalizes(scripted):
    appender, engine = _appender(scripted, {"ok": True}, {"ok": True})
    appender.insert_row([1, "a"])
    appender.commit()
    assert appender.committed
    assert engine.requests()[-1] == {"@": "ax", "h": 3}


def test_second_commit_sends_nothing(scripted):
    appender, engine = _appender(scripted, {"ok": True})
    appender.commit()
    appender.commit()
    assert engine.methods() == ["ax"]


def test_insert_after_commit(scripted):
    appender, engine = _appender(scripted, {"ok": True})
    appender.commit()
    with pytest.raises(ClosedError, match="already committed"):
        appender.insert_row([1])
    assert engine.methods() == ["ax"]


def test_failed_insert_suppresses_finalize(scripted):
    appender, engine = _appender(scripted, {"ok": False, "err": "append: expected 2 values, got 1"})
    with pytest.raises(RemoteError, match="expected 2 values"):
        appender.insert_row([1])
    assert appender.committed
    with appender:
        pass
    assert engine.methods() == ["ai"]


def test_commit_after_failed_insert_raises(scripted):
    appender, engine = _appender(scripted, {"ok": False, "err": "boom"})
    with pytest.raises(RemoteError):
        appender.insert_row([1])
    with pytest.raises(ClosedError, match="invalidated") as exc_info:
        appender.commit()
    assert isinstance(exc_info.value.__cause__, RemoteError)
    assert engine.methods() == ["ai"]


def test_failed_commit_is_not_retried(scripted):
    appender, engine = _appender(scripted, {"ok": False, "err": "constraint failed"})
    with pytest.raises(RemoteError):
        appender.commit()
    with appender:
        pass
    assert engine.methods() == ["ax"]


def test_abandoned_appender_is_flushed_on_exit(scripted, caplog):
    appender, engine = _appender(scripted, {"ok": True}, {"ok": True})
    with caplog.at_level(logging.WARNING):
        with appender:
            appender.insert_row([1, "a"])
    assert engine.methods() == ["ai", "ax"]
    assert appender.committed
    assert "abandoned without commit" in caplog.text


def test_committed_appender_exit_sends_nothing(scripted):
    appender, engine = _appender(scripted, {"ok": True}, {"ok": True})
    with appender:
        appender.insert_row([1, "a"])
        appender.commit()
    assert engine.methods() == ["ai", "ax"]


def test_implicit_commit_failure_is_logged_not_raised(scripted, caplog):
    appender, engine = _appender(scripted, {"ok": False, "err": "disk full"})
    with appender:
        pass
    assert engine.methods() == ["ax"]
    assert "Implicit commit of appender 3 failed" in caplog.text
    assert any(r.levelno == logging.ERROR for r in caplog.records)


def test_exit_flushes_even_when_body_raises(scripted):
    appender, engine = _appender(scripted, {"ok": True})
    with pytest.raises(RuntimeError):
        with appender:
            raise RuntimeError("caller bug")
    assert engine.methods() == ["ax"]


def test_unencodable_row_sends_nothing_and_keeps_appender_open(scripted):
    appender, engine = _appender(scripted, {"ok": True}, {"ok": True})
    appender.insert_row([1, "a"])
    with pytest.raises(TypeError):
        appender.insert_row([object(), "b"])
    assert not appender.committed
    appender.commit()
    assert engine.methods() == ["ai", "ax"]
