"""Trace switches and category filtering."""
from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import debug_trace


class TestTrace:

    def test_switch_parsing(self):
        assert debug_trace._parse_switch("") == (False, frozenset())
        assert debug_trace._parse_switch("0") == (False, frozenset())
        assert debug_trace._parse_switch("1") == (True, frozenset())
        assert debug_trace._parse_switch("ALL") == (True, frozenset())
        assert debug_trace._parse_switch("gesture, store") == (True, frozenset({"GESTURE", "STORE"}))

    def test_disabled_prints_nothing(self, monkeypatch, capsys):
        monkeypatch.setattr(debug_trace, "DEBUG_TRACE", False)
        debug_trace.trace("hello", "GESTURE")
        assert capsys.readouterr().err == ""

    def test_category_filter(self, monkeypatch, capsys):
        monkeypatch.setattr(debug_trace, "DEBUG_TRACE", True)
        monkeypatch.setattr(debug_trace, "CATEGORIES", frozenset({"STORE"}))
        monkeypatch.setattr(debug_trace, "LOG_FILE", None)
        debug_trace.trace("kept", "STORE")
        debug_trace.trace("dropped", "GESTURE")
        debug_trace.trace("always", "ERROR")
        err = capsys.readouterr().err
        assert "[STORE] kept" in err
        assert "dropped" not in err
        assert "[ERROR] always" in err

    def test_move_needs_its_own_switch(self, monkeypatch):
        monkeypatch.setattr(debug_trace, "DEBUG_TRACE", True)
        monkeypatch.setattr(debug_trace, "CATEGORIES", frozenset())
        monkeypatch.setattr(debug_trace, "TRACE_MOVE", False)
        assert not debug_trace.enabled("MOVE")
        monkeypatch.setattr(debug_trace, "TRACE_MOVE", True)
        assert debug_trace.enabled("MOVE")

    def test_log_file(self, monkeypatch, tmp_path):
        path = tmp_path / "trace.log"
        monkeypatch.setattr(debug_trace, "DEBUG_TRACE", True)
        monkeypatch.setattr(debug_trace, "CATEGORIES", frozenset())
        monkeypatch.setattr(debug_trace, "LOG_FILE", str(path))
        try:
            debug_trace.trace("to file", "STORE")
        finally:
            debug_trace.close_log()
        assert "[STORE] to file" in path.read_text(encoding="utf-8")
