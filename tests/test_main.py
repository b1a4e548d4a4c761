"""Main window wiring: toolbar tools, commands and document loading."""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import main
from models import RectShape, Tool
from document import save_document
from settings import get_settings


class _SilentBox:
    shown = []

    @classmethod
    def critical(cls, parent, title, text):
        cls.shown.append(title)


@pytest.fixture()
def window(qapp, monkeypatch):
    _SilentBox.shown = []
    monkeypatch.setattr(main, "QMessageBox", _SilentBox)
    w = main.MainWindow(get_settings())
    yield w
    w.canvas.detach()
    w.deleteLater()


class TestMainWindow:

    def test_open_document_on_start(self, qapp, tmp_path, monkeypatch):
        path = save_document(tmp_path / "scene.json", [RectShape(id=1, x=0, y=0, w=5, h=5)])
        monkeypatch.setattr(main, "QMessageBox", _SilentBox)
        w = main.MainWindow(get_settings(), str(path))
        try:
            assert [s.id for s in w.store.shapes] == [1]
            assert "Opened" in w.statusBar().currentMessage()
        finally:
            w.canvas.detach()
            w.deleteLater()

    def test_open_failure_reports(self, window, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{", encoding="utf-8")
        assert window.open_document(str(bad)) is False
        assert _SilentBox.shown == ["Open failed"]

    def test_tool_action_follows_controller(self, window):
        window.canvas.set_tool(Tool.RECT)
        assert window._tool_actions[Tool.RECT].isChecked()
        window.canvas.controller.set_tool(Tool.SELECT)
        assert window._tool_actions[Tool.SELECT].isChecked()

    def test_status_shows_layer_name(self, window):
        window.store.load_shapes([RectShape(id=1), RectShape(id=2)])
        window.store.select(2)
        assert window.statusBar().currentMessage() == "Selected: Rect"
        window.store.set_selection([1, 2])
        assert window.statusBar().currentMessage() == "2 shapes selected"
