"""Color parsing and record key ordering."""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from PyQt6.QtGui import QColor

from utils import hex_to_qcolor, sort_document, with_opacity


class TestColors:

    @pytest.mark.parametrize("text, rgba", [
        ("#F00", (255, 0, 0, 255)),
        ("#00FF00", (0, 255, 0, 255)),
        ("#0C8CE91A", (12, 140, 233, 26)),
        (" 0000ff ", (0, 0, 255, 255)),
    ])
    def test_hex_forms(self, text, rgba):
        c = hex_to_qcolor(text, QColor(1, 2, 3))
        assert (c.red(), c.green(), c.blue(), c.alpha()) == rgba

    @pytest.mark.parametrize("text", [None, "", "#12", "#GGGGGG", "red"])
    def test_fallback(self, text):
        assert hex_to_qcolor(text, QColor(1, 2, 3)) == QColor(1, 2, 3)

    def test_with_opacity_scales_alpha(self):
        c = with_opacity(QColor(0, 0, 0, 200), 0.5)
        assert c.alpha() == 100
        assert with_opacity(QColor(0, 0, 0), 7).alpha() == 255


class TestKeyOrder:

    def test_shape_keys_canonical(self):
        doc = sort_document({"shapes": [
            {"style": {}, "h": 1, "w": 1, "type": "rect", "y": 0, "x": 0, "id": 1, "extra": True},
            {"children": [{"type": "rect", "id": 3, "x": 0, "y": 0, "w": 1, "h": 1}], "type": "group", "id": 2},
        ], "version": 1})
        assert list(doc["shapes"][0]) == ["id", "type", "x", "y", "w", "h", "style", "extra"]
        assert list(doc["shapes"][1]["children"][0])[:2] == ["id", "type"]
        assert doc["version"] == 1
