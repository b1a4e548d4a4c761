"""JSON document import/export and schema validation."""
from __future__ import annotations

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models import (
    CommentShape,
    GroupShape,
    ImageShape,
    LineShape,
    PathShape,
    Point,
    RectShape,
    ShapeStyle,
    TextShape,
)
from canvas.store import SceneStore
from document import (
    DOCUMENT_VERSION,
    DocumentError,
    export_document,
    export_json,
    import_json,
    load_document,
    parse_document,
    save_document,
)
from schemas import validate_document


def _scene():
    return [
        RectShape(id=1, style=ShapeStyle(fill="#FF0000"), x=0, y=0, w=10, h=20),
        PathShape.from_points(2, [Point(0, 0), Point(5, 5), Point(10, 0)], closed=True),
        GroupShape(id=3, children=[
            LineShape(id=4, x1=0, y1=0, x2=3, y2=4),
            TextShape(id=5, position=Point(1, 2), content="hi"),
        ]),
        CommentShape(id=6, position=Point(0, 0), content="note", time="2026-10-19T10:00:00"),
        ImageShape(id=7, position=Point(5, 5), source="data:image/png;base64,AAAA"),
    ]


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

class TestExport:

    def test_document_envelope(self):
        doc = export_document(_scene())
        assert doc["version"] == DOCUMENT_VERSION
        assert [rec["id"] for rec in doc["shapes"]] == [1, 2, 3, 6, 7]

    def test_exported_document_is_schema_valid(self):
        ok, errors = validate_document(export_document(_scene()))
        assert ok, errors

    def test_records_lead_with_id_and_type(self):
        doc = export_document(_scene())
        for rec in doc["shapes"]:
            assert list(rec)[:2] == ["id", "type"]

    def test_export_from_store(self):
        store = SceneStore(_scene())
        assert export_document(store) == export_document(_scene())

    def test_export_json_is_text(self):
        text = export_json(_scene())
        assert json.loads(text)["shapes"][0]["type"] == "rect"


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------

class TestImport:

    def test_round_trip(self):
        assert import_json(export_json(_scene())) == _scene()

    def test_bare_list_accepted(self):
        shapes = parse_document([{"id": 1, "type": "rect", "x": 0, "y": 0, "w": 1, "h": 1}])
        assert shapes == [RectShape(id=1, x=0, y=0, w=1, h=1)]

    def test_invalid_json(self):
        with pytest.raises(DocumentError, match="Invalid JSON"):
            import_json("{not json")

    def test_non_object_rejected(self):
        with pytest.raises(DocumentError):
            parse_document("shapes")

    def test_missing_required_field_reports_path(self):
        data = {"version": 1, "shapes": [{"id": 1, "type": "rect", "x": 0, "y": 0, "w": 1}]}
        with pytest.raises(DocumentError) as excinfo:
            parse_document(data)
        assert any(e.startswith("shapes -> 0") for e in excinfo.value.errors)

    def test_unknown_type_rejected(self):
        with pytest.raises(DocumentError):
            parse_document({"shapes": [{"id": 1, "type": "star"}]})

    def test_empty_path_rejected(self):
        with pytest.raises(DocumentError):
            parse_document({"shapes": [{"id": 1, "type": "path", "segments": []}]})

    def test_empty_group_rejected(self):
        with pytest.raises(DocumentError):
            parse_document({"shapes": [{"id": 1, "type": "group", "children": []}]})

    def test_bad_color_rejected(self):
        rec = {"id": 1, "type": "rect", "x": 0, "y": 0, "w": 1, "h": 1, "style": {"fill": "red"}}
        ok, errors = validate_document({"shapes": [rec]})
        assert not ok
        assert errors[0].startswith("shapes -> 0 -> style -> fill")

    def test_short_hex_color_accepted(self):
        rec = {"id": 1, "type": "rect", "x": 0, "y": 0, "w": 1, "h": 1, "style": {"fill": "#F00"}}
        assert parse_document({"shapes": [rec]})[0].style.fill == "#F00"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestFiles:

    def test_save_then_load_into_store(self, tmp_path):
        path = save_document(tmp_path / "docs" / "scene.json", _scene())
        store = SceneStore()
        store.select(1)
        shapes = load_document(path, store)
        assert shapes == _scene()
        assert [s.id for s in store.shapes] == [1, 2, 3, 6, 7]
        assert store.new_id() == 8

    def test_duplicate_ids_raise_document_error(self, tmp_path):
        path = tmp_path / "dupes.json"
        path.write_text(json.dumps({"shapes": [
            {"id": 1, "type": "rect", "x": 0, "y": 0, "w": 1, "h": 1},
            {"id": 1, "type": "line", "x1": 0, "y1": 0, "x2": 1, "y2": 1},
        ]}), encoding="utf-8")
        store = SceneStore([RectShape(id=9)])
        with pytest.raises(DocumentError):
            load_document(path, store)
        # Store is untouched by a failed load
        assert [s.id for s in store.shapes] == [9]

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_document(tmp_path / "nope.json")
