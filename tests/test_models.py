"""Shape model records and style merging."""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models import (
    CommentShape,
    EllipseShape,
    Gradient,
    GroupShape,
    ImageShape,
    LineShape,
    PathShape,
    Point,
    RectShape,
    Segment,
    Shadow,
    ShapeStyle,
    Size,
    TextShape,
    UnknownShapeVariant,
    collect_ids,
    iter_shapes,
    shape_from_record,
    shape_to_record,
)


def _sample_shapes():
    style = ShapeStyle(
        fill="#FF0000",
        stroke="#000000",
        fill_enabled=True,
        stroke_enabled=False,
        line_width=3.0,
        opacity=0.5,
        shadow=Shadow(offset_x=2, offset_y=3, blur=4, color="#333333", opacity=0.4),
        gradient=Gradient(type="radial", colors=["#FFFFFF", "#000000"]),
        radius=6.0,
    )
    path = PathShape(
        id=1,
        style=style,
        segments=[
            Segment(Point(0, 0), handle_out=Point(5, 0)),
            Segment(Point(10, 10), handle_in=Point(-5, 0), handle_out=Point(0, 5)),
            Segment(Point(20, 0)),
        ],
        closed=True,
        corner_radius=4.0,
    )
    return [
        path,
        RectShape(id=2, x=10, y=20, w=30, h=40),
        EllipseShape(id=3, x=1, y=2, rx=3, ry=4),
        LineShape(id=4, x1=0, y1=1, x2=2, y2=3),
        TextShape(id=5, position=Point(5, 50), content="Hello", font_size=20,
                  font_family="serif", justification="center"),
        CommentShape(id=6, position=Point(7, 70), content="Review me", time="2026-01-02T03:04:05"),
        ImageShape(id=7, position=Point(100, 100), size=Size(40, 30), source="pic.png", radius=3),
        GroupShape(id=8, children=[RectShape(id=9, x=0, y=0, w=5, h=5),
                                   LineShape(id=10, x1=1, y1=1, x2=4, y2=4)]),
    ]


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class TestRecords:

    @pytest.mark.parametrize("shape", _sample_shapes(), ids=lambda s: s.KIND)
    def test_every_variant_round_trips(self, shape):
        assert shape_from_record(shape_to_record(shape)) == shape

    def test_record_uses_camel_case_keys(self):
        path = _sample_shapes()[0]
        rec = shape_to_record(path)
        assert rec["type"] == "path"
        assert rec["cornerRadius"] == 4.0
        assert rec["segments"][0]["handleOut"] == {"x": 5, "y": 0}
        assert "handleIn" not in rec["segments"][0]
        assert rec["style"]["fillEnabled"] is True
        assert rec["style"]["lineWidth"] == 3.0
        assert rec["style"]["shadow"]["offsetX"] == 2

    def test_text_record_fields(self):
        rec = shape_to_record(_sample_shapes()[4])
        assert rec["content"] == "Hello"
        assert rec["position"] == {"x": 5, "y": 50}
        assert rec["fontSize"] == 20
        assert rec["fontFamily"] == "serif"
        assert rec["justification"] == "center"

    def test_image_ready_is_not_serialized(self):
        image = ImageShape(id=1, position=Point(0, 0), source="a.png", ready=True)
        rec = shape_to_record(image)
        assert "ready" not in rec
        assert "size" not in rec
        assert shape_from_record(rec).ready is False

    def test_group_children_round_trip(self):
        group = _sample_shapes()[-1]
        back = shape_from_record(shape_to_record(group))
        assert [c.id for c in back.children] == [9, 10]
        assert isinstance(back.children[1], LineShape)

    def test_unknown_type_raises(self):
        with pytest.raises(UnknownShapeVariant):
            shape_from_record({"id": 1, "type": "star"})

    def test_non_shape_cannot_be_serialized(self):
        with pytest.raises(UnknownShapeVariant):
            shape_to_record(object())


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------

class TestShapeStyle:

    def test_merged_returns_new_style(self):
        base = ShapeStyle(fill="#111111", line_width=1.0)
        out = base.merged({"line_width": 4.0})
        assert out.line_width == 4.0
        assert out.fill == "#111111"
        assert base.line_width == 1.0

    def test_shadow_patch_merges_into_existing(self):
        base = ShapeStyle(shadow=Shadow(offset_x=1, offset_y=2, color="#123456"))
        out = base.merged({"shadow": {"offset_x": 9}})
        assert out.shadow.offset_x == 9
        assert out.shadow.offset_y == 2
        assert out.shadow.color == "#123456"

    def test_shadow_patch_creates_shadow(self):
        out = ShapeStyle().merged({"shadow": {"blur": 3}})
        assert out.shadow == Shadow(blur=3)

    def test_gradient_dict_replaces(self):
        out = ShapeStyle().merged({"gradient": {"type": "linear", "colors": ["#000000"]}})
        assert out.gradient == Gradient("linear", ["#000000"])

    def test_unknown_attribute_rejected(self):
        with pytest.raises(KeyError):
            ShapeStyle().merged({"colour": "#000000"})

    def test_missing_style_record_uses_defaults(self):
        assert ShapeStyle.from_dict(None) == ShapeStyle()


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------

class TestTreeHelpers:

    def test_iter_shapes_visits_parents_first(self):
        ids = [s.id for s in iter_shapes(_sample_shapes())]
        assert ids == [1, 2, 3, 4, 5, 6, 7, 8, 9, 10]

    def test_collect_ids_keeps_duplicates(self):
        shapes = [RectShape(id=1), GroupShape(id=2, children=[RectShape(id=1)])]
        assert collect_ids(shapes) == [1, 2, 1]
