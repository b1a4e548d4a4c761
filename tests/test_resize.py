"""Corner-handle resizing from drag-start snapshots."""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from models import (
    Bounds,
    EllipseShape,
    GroupShape,
    ImageShape,
    LineShape,
    PathShape,
    Point,
    RectShape,
    Segment,
    Size,
    TextShape,
    VariantMismatch,
)
from canvas.geometry import (
    commit_scaled,
    get_bounds,
    resize_factors,
    resize_selection,
    resize_shape,
    scale_shape,
)
from canvas.snapshot import capture_all, capture_geometry


def drag(shape, handle, dx, dy):
    """Resize ``shape`` as if its ``handle`` were dragged by ``(dx, dy)``."""
    snap = capture_geometry(shape)
    b = snap.bounds
    origin = {
        "nw": Point(b.left, b.top),
        "ne": Point(b.right, b.top),
        "se": Point(b.right, b.bottom),
        "sw": Point(b.left, b.bottom),
    }[handle]
    cursor = Point(origin.x + dx, origin.y + dy)
    return resize_shape(shape, snap, handle, b, cursor, origin)


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------

class TestResizeFactors:

    def test_se_grows_and_pivots_on_nw(self):
        f = resize_factors("se", Bounds(10, 10, 30, 30), Point(45, 45), Point(30, 30))
        assert (f.new_w, f.new_h) == (35, 35)
        assert f.kx == pytest.approx(1.75)
        assert f.pivot == Point(10, 10)

    def test_nw_signs_are_negative(self):
        f = resize_factors("nw", Bounds(0, 0, 100, 100), Point(-10, 20), Point(0, 0))
        assert (f.new_w, f.new_h) == (110, 80)
        assert f.pivot == Point(100, 100)

    @pytest.mark.parametrize("handle", ["nw", "ne", "se", "sw"])
    def test_minimum_size_is_enforced(self, handle):
        f = resize_factors(handle, Bounds(0, 0, 50, 50), Point(-1000, -1000), Point(0, 0))
        g = resize_factors(handle, Bounds(0, 0, 50, 50), Point(1000, 1000), Point(0, 0))
        for r in (f, g):
            assert r.new_w >= 10
            assert r.new_h >= 10

    def test_zero_extent_axis_keeps_scale_one(self):
        f = resize_factors("se", Bounds(0, 0, 0, 50), Point(30, 10), Point(0, 0))
        assert f.kx == 1.0
        assert f.new_w == 30
        assert f.new_h == 60

    def test_zero_extent_axis_is_still_clamped(self):
        f = resize_factors("nw", Bounds(5, 5, 5, 5), Point(5, 5), Point(5, 5))
        assert (f.new_w, f.new_h) == (10, 10)
        assert (f.kx, f.ky) == (1.0, 1.0)
        assert f.pivot == Point(5, 5)

    def test_unknown_handle(self):
        with pytest.raises(ValueError):
            resize_factors("n", Bounds(0, 0, 1, 1), Point(0, 0), Point(0, 0))


# ---------------------------------------------------------------------------
# Single shapes
# ---------------------------------------------------------------------------

class TestResizeShape:

    def test_rect_se_example(self):
        rect = RectShape(id=1, x=10, y=10, w=20, h=20)
        drag(rect, "se", 15, 15)
        assert (rect.x, rect.y, rect.w, rect.h) == (10, 10, 35, 35)

    def test_rect_nw_keeps_se_corner(self):
        rect = RectShape(id=1, x=10, y=10, w=20, h=20)
        drag(rect, "nw", -5, 5)
        assert (rect.x, rect.y, rect.w, rect.h) == (5, 15, 25, 15)
        assert get_bounds(rect).right == 30
        assert get_bounds(rect).bottom == 30

    def test_rect_clamped_past_opposite_edge(self):
        rect = RectShape(id=1, x=0, y=0, w=40, h=40)
        drag(rect, "ne", -500, 500)
        assert (rect.w, rect.h) == (10, 10)
        assert (rect.x, rect.y) == (0, 30)

    @pytest.mark.parametrize("shape", [
        RectShape(id=1, x=10, y=10, w=20, h=20),
        EllipseShape(id=2, x=3, y=4, rx=10, ry=7),
        LineShape(id=3, x1=0, y1=0, x2=30, y2=15),
        PathShape.from_points(4, [Point(0, 0), Point(12, 30), Point(40, 5)]),
        TextShape(id=5, position=Point(10, 40), content="abc"),
        ImageShape(id=6, position=Point(20, 20), size=Size(16, 12)),
        GroupShape(id=7, children=[RectShape(id=8, x=0, y=0, w=10, h=10),
                                   EllipseShape(id=9, x=20, y=20, rx=5, ry=5)]),
    ], ids=lambda s: s.KIND)
    def test_zero_movement_is_identity(self, shape):
        before = capture_geometry(shape).clone()
        drag(shape, "se", 0, 0)
        assert shape == before

    def test_ellipse_radius_is_half_size(self):
        ellipse = EllipseShape(id=1, x=0, y=0, rx=10, ry=10)
        drag(ellipse, "sw", -10, 20)
        assert (ellipse.rx, ellipse.ry) == (15, 20)
        assert (ellipse.x, ellipse.y) == (-10, 0)

    def test_zero_size_rect_grows_to_minimum(self):
        rect = RectShape(id=1, x=100, y=100, w=0, h=0)
        drag(rect, "se", 5, 3)
        assert (rect.x, rect.y, rect.w, rect.h) == (100, 100, 10, 10)

    def test_flat_ellipse_grows_on_zero_axis(self):
        ellipse = EllipseShape(id=1, x=0, y=0, rx=20, ry=0)
        drag(ellipse, "se", 0, 30)
        assert (ellipse.rx, ellipse.ry) == (20, 15)
        assert (ellipse.x, ellipse.y) == (0, 0)

    def test_flat_line_stays_flat(self):
        line = LineShape(id=1, x1=0, y1=0, x2=20, y2=0)
        drag(line, "se", 20, 20)
        assert (line.x1, line.y1, line.x2, line.y2) == (0, 0, 40, 0)

    def test_image_keeps_fixed_corner(self):
        image = ImageShape(id=1, position=Point(50, 50), size=Size(20, 20))
        drag(image, "nw", -10, -10)
        assert image.size == Size(30, 30)
        assert get_bounds(image) == Bounds(30, 30, 60, 60)

    def test_line_moves_dragged_side_only(self):
        line = LineShape(id=1, x1=0, y1=0, x2=20, y2=20)
        drag(line, "se", 10, 5)
        assert (line.x1, line.y1) == (0, 0)
        assert (line.x2, line.y2) == pytest.approx((30, 25))

    def test_line_nw_moves_first_endpoint(self):
        line = LineShape(id=1, x1=0, y1=0, x2=20, y2=20)
        drag(line, "nw", -10, -10)
        assert (line.x1, line.y1) == pytest.approx((-10, -10))
        assert (line.x2, line.y2) == (20, 20)

    def test_path_scales_from_snapshot_not_live(self):
        path = PathShape.from_points(1, [Point(0, 0), Point(10, 10)])
        snap = capture_geometry(path)
        b = snap.bounds
        origin = Point(10, 10)
        # Several moves: each must restart from the snapshot
        for x in (15, 25, 20):
            resize_shape(path, snap, "se", b, Point(x, x), origin)
        assert path.segments[1].point == Point(20, 20)
        assert path.segments[0].point == Point(0, 0)

    def test_path_handles_scale_without_pivot(self):
        path = PathShape(id=1, segments=[
            Segment(Point(0, 0), handle_out=Point(4, 2)),
            Segment(Point(10, 10), handle_in=Point(-2, -4)),
        ])
        drag(path, "se", 10, 0)
        assert path.segments[0].handle_out == Point(8, 2)
        assert path.segments[1].handle_in == Point(-4, -4)

    def test_text_moves_anchor_only(self):
        text = TextShape(id=1, position=Point(0, 16), content="abcd", font_size=10)
        before_size = text.font_size
        snap = capture_geometry(text)
        resize_shape(text, snap, "nw", snap.bounds, Point(-24, 0), Point(0, 0))
        assert text.font_size == before_size
        assert text.position.x == pytest.approx(-24)

    def test_group_scales_children(self):
        group = GroupShape(id=1, children=[
            RectShape(id=2, x=0, y=0, w=10, h=10),
            RectShape(id=3, x=10, y=10, w=10, h=10),
        ])
        drag(group, "se", 20, 20)
        a, b = group.children
        assert (a.x, a.y, a.w, a.h) == (0, 0, 20, 20)
        assert (b.x, b.y, b.w, b.h) == (20, 20, 20, 20)

    def test_snapshot_never_mutated(self):
        rect = RectShape(id=1, x=0, y=0, w=10, h=10)
        snap = capture_geometry(rect)
        resize_shape(rect, snap, "se", snap.bounds, Point(30, 30), Point(10, 10))
        assert snap.clone() == RectShape(id=1, x=0, y=0, w=10, h=10)


# ---------------------------------------------------------------------------
# Selections
# ---------------------------------------------------------------------------

class TestResizeSelection:

    def test_shared_pivot_keeps_layout(self):
        a = RectShape(id=1, x=0, y=0, w=10, h=10)
        b = RectShape(id=2, x=30, y=0, w=10, h=10)
        snaps = capture_all([a, b])
        box = Bounds(0, 0, 40, 10)
        resize_selection([a, b], snaps, "se", box, Point(80, 20), Point(40, 10))
        assert (a.x, a.w, a.h) == (0, 20, 20)
        assert (b.x, b.w, b.h) == (60, 20, 20)

    def test_shapes_without_snapshot_untouched(self):
        a = RectShape(id=1, x=0, y=0, w=10, h=10)
        b = RectShape(id=2, x=30, y=0, w=10, h=10)
        snaps = capture_all([a])
        resize_selection([a, b], snaps, "se", Bounds(0, 0, 10, 10), Point(20, 20), Point(10, 10))
        assert b == RectShape(id=2, x=30, y=0, w=10, h=10)


class TestCommit:

    def test_variant_mismatch(self):
        with pytest.raises(VariantMismatch):
            commit_scaled(RectShape(id=1), EllipseShape(id=1))

    def test_child_count_mismatch(self):
        live = GroupShape(id=1, children=[RectShape(id=2), RectShape(id=3)])
        scaled = GroupShape(id=1, children=[RectShape(id=2)])
        with pytest.raises(VariantMismatch):
            commit_scaled(live, scaled)

    def test_commit_keeps_style_and_content(self):
        live = TextShape(id=1, position=Point(0, 0), content="live")
        scaled = scale_shape(TextShape(id=1, position=Point(2, 2), content="other"), 2, 2, Point(0, 0))
        commit_scaled(live, scaled)
        assert live.position == Point(4, 4)
        assert live.content == "live"
