"""
canvas/geometry.py

Pure geometry for the shape model: bounds, hit-testing, translation and
corner-handle resizing.

Every function dispatches on the concrete shape class and raises
``UnknownShapeVariant`` for anything else.  Nothing here touches Qt; text
width comes from an injected ``measure(text_shape) -> float`` callable so
the same code runs headless and under the Qt renderer.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence

from models import (
    AssetNotReady,
    Bounds,
    CommentShape,
    EllipseShape,
    EmptyGeometry,
    GeometryError,
    GroupShape,
    Handle,
    HANDLES,
    ImageShape,
    LineShape,
    PathShape,
    Point,
    RectShape,
    Shape,
    TextShape,
    UnknownShapeVariant,
    VariantMismatch,
)
from settings import get_settings

log = logging.getLogger(__name__)

TextMeasure = Callable[[TextShape], float]

__all__ = [
    "GeometryError", "EmptyGeometry", "AssetNotReady", "UnknownShapeVariant", "VariantMismatch",
    "TextMeasure", "ResizeFactors",
    "approximate_text_width", "get_bounds", "union_bounds", "selection_bounds",
    "get_shape_left", "get_shape_top", "point_to_segment_distance",
    "point_inside_shape", "find_shape", "offset_shape", "translate_shape",
    "resize_factors", "scale_shape", "commit_scaled", "resize_shape", "resize_selection",
    "handle_rects", "handle_at_point", "bounds_intersect", "marquee_hits",
]


# Helper functions to read shape settings
def _get_min_size() -> float:
    """Resize floor. Default: 10.0 units."""
    return get_settings().settings.canvas.shapes.min_size


def _get_hit_tolerance() -> float:
    """Line and path vertex hit distance. Default: 5.0 units."""
    return get_settings().settings.canvas.shapes.hit_tolerance


def _get_halo_padding() -> float:
    """Extra halo distance beyond half the stroke width. Default: 5.0 units."""
    return get_settings().settings.canvas.shapes.halo_padding


def _get_text_ascent() -> float:
    """Fixed text height above the baseline anchor. Default: 16.0 units."""
    return get_settings().settings.canvas.shapes.text_ascent


def approximate_text_width(shape: TextShape) -> float:
    """Headless text width estimate: 0.6 em per character."""
    return len(shape.content) * shape.font_size * 0.6


# ----------------------------
# Bounds
# ----------------------------

def get_bounds(shape: Shape, measure: Optional[TextMeasure] = None) -> Bounds:
    """Return the axis-aligned bounds of a shape.

    Groups return the union of their children; children whose image has not
    loaded are skipped.

    Raises:
        EmptyGeometry: For a path without segments or a group without children.
        AssetNotReady: For an image with no known size (or a group of only such images).
        UnknownShapeVariant: For anything that is not a known shape class.
    """
    if isinstance(shape, GroupShape):
        if not shape.children:
            raise EmptyGeometry(shape.id, "group")
        parts: List[Bounds] = []
        pending: Optional[AssetNotReady] = None
        for child in shape.children:
            try:
                parts.append(get_bounds(child, measure))
            except AssetNotReady as e:
                pending = e
        if not parts:
            raise pending or AssetNotReady(shape.id)
        return union_bounds(parts)

    if isinstance(shape, RectShape):
        return Bounds.from_corners(shape.x, shape.y, shape.x + shape.w, shape.y + shape.h)

    if isinstance(shape, EllipseShape):
        return Bounds.from_corners(shape.x, shape.y, shape.x + 2 * shape.rx, shape.y + 2 * shape.ry)

    if isinstance(shape, LineShape):
        return Bounds.from_corners(shape.x1, shape.y1, shape.x2, shape.y2)

    if isinstance(shape, PathShape):
        if not shape.segments:
            raise EmptyGeometry(shape.id, "path")
        xs = [seg.point.x for seg in shape.segments]
        ys = [seg.point.y for seg in shape.segments]
        return Bounds(min(xs), min(ys), max(xs), max(ys))

    if isinstance(shape, TextShape):
        width = (measure or approximate_text_width)(shape)
        x = shape.position.x
        if shape.justification == "center":
            x -= width / 2
        elif shape.justification == "right":
            x -= width
        baseline = shape.position.y
        return Bounds(x, baseline - _get_text_ascent(), x + width, baseline)

    if isinstance(shape, ImageShape):
        if shape.size is None:
            raise AssetNotReady(shape.id, shape.source)
        hw = abs(shape.size.width) / 2
        hh = abs(shape.size.height) / 2
        cx, cy = shape.position.x, shape.position.y
        return Bounds(cx - hw, cy - hh, cx + hw, cy + hh)

    raise UnknownShapeVariant(shape)


def union_bounds(bounds: Iterable[Bounds]) -> Optional[Bounds]:
    """Union of several bounds, or None for an empty iterable."""
    out: Optional[Bounds] = None
    for b in bounds:
        if out is None:
            out = Bounds(b.left, b.top, b.right, b.bottom)
        else:
            out = Bounds(min(out.left, b.left), min(out.top, b.top),
                         max(out.right, b.right), max(out.bottom, b.bottom))
    return out


def selection_bounds(shapes: Iterable[Shape], measure: Optional[TextMeasure] = None) -> Optional[Bounds]:
    """Union bounds of ``shapes``, skipping unloaded images and malformed shapes."""
    parts = []
    for shape in shapes:
        try:
            parts.append(get_bounds(shape, measure))
        except AssetNotReady:
            continue
        except EmptyGeometry as e:
            log.warning("Skipping malformed shape: %s", e)
    return union_bounds(parts)


def get_shape_left(shape: Shape, measure: Optional[TextMeasure] = None) -> float:
    return get_bounds(shape, measure).left


def get_shape_top(shape: Shape, measure: Optional[TextMeasure] = None) -> float:
    return get_bounds(shape, measure).top


# ----------------------------
# Hit testing
# ----------------------------

def point_to_segment_distance(p: Point, a: Point, b: Point) -> float:
    """Shortest distance from ``p`` to the segment ``a``-``b``."""
    dx = b.x - a.x
    dy = b.y - a.y
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(p.x - a.x, p.y - a.y)
    t = ((p.x - a.x) * dx + (p.y - a.y) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(p.x - (a.x + t * dx), p.y - (a.y + t * dy))


def _contains(b: Bounds, p: Point) -> bool:
    return b.left <= p.x <= b.right and b.top <= p.y <= b.bottom


def _polygon_contains(points: Sequence[Point], p: Point) -> bool:
    # even-odd ray cast
    inside = False
    j = len(points) - 1
    for i, pi in enumerate(points):
        pj = points[j]
        if (pi.y > p.y) != (pj.y > p.y):
            x_cross = (pj.x - pi.x) * (p.y - pi.y) / (pj.y - pi.y) + pi.x
            if p.x < x_cross:
                inside = not inside
        j = i
    return inside


def _path_hit(p: Point, shape: PathShape, tolerance: float) -> bool:
    if not shape.segments:
        raise EmptyGeometry(shape.id, "path")
    points = [seg.point for seg in shape.segments]
    for v in points:
        if math.hypot(p.x - v.x, p.y - v.y) <= tolerance:
            return True
    chords = list(zip(points, points[1:]))
    if shape.closed and len(points) > 2:
        chords.append((points[-1], points[0]))
    for a, b in chords:
        if point_to_segment_distance(p, a, b) <= tolerance:
            return True
    if shape.closed and len(points) > 2 and shape.style.fill_enabled and shape.style.fill:
        return _polygon_contains(points, p)
    return False


def point_inside_shape(point: Point, shape: Shape, tolerance: Optional[float] = None,
                       measure: Optional[TextMeasure] = None) -> bool:
    """Return True if ``point`` hits ``shape``.

    Rects, images and text use box containment, ellipses the normalized
    quadratic form, lines the distance to the segment, and paths the
    distance to a vertex or chord (plus even-odd containment when closed
    and filled).  Groups hit when any child does.  Unloaded images never hit.

    Raises:
        EmptyGeometry: For a path without segments.
        UnknownShapeVariant: For anything that is not a known shape class.
    """
    tol = _get_hit_tolerance() if tolerance is None else tolerance

    if isinstance(shape, GroupShape):
        return any(point_inside_shape(point, c, tol, measure) for c in shape.children)

    if isinstance(shape, (RectShape, TextShape)):
        return _contains(get_bounds(shape, measure), point)

    if isinstance(shape, ImageShape):
        try:
            return _contains(get_bounds(shape), point)
        except AssetNotReady:
            return False

    if isinstance(shape, EllipseShape):
        rx = abs(shape.rx)
        ry = abs(shape.ry)
        if rx == 0 or ry == 0:
            return False
        cx = shape.x + shape.rx
        cy = shape.y + shape.ry
        return ((point.x - cx) / rx) ** 2 + ((point.y - cy) / ry) ** 2 <= 1

    if isinstance(shape, LineShape):
        a = Point(shape.x1, shape.y1)
        b = Point(shape.x2, shape.y2)
        return point_to_segment_distance(point, a, b) <= tol

    if isinstance(shape, PathShape):
        return _path_hit(point, shape, tol)

    raise UnknownShapeVariant(shape)


def _safe_hit(point: Point, shape: Shape, tolerance: Optional[float],
              measure: Optional[TextMeasure]) -> bool:
    try:
        return point_inside_shape(point, shape, tolerance, measure)
    except EmptyGeometry as e:
        log.warning("Skipping malformed shape during hit test: %s", e)
        return False


def _halo_hit(point: Point, shape: Shape, padding: float, tolerance: Optional[float],
              measure: Optional[TextMeasure]) -> bool:
    # groups reach as far as the stroke of each child
    if isinstance(shape, GroupShape):
        return any(_halo_hit(point, child, padding, tolerance, measure)
                   for child in reversed(shape.children))
    reach = shape.style.line_width / 2 + padding
    offsets = (
        Point(point.x + reach, point.y),
        Point(point.x - reach, point.y),
        Point(point.x, point.y + reach),
        Point(point.x, point.y - reach),
    )
    return any(_safe_hit(p, shape, tolerance, measure) for p in offsets)


def find_shape(point: Point, shapes: Sequence[Shape], halo: bool = True,
               tolerance: Optional[float] = None,
               measure: Optional[TextMeasure] = None) -> Optional[Shape]:
    """Return the topmost shape under ``point``, or None.

    The exact point is tested first over the whole list (topmost first).
    When nothing hits and ``halo`` is on, a second pass tests four cardinal
    offsets at half the stroke width plus the halo padding around the point.
    """
    for shape in reversed(shapes):
        if _safe_hit(point, shape, tolerance, measure):
            return shape
    if not halo:
        return None
    padding = _get_halo_padding()
    for shape in reversed(shapes):
        if _halo_hit(point, shape, padding, tolerance, measure):
            return shape
    return None


# ----------------------------
# Translation
# ----------------------------

def offset_shape(shape: Shape, dx: float, dy: float) -> Shape:
    """Move ``shape`` (in place) by ``(dx, dy)``; returns the shape."""
    if isinstance(shape, GroupShape):
        for child in shape.children:
            offset_shape(child, dx, dy)
    elif isinstance(shape, (RectShape, EllipseShape)):
        shape.x += dx
        shape.y += dy
    elif isinstance(shape, LineShape):
        shape.x1 += dx
        shape.y1 += dy
        shape.x2 += dx
        shape.y2 += dy
    elif isinstance(shape, PathShape):
        for seg in shape.segments:
            seg.point.x += dx
            seg.point.y += dy
    elif isinstance(shape, (TextShape, ImageShape)):
        shape.position.x += dx
        shape.position.y += dy
    else:
        raise UnknownShapeVariant(shape)
    return shape


def translate_shape(shape: Shape, new_left: float, new_top: float,
                    measure: Optional[TextMeasure] = None) -> Shape:
    """Move ``shape`` so its bounds' top-left lands on ``(new_left, new_top)``.

    The delta is computed once from the shape's own bounds, so a group's
    children all move by the same amount.
    """
    b = get_bounds(shape, measure)
    return offset_shape(shape, new_left - b.left, new_top - b.top)


# ----------------------------
# Resizing
# ----------------------------

class ResizeFactors(NamedTuple):
    new_w: float
    new_h: float
    kx: float
    ky: float
    pivot: Point


def _handle_signs(handle: str):
    if handle not in HANDLES:
        raise ValueError(f"unknown resize handle: {handle!r}")
    sign_x = 1 if handle in (Handle.NE, Handle.SE) else -1
    sign_y = 1 if handle in (Handle.SE, Handle.SW) else -1
    return sign_x, sign_y


def resize_factors(handle: str, original_bounds: Bounds, cursor: Point, resize_origin: Point,
                   min_size: Optional[float] = None) -> ResizeFactors:
    """Compute the new size, scale factors and pivot for a corner-handle drag.

    The pivot is the corner opposite ``handle``.  Sizes are always clamped
    to ``min_size``.  An axis with zero extent has no scale, so ``kx`` or
    ``ky`` is 1 there and only the directly sized variants grow on it.
    """
    floor = _get_min_size() if min_size is None else min_size
    sign_x, sign_y = _handle_signs(handle)
    w = original_bounds.width
    h = original_bounds.height

    new_w = max(floor, w + (cursor.x - resize_origin.x) * sign_x)
    new_h = max(floor, h + (cursor.y - resize_origin.y) * sign_y)
    kx = new_w / w if w > 0 else 1.0
    ky = new_h / h if h > 0 else 1.0

    pivot = Point(
        original_bounds.left if sign_x > 0 else original_bounds.right,
        original_bounds.top if sign_y > 0 else original_bounds.bottom,
    )
    return ResizeFactors(new_w, new_h, kx, ky, pivot)


def _scale_point(p: Point, kx: float, ky: float, pivot: Point) -> None:
    p.x = pivot.x + (p.x - pivot.x) * kx
    p.y = pivot.y + (p.y - pivot.y) * ky


def scale_shape(shape: Shape, kx: float, ky: float, pivot: Point) -> Shape:
    """Scale ``shape`` in place about ``pivot``; call it on a snapshot clone.

    Text keeps its font size and only moves its anchor.  Segment handles are
    offsets, so they scale without the pivot.
    """
    if isinstance(shape, GroupShape):
        for child in shape.children:
            scale_shape(child, kx, ky, pivot)
    elif isinstance(shape, RectShape):
        shape.x = pivot.x + (shape.x - pivot.x) * kx
        shape.y = pivot.y + (shape.y - pivot.y) * ky
        shape.w *= kx
        shape.h *= ky
    elif isinstance(shape, EllipseShape):
        shape.x = pivot.x + (shape.x - pivot.x) * kx
        shape.y = pivot.y + (shape.y - pivot.y) * ky
        shape.rx *= kx
        shape.ry *= ky
    elif isinstance(shape, LineShape):
        shape.x1 = pivot.x + (shape.x1 - pivot.x) * kx
        shape.y1 = pivot.y + (shape.y1 - pivot.y) * ky
        shape.x2 = pivot.x + (shape.x2 - pivot.x) * kx
        shape.y2 = pivot.y + (shape.y2 - pivot.y) * ky
    elif isinstance(shape, PathShape):
        for seg in shape.segments:
            _scale_point(seg.point, kx, ky, pivot)
            if seg.handle_in is not None:
                seg.handle_in.x *= kx
                seg.handle_in.y *= ky
            if seg.handle_out is not None:
                seg.handle_out.x *= kx
                seg.handle_out.y *= ky
    elif isinstance(shape, TextShape):
        _scale_point(shape.position, kx, ky, pivot)
    elif isinstance(shape, ImageShape):
        _scale_point(shape.position, kx, ky, pivot)
        if shape.size is not None:
            shape.size.width *= kx
            shape.size.height *= ky
    else:
        raise UnknownShapeVariant(shape)
    return shape


# Geometry fields copied by commit_scaled, per variant
_GEOMETRY_FIELDS: Dict[type, tuple] = {
    RectShape: ("x", "y", "w", "h"),
    EllipseShape: ("x", "y", "rx", "ry"),
    LineShape: ("x1", "y1", "x2", "y2"),
    PathShape: ("segments",),
    TextShape: ("position",),
    CommentShape: ("position",),
    ImageShape: ("position", "size"),
}


def commit_scaled(live: Shape, scaled: Shape) -> None:
    """Copy the geometry of ``scaled`` onto ``live``, walking groups by index.

    Raises:
        VariantMismatch: If the two trees differ in shape class or child count.
    """
    if type(live) is not type(scaled):
        raise VariantMismatch(
            f"shape {live.id}: live {type(live).__name__} vs scaled {type(scaled).__name__}"
        )
    if isinstance(live, GroupShape):
        if len(live.children) != len(scaled.children):
            raise VariantMismatch(
                f"group {live.id}: {len(live.children)} live children vs {len(scaled.children)} scaled"
            )
        for lc, sc in zip(live.children, scaled.children):
            commit_scaled(lc, sc)
        return
    names = _GEOMETRY_FIELDS.get(type(live))
    if names is None:
        raise UnknownShapeVariant(live)
    for name in names:
        setattr(live, name, getattr(scaled, name))


def resize_shape(shape: Shape, snapshot, handle: str, original_bounds: Bounds,
                 cursor: Point, resize_origin: Point,
                 min_size: Optional[float] = None) -> ResizeFactors:
    """Resize a single live shape from its drag-start snapshot.

    Rects, images and ellipses get the new size directly with the corner
    opposite ``handle`` held fixed.  Lines move only the endpoints on the
    dragged side.  Paths, text and groups scale a fresh clone of the
    snapshot about the pivot and commit it onto ``shape``.

    Args:
        shape: Live shape to update in place.
        snapshot: Drag-start snapshot; ``snapshot.clone()`` must return a
            fresh deep copy of the shape as it was when the drag began.
        handle: One of ``nw``, ``ne``, ``se``, ``sw``.
        original_bounds: Bounds of the snapshot.
        cursor: Current pointer position.
        resize_origin: Pointer position at drag start.
    """
    f = resize_factors(handle, original_bounds, cursor, resize_origin, min_size)
    sign_x, sign_y = _handle_signs(handle)
    left = f.pivot.x if sign_x > 0 else f.pivot.x - f.new_w
    top = f.pivot.y if sign_y > 0 else f.pivot.y - f.new_h
    base = snapshot.clone()

    if isinstance(base, RectShape):
        base.x, base.y, base.w, base.h = left, top, f.new_w, f.new_h
    elif isinstance(base, EllipseShape):
        base.rx, base.ry = f.new_w / 2, f.new_h / 2
        base.x, base.y = left, top
    elif isinstance(base, ImageShape):
        if base.size is not None:
            base.size.width, base.size.height = f.new_w, f.new_h
            base.position.x = left + f.new_w / 2
            base.position.y = top + f.new_h / 2
    elif isinstance(base, LineShape):
        # Scaling about the opposite corner moves only the dragged-side endpoints
        scale_shape(base, f.kx, f.ky, f.pivot)
    elif isinstance(base, (PathShape, TextShape, GroupShape)):
        scale_shape(base, f.kx, f.ky, f.pivot)
    else:
        raise UnknownShapeVariant(base)

    commit_scaled(shape, base)
    return f


def resize_selection(shapes: Sequence[Shape], snapshots: Dict[int, object], handle: str,
                     original_bounds: Bounds, cursor: Point, resize_origin: Point,
                     min_size: Optional[float] = None) -> ResizeFactors:
    """Resize several shapes as one block.

    ``original_bounds`` is the union box at drag start.  Every shape scales
    its own snapshot clone by the same factors about the same pivot; shapes
    without a snapshot are left alone.
    """
    f = resize_factors(handle, original_bounds, cursor, resize_origin, min_size)
    for shape in shapes:
        snap = snapshots.get(shape.id)
        if snap is None:
            continue
        scaled = scale_shape(snap.clone(), f.kx, f.ky, f.pivot)
        commit_scaled(shape, scaled)
    return f


# ----------------------------
# Handles and marquee
# ----------------------------

def handle_rects(bounds: Bounds, handle_size: float, padding: float = 0.0) -> Dict[str, Bounds]:
    """Squares of side ``handle_size`` centred on the four (padded) corners."""
    half = handle_size / 2
    left = bounds.left - padding
    top = bounds.top - padding
    right = bounds.right + padding
    bottom = bounds.bottom + padding
    corners = {
        Handle.NW: (left, top),
        Handle.NE: (right, top),
        Handle.SE: (right, bottom),
        Handle.SW: (left, bottom),
    }
    return {
        name: Bounds(cx - half, cy - half, cx + half, cy + half)
        for name, (cx, cy) in corners.items()
    }


def handle_at_point(point: Point, bounds: Bounds, handle_size: float,
                    padding: float = 0.0) -> Optional[str]:
    """Return the handle under ``point`` or None."""
    for name, rect in handle_rects(bounds, handle_size, padding).items():
        if _contains(rect, point):
            return name
    return None


def bounds_intersect(bounds: Bounds, rect: Bounds) -> bool:
    """AABB overlap; touching edges count."""
    return not (
        bounds.right < rect.left
        or bounds.left > rect.right
        or bounds.bottom < rect.top
        or bounds.top > rect.bottom
    )


def marquee_hits(shapes: Iterable[Shape], rect: Bounds,
                 measure: Optional[TextMeasure] = None) -> List[int]:
    """Ids of shapes whose bounds overlap ``rect``, in z-order."""
    hits = []
    for shape in shapes:
        try:
            b = get_bounds(shape, measure)
        except AssetNotReady:
            continue
        except EmptyGeometry as e:
            log.warning("Skipping malformed shape in marquee: %s", e)
            continue
        if bounds_intersect(b, rect):
            hits.append(shape.id)
    return hits
