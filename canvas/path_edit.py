"""
canvas/path_edit.py

Editing state for dragging individual path vertices and Bezier handles.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from models import PathShape, Point, Shape, iter_shapes
from debug_trace import trace

POINT = "point"
HANDLE_IN = "handle_in"
HANDLE_OUT = "handle_out"
HANDLE_TYPES = (POINT, HANDLE_IN, HANDLE_OUT)


@dataclass(frozen=True)
class EditingSegment:
    shape_id: int
    segment_index: int
    handle_type: str = POINT


def segment_at_point(shape: PathShape, point: Point, tolerance: float) -> Optional[Tuple[int, str]]:
    """Return ``(segment_index, handle_type)`` under ``point``, or None.

    Handles are tested before vertices so a handle lying on top of its own
    vertex can still be grabbed.
    """
    best: Optional[Tuple[float, int, str]] = None
    for i, seg in enumerate(shape.segments):
        for kind, offset in ((HANDLE_IN, seg.handle_in), (HANDLE_OUT, seg.handle_out)):
            if offset is None:
                continue
            d = math.hypot(point.x - (seg.point.x + offset.x), point.y - (seg.point.y + offset.y))
            if d <= tolerance and (best is None or d < best[0]):
                best = (d, i, kind)
    if best is not None:
        return best[1], best[2]
    for i, seg in enumerate(shape.segments):
        if math.hypot(point.x - seg.point.x, point.y - seg.point.y) <= tolerance:
            return i, POINT
    return None


class PathEditState:
    """Tracks which path segment (and which of its handles) is being edited."""

    def __init__(self, store):
        self.store = store
        self.enabled = False
        self.editing: Optional[EditingSegment] = None

    def select_segment(self, shape_id: int, segment_index: int, handle_type: str = POINT) -> bool:
        """Start editing a segment. Returns False for stale ids or indices."""
        if handle_type not in HANDLE_TYPES:
            raise ValueError(f"unknown handle type: {handle_type!r}")
        shape = self.store.find(shape_id)
        if not isinstance(shape, PathShape) or not 0 <= segment_index < len(shape.segments):
            return False
        self.editing = EditingSegment(shape_id, segment_index, handle_type)
        trace(f"editing segment {segment_index} ({handle_type}) of path {shape_id}", "GESTURE")
        return True

    def update_segment(self, point: Point) -> None:
        """Move the edited vertex to ``point``, or aim the edited handle at it.

        Handles are stored as offsets from their vertex.
        """
        editing = self.editing
        if editing is None:
            return

        def apply(items: List[Shape]) -> None:
            for s in iter_shapes(items):
                if s.id != editing.shape_id or not isinstance(s, PathShape):
                    continue
                if editing.segment_index >= len(s.segments):
                    return
                seg = s.segments[editing.segment_index]
                if editing.handle_type == POINT:
                    seg.point = Point(point.x, point.y)
                else:
                    offset = Point(point.x - seg.point.x, point.y - seg.point.y)
                    setattr(seg, editing.handle_type, offset)
                return

        self.store.update_shapes(apply)

    def clear_editing(self) -> None:
        self.editing = None
