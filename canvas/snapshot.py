"""
canvas/snapshot.py

Immutable geometry snapshots captured when a drag starts.

Resizing and moving always recompute from the snapshot plus the current
cursor, never from the already-modified live shape, so repeated pointer
moves cannot compound rounding errors.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from models import AssetNotReady, Bounds, EmptyGeometry, Shape

from canvas.geometry import TextMeasure, get_bounds


@dataclass(frozen=True)
class GeometrySnapshot:
    """A private deep copy of a shape and its bounds at capture time.

    The stored copy is never handed out; ``clone()`` returns a new deep copy
    on every call.  ``bounds`` is None when the shape had no computable
    bounds (an unloaded image, for instance).
    """
    shape_id: int
    _shape: Shape
    bounds: Optional[Bounds]

    def clone(self) -> Shape:
        return copy.deepcopy(self._shape)


def capture_geometry(shape: Shape, measure: Optional[TextMeasure] = None) -> GeometrySnapshot:
    """Capture a snapshot of ``shape`` for a move or resize gesture."""
    try:
        bounds = get_bounds(shape, measure)
    except (AssetNotReady, EmptyGeometry):
        bounds = None
    return GeometrySnapshot(shape.id, copy.deepcopy(shape), bounds)


def capture_all(shapes: Iterable[Shape], measure: Optional[TextMeasure] = None) -> Dict[int, GeometrySnapshot]:
    """Snapshots keyed by shape id."""
    return {s.id: capture_geometry(s, measure) for s in shapes}
