"""
canvas/store.py

Scene store: the single mutable source of shapes, selection and the active
style template.

Every mutation builds a new tuple of top-level shapes and swaps it in with
one assignment, then prunes the selection, then notifies subscribers.
Readers therefore never see a half-applied change.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from models import (
    GroupShape,
    ImageShape,
    LineShape,
    PathShape,
    Point,
    Segment,
    Shape,
    ShapeStyle,
    Size,
    collect_ids,
    iter_shapes,
)
from settings import get_settings
from debug_trace import trace

from canvas.geometry import (
    AssetNotReady,
    EmptyGeometry,
    TextMeasure,
    get_bounds,
    offset_shape,
    scale_shape,
)

Listener = Callable[["SceneStore"], None]

# Default layer label per shape kind
_LAYER_LABELS: Dict[str, str] = {
    "rect": "Rect",
    "ellipse": "Ellipse",
    "line": "Line",
    "path": "Path",
    "text": "Text",
    "comment": "Comment",
    "image": "Image",
    "group": "Group",
}


class DuplicateShapeId(ValueError):
    """A shape id is already used somewhere in the scene tree."""


def default_active_style() -> ShapeStyle:
    """Active style template built from ``[defaults.style]`` settings."""
    s = get_settings().settings.defaults.style
    return ShapeStyle(
        fill=s.fill,
        stroke=s.stroke,
        fill_enabled=s.fill_enabled,
        stroke_enabled=s.stroke_enabled,
        line_width=s.line_width,
        opacity=s.opacity,
    )


class SceneStore:
    """Ordered shapes (index 0 is back-most), selection and active style."""

    def __init__(self, shapes: Optional[Iterable[Shape]] = None,
                 active_style: Optional[ShapeStyle] = None,
                 measure: Optional[TextMeasure] = None):
        self._shapes: Tuple[Shape, ...] = ()
        self._selection: Tuple[int, ...] = ()
        self._listeners: List[Listener] = []
        self._next_id = 1
        self._layer_names: Dict[int, str] = {}
        self._layer_counts: Dict[str, int] = {}
        self.active_style: ShapeStyle = active_style or default_active_style()
        self.measure = measure
        if shapes:
            self.load_shapes(list(shapes), notify=False)

    # ---- read access ----

    @property
    def shapes(self) -> Tuple[Shape, ...]:
        return self._shapes

    @property
    def selected_ids(self) -> frozenset:
        return frozenset(self._selection)

    @property
    def selection_order(self) -> Tuple[int, ...]:
        """Selected ids in the order they were selected."""
        return self._selection

    def selected_shapes(self) -> List[Shape]:
        """Selected top-level shapes in z-order."""
        sel = set(self._selection)
        return [s for s in self._shapes if s.id in sel]

    def is_selected(self, shape_id: int) -> bool:
        return shape_id in self._selection

    def get(self, shape_id: int) -> Optional[Shape]:
        """Top-level shape by id."""
        for s in self._shapes:
            if s.id == shape_id:
                return s
        return None

    def find(self, shape_id: int) -> Optional[Shape]:
        """Shape by id anywhere in the tree, including group children."""
        for s in iter_shapes(self._shapes):
            if s.id == shape_id:
                return s
        return None

    def index_of(self, shape_id: int) -> int:
        for i, s in enumerate(self._shapes):
            if s.id == shape_id:
                return i
        return -1

    # ---- listeners ----

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb(self)

    def _commit(self, shapes: Sequence[Shape], selection: Optional[Sequence[int]] = None,
                notify: bool = True) -> None:
        self._shapes = tuple(shapes)
        top = {s.id for s in self._shapes}
        chosen = self._selection if selection is None else tuple(selection)
        seen = set()
        pruned = []
        for i in chosen:
            if i in top and i not in seen:
                seen.add(i)
                pruned.append(i)
        self._selection = tuple(pruned)
        if self._layer_names:
            live = set(collect_ids(self._shapes))
            self._layer_names = {i: n for i, n in self._layer_names.items() if i in live}
        trace(f"commit: {len(self._shapes)} shapes, selection={list(self._selection)}", "STORE")
        if notify:
            self._notify()

    # ---- ids ----

    def new_id(self) -> int:
        """Allocate a fresh id; ids are never reused within this store."""
        shape_id = self._next_id
        self._next_id += 1
        return shape_id

    def _reserve_ids(self, ids: Iterable[int]) -> None:
        for i in ids:
            if i >= self._next_id:
                self._next_id = i + 1

    # ---- shape list mutations ----

    def insert(self, shape: Shape) -> Shape:
        """Append ``shape`` on top of the z-order.

        Raises:
            DuplicateShapeId: If any id in ``shape``'s subtree is already used.
        """
        existing = set(collect_ids(self._shapes))
        incoming = collect_ids([shape])
        clash = existing.intersection(incoming)
        if clash or len(set(incoming)) != len(incoming):
            raise DuplicateShapeId(f"shape id already in use: {sorted(clash) or incoming}")
        self._reserve_ids(incoming)
        self._commit(self._shapes + (shape,))
        return shape

    def replace_shapes(self, shapes: Iterable[Shape]) -> None:
        """Swap top-level shapes by id in one commit; unknown ids are ignored."""
        by_id = {s.id: s for s in shapes}
        if not by_id:
            return
        self._commit([by_id.get(s.id, s) for s in self._shapes])

    def update_shapes(self, mutator: Callable[[List[Shape]], Optional[List[Shape]]]) -> None:
        """Run ``mutator`` on a deep copy of the shape list and commit the result.

        The mutator may edit the list in place or return a new list.
        """
        working = copy.deepcopy(list(self._shapes))
        result = mutator(working)
        self._commit(working if result is None else result)

    def load_shapes(self, shapes: Iterable[Shape], notify: bool = True) -> None:
        """Replace the whole scene (used by import); selection clears.

        Raises:
            DuplicateShapeId: If an id appears more than once in the tree.
        """
        shapes = list(shapes)
        ids = collect_ids(shapes)
        if len(set(ids)) != len(ids):
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            raise DuplicateShapeId(f"duplicate shape ids in document: {dupes}")
        self._reserve_ids(ids)
        self._layer_names.clear()
        self._layer_counts.clear()
        self._commit(shapes, selection=(), notify=notify)

    def remove(self, ids: Iterable[int]) -> None:
        doomed = set(ids)
        if not doomed.intersection(s.id for s in self._shapes):
            return
        self._commit([s for s in self._shapes if s.id not in doomed])

    def delete_selected(self) -> None:
        self.remove(self._selection)

    # ---- selection ----

    def select(self, shape_id: int) -> None:
        """Replace the selection with ``{shape_id}``."""
        if self.get(shape_id) is None:
            return
        self._commit(self._shapes, selection=(shape_id,))

    def toggle(self, shape_id: int) -> None:
        if self.get(shape_id) is None:
            return
        if shape_id in self._selection:
            self._commit(self._shapes, selection=[i for i in self._selection if i != shape_id])
        else:
            self._commit(self._shapes, selection=self._selection + (shape_id,))

    def clear_selection(self) -> None:
        if not self._selection:
            return
        self._commit(self._shapes, selection=())

    def set_selection(self, ids: Iterable[int]) -> None:
        self._commit(self._shapes, selection=list(ids))

    def select_range(self, from_id: int, to_id: int) -> None:
        """Select the z-order slice between two ids, inclusive, in either order."""
        a = self.index_of(from_id)
        b = self.index_of(to_id)
        if a < 0 or b < 0:
            return
        lo, hi = min(a, b), max(a, b)
        self._commit(self._shapes, selection=[s.id for s in self._shapes[lo:hi + 1]])

    def extend_selection_to(self, shape_id: int) -> None:
        """Range-select from the last selected id (or the back-most shape) to ``shape_id``."""
        if not self._shapes:
            return
        anchor = self._selection[-1] if self._selection else self._shapes[0].id
        self.select_range(anchor, shape_id)

    # ---- z-order ----

    def _target_ids(self, ids: Optional[Iterable[int]]) -> set:
        return set(self._selection if ids is None else ids)

    def bring_to_front(self, ids: Optional[Iterable[int]] = None, mode: str = "adjacent") -> None:
        """Raise shapes in z-order; the moved subset keeps its relative order.

        Args:
            ids: Shapes to move (defaults to the selection).
            mode: ``"adjacent"`` swaps each past its next unselected neighbour;
                ``"absolute"`` moves them all to the very top.
        """
        chosen = self._target_ids(ids)
        if not chosen:
            return
        items = list(self._shapes)
        if mode == "absolute":
            items = [s for s in items if s.id not in chosen] + [s for s in items if s.id in chosen]
        elif mode == "adjacent":
            for i in range(len(items) - 2, -1, -1):
                if items[i].id in chosen and items[i + 1].id not in chosen:
                    items[i], items[i + 1] = items[i + 1], items[i]
        else:
            raise ValueError(f"unknown z-order mode: {mode!r}")
        self._commit(items)

    def send_to_back(self, ids: Optional[Iterable[int]] = None, mode: str = "adjacent") -> None:
        """Lower shapes in z-order; mirror of ``bring_to_front``."""
        chosen = self._target_ids(ids)
        if not chosen:
            return
        items = list(self._shapes)
        if mode == "absolute":
            items = [s for s in items if s.id in chosen] + [s for s in items if s.id not in chosen]
        elif mode == "adjacent":
            for i in range(1, len(items)):
                if items[i].id in chosen and items[i - 1].id not in chosen:
                    items[i], items[i - 1] = items[i - 1], items[i]
        else:
            raise ValueError(f"unknown z-order mode: {mode!r}")
        self._commit(items)

    # ---- structure ----

    def group(self, ids: Optional[Iterable[int]] = None) -> Optional[int]:
        """Wrap two or more top-level shapes in a new group placed on top.

        Returns:
            The new group's id, or None when fewer than two shapes qualify.
        """
        chosen = self._target_ids(ids)
        members = [s for s in self._shapes if s.id in chosen]
        if len(members) < 2:
            return None
        group = GroupShape(id=self.new_id(), children=members)
        rest = [s for s in self._shapes if s.id not in chosen]
        self._commit(rest + [group], selection=(group.id,))
        return group.id

    def ungroup(self, ids: Optional[Iterable[int]] = None) -> List[int]:
        """Splice each group's children in at the group's index; selection clears.

        Returns:
            Ids of the released children.
        """
        chosen = self._target_ids(ids)
        released: List[int] = []
        items: List[Shape] = []
        changed = False
        for s in self._shapes:
            if s.id in chosen and isinstance(s, GroupShape):
                items.extend(s.children)
                released.extend(c.id for c in s.children)
                changed = True
            else:
                items.append(s)
        if changed:
            self._commit(items, selection=())
        return released

    def merge(self, ids: Optional[Iterable[int]] = None) -> Optional[int]:
        """Join the points of two or more paths/lines into one open path.

        The merged path takes the first shape's style and goes on top;
        selection clears.

        Returns:
            The new path's id, or None when fewer than two shapes qualify.
        """
        chosen = self._target_ids(ids)
        members = [s for s in self._shapes
                   if s.id in chosen and isinstance(s, (PathShape, LineShape))]
        if len(members) < 2:
            return None
        segments: List[Segment] = []
        for s in members:
            if isinstance(s, LineShape):
                segments.append(Segment(Point(s.x1, s.y1)))
                segments.append(Segment(Point(s.x2, s.y2)))
            else:
                segments.extend(copy.deepcopy(s.segments))
        merged = PathShape(id=self.new_id(), style=copy.deepcopy(members[0].style),
                           segments=segments, closed=False)
        taken = {s.id for s in members}
        rest = [s for s in self._shapes if s.id not in taken]
        self._commit(rest + [merged], selection=())
        return merged.id

    # ---- style and geometry edits ----

    def _inherit_colors(self, style: ShapeStyle, patch: Dict[str, Any]) -> Dict[str, Any]:
        patch = dict(patch)
        if patch.get("fill_enabled") and "fill" not in patch and not style.fill:
            patch["fill"] = self.active_style.fill
        if patch.get("stroke_enabled") and "stroke" not in patch and not style.stroke:
            patch["stroke"] = self.active_style.stroke
        return patch

    def update_style(self, patch: Dict[str, Any]) -> None:
        """Merge ``patch`` into the selected shapes, or into the active style.

        Turning fill or stroke on for a shape without that color picks up
        the active style's color.  Group styles propagate to their children.
        """
        if not patch:
            return
        if not self._selection:
            self.active_style = self.active_style.merged(patch)
            trace(f"active style <- {patch}", "STORE")
            self._notify()
            return

        sel = set(self._selection)

        def restyle(shape: Shape) -> None:
            shape.style = shape.style.merged(self._inherit_colors(shape.style, patch))
            if isinstance(shape, GroupShape):
                for child in shape.children:
                    restyle(child)

        def apply(items: List[Shape]) -> None:
            for s in items:
                if s.id in sel:
                    restyle(s)

        self.update_shapes(apply)

    def set_corner_radius(self, shape_id: int, value: Optional[float]) -> None:
        """Set the corner radius of a single top-level path."""
        target = self.get(shape_id)
        if not isinstance(target, PathShape):
            return
        updated = copy.deepcopy(target)
        updated.corner_radius = None if value is None else max(0.0, float(value))
        self.replace_shapes([updated])

    def set_bounds(self, ids: Optional[Iterable[int]] = None, left: Optional[float] = None,
                   top: Optional[float] = None, width: Optional[float] = None,
                   height: Optional[float] = None) -> None:
        """Position/size edits from a numeric panel, applied to each shape.

        Sizes scale about the shape's top-left and are floored at 1.
        """
        chosen = self._target_ids(ids)
        if not chosen:
            return
        measure = self.measure

        def apply(items: List[Shape]) -> None:
            for s in items:
                if s.id not in chosen:
                    continue
                try:
                    b = get_bounds(s, measure)
                except (AssetNotReady, EmptyGeometry):
                    continue
                kx = max(1.0, width) / b.width if width is not None and b.width > 0 else 1.0
                ky = max(1.0, height) / b.height if height is not None and b.height > 0 else 1.0
                if kx != 1.0 or ky != 1.0:
                    scale_shape(s, kx, ky, Point(b.left, b.top))
                dx = 0.0 if left is None else left - b.left
                dy = 0.0 if top is None else top - b.top
                if dx or dy:
                    offset_shape(s, dx, dy)

        self.update_shapes(apply)

    def mark_image_ready(self, shape_id: int, width: float, height: float) -> None:
        """Record that an image bitmap finished loading with its natural size."""
        target = self.find(shape_id)
        if not isinstance(target, ImageShape) or target.ready:
            return

        def apply(items: List[Shape]) -> None:
            for s in iter_shapes(items):
                if s.id == shape_id and isinstance(s, ImageShape):
                    s.ready = True
                    if s.size is None:
                        s.size = Size(float(width), float(height))

        self.update_shapes(apply)

    # ---- layer panel ----

    def layer_name(self, shape_id: int) -> str:
        """Stable display name such as ``Rect`` or ``Rect 2``, assigned on first sight."""
        name = self._layer_names.get(shape_id)
        if name is not None:
            return name
        shape = self.find(shape_id)
        label = _LAYER_LABELS.get(shape.KIND, "Shape") if shape is not None else "Shape"
        count = self._layer_counts.get(label, 0) + 1
        self._layer_counts[label] = count
        name = label if count == 1 else f"{label} {count}"
        self._layer_names[shape_id] = name
        return name
