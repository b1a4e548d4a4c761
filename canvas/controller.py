"""
canvas/controller.py

Pointer and keyboard state machine for the drawing surface.

The controller turns down/move/up/leave/key events into store mutations.
It owns no shapes itself: every change goes through ``SceneStore`` so the
renderer and any panels see one consistent scene.

States::

    idle -> drawing | moving | resizing | marquee | editing_path -> idle

Drags always recompute from the pointer position at drag start plus
snapshots captured then, never from per-frame deltas.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional

from models import (
    Bounds,
    CommentShape,
    DRAG_TOOLS,
    EllipseShape,
    LineShape,
    PROMPT_TOOLS,
    PathShape,
    Point,
    RectShape,
    Segment,
    Shape,
    ShapeStyle,
    TextShape,
    Tool,
)
from settings import get_settings
from debug_trace import trace

from canvas.geometry import (
    commit_scaled,
    find_shape,
    handle_at_point,
    marquee_hits,
    offset_shape,
    resize_selection,
    resize_shape,
    selection_bounds,
    translate_shape,
)
from canvas.path_edit import PathEditState, segment_at_point
from canvas.snapshot import GeometrySnapshot, capture_all, capture_geometry
from canvas.store import SceneStore


class Gesture:
    """Controller state constants."""
    IDLE = "idle"
    DRAWING = "drawing"
    MOVING = "moving"
    RESIZING = "resizing"
    MARQUEE = "marquee"
    EDITING_PATH = "editing_path"


@dataclass
class PointerEvent:
    """Canvas-local pointer position plus modifier flags."""
    x: float
    y: float
    shift: bool = False
    ctrl: bool = False
    alt: bool = False

    @property
    def point(self) -> Point:
        return Point(self.x, self.y)


# Helper functions to read canvas settings
def _get_handle_size() -> float:
    """Get handle size from settings. Default: 8.0 pixels."""
    return get_settings().settings.canvas.handles.size


def _get_selection_padding() -> float:
    """Get selection box padding from settings. Default: 0.0 pixels."""
    return get_settings().settings.canvas.selection.padding


def _get_marquee_min_drag() -> float:
    """Get the smallest marquee that selects anything. Default: 2.0 pixels."""
    return get_settings().settings.canvas.marquee.min_drag


def _get_hit_tolerance() -> float:
    return get_settings().settings.canvas.shapes.hit_tolerance


class InteractionController:
    """Routes pointer/keyboard input to the scene store.

    Args:
        store: The scene store to edit.
        measure: Text width callable; defaults to the store's measurer.
        prompt_text: ``prompt_text(kind) -> Optional[str]`` asked for the
            content of new text and comment shapes.
    """

    def __init__(self, store: SceneStore, measure=None,
                 prompt_text: Optional[Callable[[str], Optional[str]]] = None):
        self.store = store
        self.measure = measure if measure is not None else store.measure
        self.path_edit = PathEditState(store)
        self.tool = Tool.SELECT
        self.gesture = Gesture.IDLE
        self.hovered_id: Optional[int] = None
        self.marquee_rect: Optional[Bounds] = None

        self.prompt_text = prompt_text
        self._on_tool_changed: Optional[Callable[[str], None]] = None
        self._on_hover_changed: Optional[Callable[[Optional[int]], None]] = None

        # Drag state
        self._start: Optional[Point] = None
        self._last: Optional[Point] = None
        self._snapshots: Dict[int, GeometrySnapshot] = {}
        self._resize_handle: Optional[str] = None
        self._resize_bounds: Optional[Bounds] = None
        self._drawing_id: Optional[int] = None
        self._marquee_additive = False
        self._prior_selection: tuple = ()

    # ---- collaborators ----

    def set_prompt_text_callback(self, callback: Optional[Callable[[str], Optional[str]]]):
        self.prompt_text = callback

    def set_on_tool_changed(self, callback: Optional[Callable[[str], None]]):
        self._on_tool_changed = callback

    def set_on_hover_changed(self, callback: Optional[Callable[[Optional[int]], None]]):
        self._on_hover_changed = callback

    def set_tool(self, tool: str) -> None:
        """Switch the active tool; an unfinished gesture is cancelled first."""
        if tool == self.tool:
            return
        self.cancel_active_gesture()
        self.tool = tool
        self._set_hovered(None)
        trace(f"tool -> {tool}", "GESTURE")
        if self._on_tool_changed:
            self._on_tool_changed(tool)

    def set_path_editing(self, enabled: bool) -> None:
        self.path_edit.enabled = enabled
        if not enabled:
            self.path_edit.clear_editing()

    # ---- pointer events ----

    def pointer_down(self, ev: PointerEvent) -> None:
        if self.gesture != Gesture.IDLE:
            # A release was never delivered for the previous drag
            self.cancel_active_gesture()
        p = ev.point
        self._start = p
        self._last = p
        if self.tool == Tool.SELECT:
            self._begin_select(ev)
        elif self.tool in DRAG_TOOLS:
            self._begin_drawing(p)
        elif self.tool in PROMPT_TOOLS:
            self._insert_text(self.tool, p)

    def pointer_move(self, ev: PointerEvent) -> None:
        p = ev.point
        self._last = p
        if self.gesture == Gesture.IDLE:
            self._update_hover(p)
            return
        trace(f"move {self.gesture} to ({p.x:.1f}, {p.y:.1f})", "MOVE")
        if self.gesture == Gesture.MOVING:
            self._apply_move(p)
        elif self.gesture == Gesture.RESIZING:
            self._apply_resize(p)
        elif self.gesture == Gesture.DRAWING:
            self._apply_drawing(p)
        elif self.gesture == Gesture.MARQUEE:
            self.marquee_rect = Bounds.from_corners(self._start.x, self._start.y, p.x, p.y)
        elif self.gesture == Gesture.EDITING_PATH:
            self.path_edit.update_segment(p)

    def pointer_up(self, ev: PointerEvent) -> None:
        if self.gesture != Gesture.IDLE and ev.point != self._last:
            self.pointer_move(ev)
        self._last = ev.point
        self._finish()

    def pointer_leave(self, ev: Optional[PointerEvent] = None) -> None:
        """Pointer left the canvas: finish any drag at the last known position."""
        if ev is not None and self.gesture != Gesture.IDLE and ev.point != self._last:
            self.pointer_move(ev)
        self._set_hovered(None)
        if self.gesture != Gesture.IDLE:
            self._finish()

    def key_down(self, key: str) -> bool:
        """Handle ``Delete``/``Backspace`` and ``Escape``. Returns True if consumed."""
        if key in ("Delete", "Backspace"):
            if self.gesture != Gesture.IDLE or not self.store.selected_ids:
                return False
            self.store.delete_selected()
            self._set_hovered(None)
            return True
        if key == "Escape":
            if self.gesture != Gesture.IDLE:
                self.cancel_active_gesture()
            else:
                self.path_edit.clear_editing()
                self.store.clear_selection()
            return True
        return False

    def cancel_active_gesture(self) -> bool:
        """Abandon the current drag without committing it.

        Moved, resized and edited shapes are restored from their snapshots,
        a provisional drawing is removed and a marquee puts back the
        selection it started from.

        Returns:
            True if a gesture was active.
        """
        gesture = self.gesture
        if gesture == Gesture.IDLE:
            return False
        trace(f"cancel {gesture}", "GESTURE")
        if gesture in (Gesture.MOVING, Gesture.RESIZING, Gesture.EDITING_PATH):
            snapshots = self._snapshots

            def restore(items: List[Shape]) -> List[Shape]:
                return [snapshots[s.id].clone() if s.id in snapshots else s for s in items]

            self.store.update_shapes(restore)
            self.path_edit.clear_editing()
        elif gesture == Gesture.DRAWING and self._drawing_id is not None:
            self.store.remove([self._drawing_id])
        elif gesture == Gesture.MARQUEE:
            self.store.set_selection(self._prior_selection)
        self._reset()
        return True

    # ---- select tool ----

    def _begin_select(self, ev: PointerEvent) -> None:
        p = ev.point
        store = self.store
        selected = store.selected_shapes()

        if self.path_edit.enabled and len(selected) == 1 and isinstance(selected[0], PathShape):
            hit = segment_at_point(selected[0], p, _get_hit_tolerance())
            if hit is not None and self.path_edit.select_segment(selected[0].id, hit[0], hit[1]):
                self._snapshots = {selected[0].id: capture_geometry(selected[0], self.measure)}
                self._enter(Gesture.EDITING_PATH)
                return

        if selected:
            box = selection_bounds(selected, self.measure)
            if box is not None:
                handle = handle_at_point(p, box, _get_handle_size(), _get_selection_padding())
                if handle is not None:
                    self._snapshots = capture_all(selected, self.measure)
                    self._resize_handle = handle
                    self._resize_bounds = box
                    self._enter(Gesture.RESIZING)
                    return

        hit = find_shape(p, store.shapes, halo=True, measure=self.measure)
        if hit is not None:
            if ev.shift or ev.ctrl:
                store.toggle(hit.id)
                if not store.is_selected(hit.id):
                    return
            elif not store.is_selected(hit.id):
                store.select(hit.id)
            self._snapshots = capture_all(store.selected_shapes(), self.measure)
            self._enter(Gesture.MOVING)
            return

        self._prior_selection = store.selection_order
        self._marquee_additive = ev.shift or ev.ctrl
        if not self._marquee_additive:
            store.clear_selection()
        self.marquee_rect = Bounds(p.x, p.y, p.x, p.y)
        self._enter(Gesture.MARQUEE)

    def _apply_move(self, p: Point) -> None:
        dx = p.x - self._start.x
        dy = p.y - self._start.y
        snapshots = self._snapshots
        measure = self.measure

        def move(items: List[Shape]) -> None:
            for s in items:
                snap = snapshots.get(s.id)
                if snap is None:
                    continue
                if snap.bounds is not None:
                    translate_shape(s, snap.bounds.left + dx, snap.bounds.top + dy, measure)
                else:
                    commit_scaled(s, offset_shape(snap.clone(), dx, dy))

        self.store.update_shapes(move)

    def _apply_resize(self, p: Point) -> None:
        snapshots = self._snapshots
        handle = self._resize_handle
        box = self._resize_bounds
        origin = self._start

        def resize(items: List[Shape]) -> None:
            targets = [s for s in items if s.id in snapshots]
            if len(targets) == 1:
                resize_shape(targets[0], snapshots[targets[0].id], handle, box, p, origin)
            elif targets:
                resize_selection(targets, snapshots, handle, box, p, origin)

        self.store.update_shapes(resize)

    # ---- creation tools ----

    def _new_shape_style(self, tool: str) -> ShapeStyle:
        style = copy.deepcopy(self.store.active_style)
        if tool in (Tool.LINE, Tool.PEN):
            # Open strokes have nothing to fill and are invisible without a stroke
            return style.merged({
                "stroke_enabled": True,
                "stroke": style.stroke or "#000000",
                "fill_enabled": False,
            })
        return style

    def _begin_drawing(self, p: Point) -> None:
        sid = self.store.new_id()
        style = self._new_shape_style(self.tool)
        if self.tool == Tool.RECT:
            shape: Shape = RectShape(id=sid, style=style, x=p.x, y=p.y, w=0.0, h=0.0)
        elif self.tool == Tool.ELLIPSE:
            shape = EllipseShape(id=sid, style=style, x=p.x, y=p.y, rx=0.0, ry=0.0)
        elif self.tool == Tool.LINE:
            shape = LineShape(id=sid, style=style, x1=p.x, y1=p.y, x2=p.x, y2=p.y)
        else:
            shape = PathShape.from_points(sid, [p], style)
        self.store.insert(shape)
        self._drawing_id = sid
        self._enter(Gesture.DRAWING)

    def _apply_drawing(self, p: Point) -> None:
        start = self._start
        sid = self._drawing_id

        def draw(items: List[Shape]) -> None:
            for s in items:
                if s.id != sid:
                    continue
                b = Bounds.from_corners(start.x, start.y, p.x, p.y)
                if isinstance(s, RectShape):
                    s.x, s.y, s.w, s.h = b.left, b.top, b.width, b.height
                elif isinstance(s, EllipseShape):
                    s.x, s.y, s.rx, s.ry = b.left, b.top, b.width / 2, b.height / 2
                elif isinstance(s, LineShape):
                    s.x2, s.y2 = p.x, p.y
                elif isinstance(s, PathShape):
                    s.segments.append(Segment(Point(p.x, p.y)))
                return

        self.store.update_shapes(draw)

    def _insert_text(self, kind: str, p: Point) -> None:
        content = self.prompt_text(kind) if self.prompt_text else None
        if content and content.strip():
            shape_settings = get_settings().settings.canvas.shapes
            active = self.store.active_style
            style = ShapeStyle(
                fill=active.stroke or "#000000",
                stroke=active.stroke,
                fill_enabled=True,
                stroke_enabled=False,
                line_width=1.0,
                opacity=active.opacity,
            )
            cls = CommentShape if kind == Tool.COMMENT else TextShape
            shape = cls(
                id=self.store.new_id(),
                style=style,
                position=Point(p.x, p.y),
                content=content,
                font_size=shape_settings.default_font_size,
                font_family=shape_settings.default_font_family,
            )
            if isinstance(shape, CommentShape):
                shape.time = datetime.now().isoformat(timespec="seconds")
            self.store.insert(shape)
            self.store.select(shape.id)
            trace(f"inserted {kind} {shape.id}", "GESTURE")
        self.set_tool(Tool.SELECT)

    # ---- completion ----

    def _finish(self) -> None:
        gesture = self.gesture
        if gesture == Gesture.IDLE:
            return
        trace(f"finish {gesture}", "GESTURE")
        if gesture == Gesture.DRAWING:
            drawn = self._drawing_id
            self._reset()
            if drawn is not None and self.store.get(drawn) is not None:
                self.store.select(drawn)
            self.set_tool(Tool.SELECT)
            return
        if gesture == Gesture.MARQUEE:
            self._select_marquee(self._marquee_additive)
        elif gesture == Gesture.EDITING_PATH:
            self.path_edit.clear_editing()
        self._reset()

    def _select_marquee(self, additive: bool) -> None:
        start, end = self._start, self._last or self._start
        rect = Bounds.from_corners(start.x, start.y, end.x, end.y)
        min_drag = _get_marquee_min_drag()
        if rect.width < min_drag and rect.height < min_drag:
            return
        hits = marquee_hits(self.store.shapes, rect, self.measure)
        if additive:
            self.store.set_selection(list(self._prior_selection) + hits)
        else:
            self.store.set_selection(hits)

    # ---- hover ----

    def _update_hover(self, p: Point) -> None:
        if self.tool != Tool.SELECT or len(self.store.selected_ids) > 1:
            self._set_hovered(None)
            return
        hit = find_shape(p, self.store.shapes, halo=True, measure=self.measure)
        self._set_hovered(hit.id if hit is not None else None)

    def _set_hovered(self, shape_id: Optional[int]) -> None:
        if shape_id == self.hovered_id:
            return
        self.hovered_id = shape_id
        if self._on_hover_changed:
            self._on_hover_changed(shape_id)

    # ---- state ----

    def _enter(self, gesture: str) -> None:
        self.gesture = gesture
        self._set_hovered(None)
        trace(f"begin {gesture} at ({self._start.x:.1f}, {self._start.y:.1f})", "GESTURE")

    def _reset(self) -> None:
        self.gesture = Gesture.IDLE
        self._snapshots = {}
        self._resize_handle = None
        self._resize_bounds = None
        self._drawing_id = None
        self.marquee_rect = None
        self._marquee_additive = False
        self._prior_selection = ()
