"""
canvas package

Geometry engine, scene store, interaction controller, renderer and the
PyQt6 drawing surface.
"""

from canvas.geometry import (
    find_shape,
    get_bounds,
    point_inside_shape,
    resize_shape,
    translate_shape,
)
from canvas.snapshot import GeometrySnapshot, capture_geometry
from canvas.store import DuplicateShapeId, SceneStore
from canvas.path_edit import EditingSegment, PathEditState
from canvas.controller import Gesture, InteractionController, PointerEvent
from canvas.renderer import ImageCache, QtTextMeasurer, SceneRenderer, render_to_image
from canvas.view import CanvasView

__all__ = [
    "find_shape",
    "get_bounds",
    "point_inside_shape",
    "resize_shape",
    "translate_shape",
    "GeometrySnapshot",
    "capture_geometry",
    "DuplicateShapeId",
    "SceneStore",
    "EditingSegment",
    "PathEditState",
    "Gesture",
    "InteractionController",
    "PointerEvent",
    "ImageCache",
    "QtTextMeasurer",
    "SceneRenderer",
    "render_to_image",
    "CanvasView",
]
