"""
models.py

Shape data model and constants for the VecSketch drawing surface.

Every drawable entity is a dataclass carrying a stable integer ``id`` and a
``ShapeStyle``.  The class-level ``KIND`` tag doubles as the ``type`` field of
the JSON record, so ``shape_from_record(shape.to_record())`` reproduces the
shape exactly.  Records use the camelCase keys of the web front end
(``handleIn``, ``fillEnabled``, ``lineWidth``, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Dict, Iterable, Iterator, List, Optional, Type


# ----------------------------
# Errors
# ----------------------------

class GeometryError(Exception):
    """Base class for shape geometry failures."""


class EmptyGeometry(GeometryError):
    """A path without segments or a group without children was queried."""

    def __init__(self, shape_id: Optional[int] = None, kind: str = ""):
        self.shape_id = shape_id
        self.kind = kind
        super().__init__(f"{kind or 'shape'} {shape_id} has no geometry")


class AssetNotReady(GeometryError):
    """An image has no known size because its bitmap has not finished loading."""

    def __init__(self, shape_id: Optional[int] = None, source: str = ""):
        self.shape_id = shape_id
        self.source = source
        super().__init__(f"image {shape_id} is not loaded yet ({source[:60]})")


class UnknownShapeVariant(GeometryError):
    """An object that is not one of the known shape classes reached the engine."""

    def __init__(self, value: Any):
        self.value = value
        name = value if isinstance(value, str) else type(value).__name__
        super().__init__(f"unknown shape variant: {name!r}")


class VariantMismatch(GeometryError):
    """A scaled snapshot does not structurally match the live shape it is committed to."""


# ----------------------------
# Primitive value types
# ----------------------------

@dataclass
class Point:
    """A 2D point or, for segment handles, an offset."""
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Point":
        return cls(float(d.get("x", 0.0)), float(d.get("y", 0.0)))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class Size:
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Size":
        return cls(float(d.get("width", 0.0)), float(d.get("height", 0.0)))

    def to_dict(self) -> Dict[str, float]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding rectangle. Always derived, never stored on a shape."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center(self) -> Point:
        return Point((self.left + self.right) / 2, (self.top + self.bottom) / 2)

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "Bounds":
        """Build normalized bounds from two arbitrary corners."""
        return cls(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


@dataclass
class Segment:
    """One path vertex. ``handle_in``/``handle_out`` are offsets from ``point``."""
    point: Point = field(default_factory=Point)
    handle_in: Optional[Point] = None
    handle_out: Optional[Point] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Segment":
        hin = d.get("handleIn")
        hout = d.get("handleOut")
        return cls(
            point=Point.from_dict(d.get("point") or {}),
            handle_in=Point.from_dict(hin) if isinstance(hin, dict) else None,
            handle_out=Point.from_dict(hout) if isinstance(hout, dict) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"point": self.point.to_dict()}
        if self.handle_in is not None:
            d["handleIn"] = self.handle_in.to_dict()
        if self.handle_out is not None:
            d["handleOut"] = self.handle_out.to_dict()
        return d


# ----------------------------
# Style
# ----------------------------

@dataclass
class Shadow:
    offset_x: float = 0.0
    offset_y: float = 0.0
    blur: float = 0.0
    color: str = "#000000"
    opacity: float = 1.0

    _KEYS: ClassVar[Dict[str, str]] = {
        "offset_x": "offsetX",
        "offset_y": "offsetY",
        "blur": "blur",
        "color": "color",
        "opacity": "opacity",
    }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Shadow":
        kwargs = {attr: d[key] for attr, key in cls._KEYS.items() if key in d}
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for attr, key in self._KEYS.items()}


@dataclass
class Gradient:
    type: str = "linear"  # linear | radial
    colors: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Gradient":
        return cls(type=d.get("type", "linear"), colors=list(d.get("colors", [])))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "colors": list(self.colors)}


# Style attribute -> JSON key
_STYLE_KEYS: Dict[str, str] = {
    "fill": "fill",
    "stroke": "stroke",
    "fill_enabled": "fillEnabled",
    "stroke_enabled": "strokeEnabled",
    "line_width": "lineWidth",
    "opacity": "opacity",
    "radius": "radius",
}


@dataclass
class ShapeStyle:
    """Visual style of a shape.

    A fill or stroke is painted only when its enable flag is on and a color
    is set.  ``radius`` rounds the corners of rectangles.
    """
    fill: Optional[str] = None
    stroke: Optional[str] = None
    fill_enabled: bool = True
    stroke_enabled: bool = True
    line_width: float = 2.0
    opacity: float = 1.0
    shadow: Optional[Shadow] = None
    gradient: Optional[Gradient] = None
    radius: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "ShapeStyle":
        if not isinstance(d, dict):
            return cls()
        kwargs: Dict[str, Any] = {
            attr: d[key] for attr, key in _STYLE_KEYS.items() if key in d
        }
        if isinstance(d.get("shadow"), dict):
            kwargs["shadow"] = Shadow.from_dict(d["shadow"])
        if isinstance(d.get("gradient"), dict):
            kwargs["gradient"] = Gradient.from_dict(d["gradient"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        for attr, key in _STYLE_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                d[key] = value
        if self.shadow is not None:
            d["shadow"] = self.shadow.to_dict()
        if self.gradient is not None:
            d["gradient"] = self.gradient.to_dict()
        return d

    def merged(self, patch: Dict[str, Any]) -> "ShapeStyle":
        """Return a copy with a partial patch applied.

        Args:
            patch: Attribute names mapped to new values.  A ``shadow`` dict is
                merged into the existing shadow; a ``gradient`` dict replaces it.

        Raises:
            KeyError: If the patch names an unknown style attribute.
        """
        known = {f.name for f in fields(self)}
        changes: Dict[str, Any] = {}
        for key, value in patch.items():
            if key not in known:
                raise KeyError(f"unknown style attribute: {key}")
            if key == "shadow" and isinstance(value, dict):
                value = replace(self.shadow or Shadow(), **value)
            elif key == "gradient" and isinstance(value, dict):
                value = Gradient(**value)
            changes[key] = value
        return replace(self, **changes)


# ----------------------------
# Shapes
# ----------------------------

@dataclass
class Shape:
    """Common base of every shape variant."""
    KIND: ClassVar[str] = ""

    id: int = 0
    style: ShapeStyle = field(default_factory=ShapeStyle)

    def to_record(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.KIND, "style": self.style.to_dict()}


@dataclass
class PathShape(Shape):
    """Freeform or Bezier path; also used for pen strokes."""
    KIND: ClassVar[str] = "path"

    segments: List[Segment] = field(default_factory=list)
    closed: bool = False
    corner_radius: Optional[float] = None

    @classmethod
    def from_points(cls, shape_id: int, points: Iterable[Point], style: Optional[ShapeStyle] = None,
                    closed: bool = False) -> "PathShape":
        """Build a straight-segment path through ``points``."""
        return cls(
            id=shape_id,
            style=style or ShapeStyle(),
            segments=[Segment(Point(p.x, p.y)) for p in points],
            closed=closed,
        )

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        rec["segments"] = [seg.to_dict() for seg in self.segments]
        rec["closed"] = self.closed
        if self.corner_radius is not None:
            rec["cornerRadius"] = self.corner_radius
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "PathShape":
        return cls(
            id=int(rec["id"]),
            style=ShapeStyle.from_dict(rec.get("style")),
            segments=[Segment.from_dict(s) for s in rec.get("segments", [])],
            closed=bool(rec.get("closed", False)),
            corner_radius=rec.get("cornerRadius"),
        )


@dataclass
class RectShape(Shape):
    KIND: ClassVar[str] = "rect"

    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        rec.update({"x": self.x, "y": self.y, "w": self.w, "h": self.h})
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "RectShape":
        return cls(
            id=int(rec["id"]),
            style=ShapeStyle.from_dict(rec.get("style")),
            x=float(rec.get("x", 0.0)),
            y=float(rec.get("y", 0.0)),
            w=float(rec.get("w", 0.0)),
            h=float(rec.get("h", 0.0)),
        )


@dataclass
class EllipseShape(Shape):
    """Ellipse whose bounding box starts at ``(x, y)``; the center is ``(x + rx, y + ry)``."""
    KIND: ClassVar[str] = "ellipse"

    x: float = 0.0
    y: float = 0.0
    rx: float = 0.0
    ry: float = 0.0

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        rec.update({"x": self.x, "y": self.y, "rx": self.rx, "ry": self.ry})
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "EllipseShape":
        return cls(
            id=int(rec["id"]),
            style=ShapeStyle.from_dict(rec.get("style")),
            x=float(rec.get("x", 0.0)),
            y=float(rec.get("y", 0.0)),
            rx=float(rec.get("rx", 0.0)),
            ry=float(rec.get("ry", 0.0)),
        )


@dataclass
class LineShape(Shape):
    KIND: ClassVar[str] = "line"

    x1: float = 0.0
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        rec.update({"x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2})
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "LineShape":
        return cls(
            id=int(rec["id"]),
            style=ShapeStyle.from_dict(rec.get("style")),
            x1=float(rec.get("x1", 0.0)),
            y1=float(rec.get("y1", 0.0)),
            x2=float(rec.get("x2", 0.0)),
            y2=float(rec.get("y2", 0.0)),
        )


@dataclass
class TextShape(Shape):
    """Single-line text anchored at its baseline ``position``."""
    KIND: ClassVar[str] = "text"

    position: Point = field(default_factory=Point)
    content: str = ""
    font_size: float = 16.0
    font_family: str = "sans-serif"
    justification: str = "left"  # left | center | right

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        rec.update({
            "content": self.content,
            "position": self.position.to_dict(),
            "fontSize": self.font_size,
            "fontFamily": self.font_family,
            "justification": self.justification,
        })
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "TextShape":
        return cls(
            id=int(rec["id"]),
            style=ShapeStyle.from_dict(rec.get("style")),
            position=Point.from_dict(rec.get("position") or {}),
            content=str(rec.get("content", "")),
            font_size=float(rec.get("fontSize", 16.0)),
            font_family=str(rec.get("fontFamily", "sans-serif")),
            justification=str(rec.get("justification", "left")),
        )


@dataclass
class CommentShape(TextShape):
    """Review comment; drawn as text inside a frame."""
    KIND: ClassVar[str] = "comment"

    time: str = ""

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        if self.time:
            rec["time"] = self.time
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "CommentShape":
        base = TextShape._from_record(rec)
        return cls(
            id=base.id,
            style=base.style,
            position=base.position,
            content=base.content,
            font_size=base.font_size,
            font_family=base.font_family,
            justification=base.justification,
            time=str(rec.get("time", "")),
        )


@dataclass
class ImageShape(Shape):
    """Raster image centred on ``position``.

    ``size`` may be ``None`` until the bitmap has loaded; ``ready`` is runtime
    state only and is never serialized.
    """
    KIND: ClassVar[str] = "image"

    position: Point = field(default_factory=Point)
    size: Optional[Size] = None
    source: str = ""
    radius: Optional[float] = None
    ready: bool = field(default=False, compare=False)

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        rec["source"] = self.source
        rec["position"] = self.position.to_dict()
        if self.size is not None:
            rec["size"] = self.size.to_dict()
        if self.radius is not None:
            rec["radius"] = self.radius
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "ImageShape":
        size = rec.get("size")
        return cls(
            id=int(rec["id"]),
            style=ShapeStyle.from_dict(rec.get("style")),
            position=Point.from_dict(rec.get("position") or {}),
            size=Size.from_dict(size) if isinstance(size, dict) else None,
            source=str(rec.get("source", "")),
            radius=rec.get("radius"),
        )


@dataclass
class GroupShape(Shape):
    """Ordered container of child shapes. Must not contain itself."""
    KIND: ClassVar[str] = "group"

    children: List[Shape] = field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        rec = super().to_record()
        rec["children"] = [c.to_record() for c in self.children]
        return rec

    @classmethod
    def _from_record(cls, rec: Dict[str, Any]) -> "GroupShape":
        return cls(
            id=int(rec["id"]),
            style=ShapeStyle.from_dict(rec.get("style")),
            children=[shape_from_record(c) for c in rec.get("children", [])],
        )


SHAPE_TYPES: Dict[str, Type[Shape]] = {
    cls.KIND: cls
    for cls in (PathShape, RectShape, EllipseShape, LineShape, TextShape,
                CommentShape, ImageShape, GroupShape)
}


def shape_to_record(shape: Shape) -> Dict[str, Any]:
    """Serialize a shape (and, for groups, its subtree) to a JSON record."""
    if not isinstance(shape, Shape) or SHAPE_TYPES.get(shape.KIND) is not type(shape):
        raise UnknownShapeVariant(shape)
    return shape.to_record()


def shape_from_record(rec: Dict[str, Any]) -> Shape:
    """Rebuild a shape (and, for groups, its subtree) from a JSON record.

    Raises:
        UnknownShapeVariant: If ``rec["type"]`` is not a known kind.
    """
    kind = rec.get("type") if isinstance(rec, dict) else None
    cls = SHAPE_TYPES.get(kind)
    if cls is None:
        raise UnknownShapeVariant(kind if isinstance(kind, str) else rec)
    return cls._from_record(rec)


def iter_shapes(shapes: Iterable[Shape]) -> Iterator[Shape]:
    """Yield every shape in the tree, parents before their children."""
    for shape in shapes:
        yield shape
        if isinstance(shape, GroupShape):
            yield from iter_shapes(shape.children)


def collect_ids(shapes: Iterable[Shape]) -> List[int]:
    """Return all ids in the tree in depth-first order (duplicates included)."""
    return [s.id for s in iter_shapes(shapes)]


# ----------------------------
# Tool and handle constants
# ----------------------------

class Tool:
    """Active tool constants."""
    SELECT = "select"
    PEN = "pen"
    RECT = "rect"
    LINE = "line"
    ELLIPSE = "ellipse"
    TEXT = "text"
    COMMENT = "comment"


# Tools that create a shape by dragging
DRAG_TOOLS = (Tool.PEN, Tool.RECT, Tool.LINE, Tool.ELLIPSE)
# Tools that ask for text content and insert in one click
PROMPT_TOOLS = (Tool.TEXT, Tool.COMMENT)


class Handle:
    """Corner resize handle constants."""
    NW = "nw"
    NE = "ne"
    SE = "se"
    SW = "sw"


HANDLES = (Handle.NW, Handle.NE, Handle.SE, Handle.SW)
