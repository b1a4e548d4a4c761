"""
canvas/renderer.py

QPainter renderer for the scene store, plus the Qt font-metrics text
measurer and the bitmap cache used for image shapes.
"""

from __future__ import annotations

import base64
import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from PyQt6.QtCore import QByteArray, QPointF, QRectF, Qt
from PyQt6.QtGui import (
    QBrush,
    QColor,
    QFont,
    QFontMetricsF,
    QImage,
    QLinearGradient,
    QPainter,
    QPainterPath,
    QPen,
    QRadialGradient,
)

from models import (
    Bounds,
    CommentShape,
    EllipseShape,
    EmptyGeometry,
    GroupShape,
    ImageShape,
    LineShape,
    PathShape,
    Point,
    RectShape,
    Shape,
    ShapeStyle,
    TextShape,
    UnknownShapeVariant,
)
from settings import get_settings
from utils import hex_to_qcolor, with_opacity
from debug_trace import trace

from canvas.geometry import AssetNotReady, get_bounds, handle_rects, selection_bounds

log = logging.getLogger(__name__)

_BLACK = QColor(0, 0, 0)

# Comment frame padding around the text bounds
COMMENT_PADDING = 4.0


def _qrect(b: Bounds) -> QRectF:
    return QRectF(b.left, b.top, b.width, b.height)


def text_font(shape: TextShape) -> QFont:
    """Font used to draw and measure a text shape."""
    font = QFont(shape.font_family)
    if shape.font_family in ("sans-serif", "serif", "monospace"):
        hint = {
            "sans-serif": QFont.StyleHint.SansSerif,
            "serif": QFont.StyleHint.Serif,
            "monospace": QFont.StyleHint.Monospace,
        }[shape.font_family]
        font.setStyleHint(hint)
    font.setPixelSize(max(1, int(round(shape.font_size))))
    return font


class QtTextMeasurer:
    """Text width callable backed by ``QFontMetricsF``.

    Requires a ``QGuiApplication``.  Metrics objects are cached per
    family/size pair.
    """

    def __init__(self):
        self._metrics: Dict[Tuple[str, float], QFontMetricsF] = {}

    def __call__(self, shape: TextShape) -> float:
        key = (shape.font_family, shape.font_size)
        fm = self._metrics.get(key)
        if fm is None:
            fm = QFontMetricsF(text_font(shape))
            self._metrics[key] = fm
        return fm.horizontalAdvance(shape.content)


class ImageCache:
    """Loads and caches bitmaps for image sources (file paths or data URLs)."""

    def __init__(self):
        self._images: Dict[str, QImage] = {}
        self._failed: Set[str] = set()

    def get(self, source: str) -> Optional[QImage]:
        """Return the decoded image, loading it on first request; None on failure."""
        if source in self._images:
            return self._images[source]
        if source in self._failed or not source:
            return None
        image = self._load(source)
        if image.isNull():
            self._failed.add(source)
            log.warning("Could not load image %s", source[:80])
            return None
        self._images[source] = image
        trace(f"loaded image {image.width()}x{image.height()}", "RENDER")
        return image

    @staticmethod
    def _load(source: str) -> QImage:
        if source.startswith("data:"):
            _, _, payload = source.partition(",")
            try:
                raw = base64.b64decode(payload, validate=False)
            except ValueError:
                return QImage()
            return QImage.fromData(QByteArray(raw))
        return QImage(source)

    def clear(self) -> None:
        self._images.clear()
        self._failed.clear()


def _rounded_polygon(points: Sequence[Point], radius: float, closed: bool) -> QPainterPath:
    """Polygon through ``points`` with corners rounded by ``radius``."""
    path = QPainterPath()
    n = len(points)

    def cut(a: Point, b: Point, r: float) -> QPointF:
        dx, dy = b.x - a.x, b.y - a.y
        length = (dx * dx + dy * dy) ** 0.5
        if length == 0:
            return QPointF(a.x, a.y)
        t = min(r, length / 2) / length
        return QPointF(a.x + dx * t, a.y + dy * t)

    corners = range(n) if closed else range(1, n - 1)
    first = True
    if not closed:
        path.moveTo(points[0].x, points[0].y)
        first = False
    for i in corners:
        prev_pt = points[i - 1]
        cur = points[i]
        nxt = points[(i + 1) % n]
        p_in = cut(cur, prev_pt, radius)
        p_out = cut(cur, nxt, radius)
        if first:
            path.moveTo(p_in)
            first = False
        else:
            path.lineTo(p_in)
        path.quadTo(QPointF(cur.x, cur.y), p_out)
    if closed:
        path.closeSubpath()
    else:
        path.lineTo(points[-1].x, points[-1].y)
    return path


def shape_path(shape: Shape) -> QPainterPath:
    """Outline of a primitive shape as a ``QPainterPath``.

    Raises:
        EmptyGeometry: For a path without segments.
    """
    path = QPainterPath()
    if isinstance(shape, RectShape):
        b = get_bounds(shape)
        radius = shape.style.radius or 0.0
        if radius > 0:
            path.addRoundedRect(_qrect(b), radius, radius)
        else:
            path.addRect(_qrect(b))
    elif isinstance(shape, EllipseShape):
        path.addEllipse(_qrect(get_bounds(shape)))
    elif isinstance(shape, LineShape):
        path.moveTo(shape.x1, shape.y1)
        path.lineTo(shape.x2, shape.y2)
    elif isinstance(shape, PathShape):
        segs = shape.segments
        if not segs:
            raise EmptyGeometry(shape.id, "path")
        curved = any(s.handle_in is not None or s.handle_out is not None for s in segs)
        if shape.corner_radius and not curved and len(segs) > 2:
            return _rounded_polygon([s.point for s in segs], shape.corner_radius, shape.closed)
        path.moveTo(segs[0].point.x, segs[0].point.y)
        pairs = list(zip(segs, segs[1:]))
        if shape.closed and len(segs) > 1:
            pairs.append((segs[-1], segs[0]))
        for a, b in pairs:
            if a.handle_out is None and b.handle_in is None:
                path.lineTo(b.point.x, b.point.y)
                continue
            c1 = a.handle_out or Point()
            c2 = b.handle_in or Point()
            path.cubicTo(
                QPointF(a.point.x + c1.x, a.point.y + c1.y),
                QPointF(b.point.x + c2.x, b.point.y + c2.y),
                QPointF(b.point.x, b.point.y),
            )
        if shape.closed:
            path.closeSubpath()
    else:
        raise UnknownShapeVariant(shape)
    return path


class SceneRenderer:
    """Paints the store's shapes, then hover/selection decorations and the marquee."""

    def __init__(self, images: Optional[ImageCache] = None, measure=None):
        self.images = images or ImageCache()
        self.measure = measure

    def render(self, painter: QPainter, store, hovered_id: Optional[int] = None,
               marquee: Optional[Bounds] = None) -> None:
        measure = self.measure or store.measure
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        painter.setRenderHint(QPainter.RenderHint.TextAntialiasing, True)

        loaded: List[Tuple[int, int, int]] = []
        for shape in store.shapes:
            self._draw_safely(painter, shape, measure, loaded)

        selected = store.selected_shapes()
        if hovered_id is not None and not store.is_selected(hovered_id) and len(selected) <= 1:
            hovered = store.get(hovered_id)
            if hovered is not None:
                self._draw_hover(painter, hovered, measure)
        if selected:
            self._draw_selection(painter, selected, measure)
        if marquee is not None:
            self._draw_marquee(painter, marquee)

        # Report sizes after the pass so listeners never repaint mid-frame
        for shape_id, w, h in loaded:
            store.mark_image_ready(shape_id, w, h)

    # ---- shapes ----

    def _draw_safely(self, painter: QPainter, shape: Shape, measure, loaded) -> None:
        painter.save()
        try:
            self._draw_shape(painter, shape, measure, loaded)
        except EmptyGeometry as e:
            log.warning("Skipping malformed shape while painting: %s", e)
        finally:
            painter.restore()

    def _draw_shape(self, painter: QPainter, shape: Shape, measure, loaded) -> None:
        style = shape.style
        painter.setOpacity(painter.opacity() * max(0.0, min(1.0, style.opacity)))

        if isinstance(shape, GroupShape):
            for child in shape.children:
                self._draw_safely(painter, child, measure, loaded)
            return
        if isinstance(shape, ImageShape):
            self._draw_image(painter, shape, loaded)
            return
        if isinstance(shape, TextShape):
            self._draw_text(painter, shape, measure)
            return

        path = shape_path(shape)
        fillable = not isinstance(shape, LineShape)
        if style.shadow is not None:
            self._draw_shadow(painter, path, style, fillable)
        if fillable and style.fill_enabled and (style.fill or style.gradient):
            painter.fillPath(path, self._fill_brush(style, path.boundingRect()))
        if style.stroke_enabled and style.stroke and style.line_width > 0:
            painter.strokePath(path, self._stroke_pen(style))

    @staticmethod
    def _stroke_pen(style: ShapeStyle) -> QPen:
        pen = QPen(hex_to_qcolor(style.stroke, _BLACK), style.line_width)
        pen.setCapStyle(Qt.PenCapStyle.RoundCap)
        pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        return pen

    @staticmethod
    def _fill_brush(style: ShapeStyle, rect: QRectF) -> QBrush:
        gradient = style.gradient
        if gradient is None or not gradient.colors:
            return QBrush(hex_to_qcolor(style.fill, _BLACK))
        if gradient.type == "radial":
            grad = QRadialGradient(rect.center(), max(rect.width(), rect.height()) / 2)
        else:
            grad = QLinearGradient(QPointF(rect.left(), rect.center().y()),
                                   QPointF(rect.right(), rect.center().y()))
        count = len(gradient.colors)
        for i, color in enumerate(gradient.colors):
            grad.setColorAt(i / (count - 1) if count > 1 else 0.0, hex_to_qcolor(color, _BLACK))
        return QBrush(grad)

    def _draw_shadow(self, painter: QPainter, path: QPainterPath, style: ShapeStyle, fillable: bool) -> None:
        shadow = style.shadow
        color = with_opacity(hex_to_qcolor(shadow.color, _BLACK), shadow.opacity)
        offset = path.translated(shadow.offset_x, shadow.offset_y)
        if fillable and style.fill_enabled and (style.fill or style.gradient):
            painter.fillPath(offset, QBrush(color))
        if style.stroke_enabled and style.stroke and style.line_width > 0:
            pen = self._stroke_pen(style)
            pen.setColor(color)
            painter.strokePath(offset, pen)

    def _draw_text(self, painter: QPainter, shape: TextShape, measure) -> None:
        b = get_bounds(shape, measure)
        if isinstance(shape, CommentShape):
            frame = QRectF(b.left - COMMENT_PADDING, b.top - COMMENT_PADDING,
                           b.width + 2 * COMMENT_PADDING, b.height + 2 * COMMENT_PADDING)
            painter.setPen(QPen(QColor(200, 200, 200), 1))
            painter.setBrush(QBrush(QColor(255, 255, 255)))
            painter.drawRoundedRect(frame, 4, 4)
        style = shape.style
        if style.shadow is not None:
            shadow = style.shadow
            painter.setFont(text_font(shape))
            painter.setPen(QPen(with_opacity(hex_to_qcolor(shadow.color, _BLACK), shadow.opacity)))
            painter.drawText(QPointF(b.left + shadow.offset_x, shape.position.y + shadow.offset_y), shape.content)
        color = style.fill if style.fill_enabled and style.fill else (style.stroke or "#000000")
        painter.setFont(text_font(shape))
        painter.setPen(QPen(hex_to_qcolor(color, _BLACK)))
        painter.drawText(QPointF(b.left, shape.position.y), shape.content)

    def _draw_image(self, painter: QPainter, shape: ImageShape, loaded) -> None:
        image = self.images.get(shape.source)
        if image is None:
            return
        if not shape.ready:
            loaded.append((shape.id, image.width(), image.height()))
            return
        try:
            b = get_bounds(shape)
        except AssetNotReady:
            return
        target = _qrect(b)
        if shape.radius:
            clip = QPainterPath()
            clip.addRoundedRect(target, shape.radius, shape.radius)
            painter.setClipPath(clip)
        painter.drawImage(target, image)

    # ---- decorations ----

    def _draw_hover(self, painter: QPainter, shape: Shape, measure) -> None:
        sel = get_settings().settings.canvas.selection
        box = selection_bounds([shape], measure)
        if box is None:
            return
        painter.save()
        painter.setPen(QPen(hex_to_qcolor(sel.hover_color, _BLACK), 1))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(_qrect(box))
        painter.restore()

    def _draw_selection(self, painter: QPainter, selected: Sequence[Shape], measure) -> None:
        canvas = get_settings().settings.canvas
        sel = canvas.selection
        box = selection_bounds(selected, measure)
        if box is None:
            return
        pad = sel.padding
        outline = QRectF(box.left - pad, box.top - pad, box.width + 2 * pad, box.height + 2 * pad)

        painter.save()
        painter.setPen(QPen(hex_to_qcolor(sel.outline_color, _BLACK), sel.outline_width, Qt.PenStyle.DashLine))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(outline)

        # Handle colors from settings. Defaults: border=#3498DB, fill=#FFFFFF
        handles = canvas.handles
        painter.setPen(QPen(hex_to_qcolor(handles.border_color, _BLACK), handles.stroke_width))
        painter.setBrush(QBrush(hex_to_qcolor(handles.fill_color, QColor(255, 255, 255))))
        for rect in handle_rects(box, handles.size, pad).values():
            painter.drawRect(_qrect(rect))

        if sel.show_dimensions:
            label = f"{round(box.width)} × {round(box.height)}"
            font = QFont()
            font.setPixelSize(max(1, int(round(sel.dimensions_font_size))))
            painter.setFont(font)
            fm = QFontMetricsF(font)
            x = box.center.x - fm.horizontalAdvance(label) / 2
            y = box.bottom + pad + sel.dimensions_y_offset + fm.ascent()
            painter.setPen(QPen(hex_to_qcolor(sel.outline_color, _BLACK)))
            painter.drawText(QPointF(x, y), label)
        painter.restore()

    def _draw_marquee(self, painter: QPainter, rect: Bounds) -> None:
        m = get_settings().settings.canvas.marquee
        painter.save()
        painter.setPen(QPen(hex_to_qcolor(m.stroke_color, _BLACK), 1))
        painter.setBrush(QBrush(hex_to_qcolor(m.fill_color, QColor(12, 140, 233, 26))))
        painter.drawRect(_qrect(rect))
        painter.restore()


def render_to_image(store, width: int, height: int, background: str = "#FFFFFF",
                    renderer: Optional[SceneRenderer] = None) -> QImage:
    """Render the scene offscreen (shapes and selection decorations) into a QImage."""
    image = QImage(int(width), int(height), QImage.Format.Format_ARGB32_Premultiplied)
    image.fill(hex_to_qcolor(background, QColor(255, 255, 255)))
    painter = QPainter(image)
    try:
        (renderer or SceneRenderer()).render(painter, store)
    finally:
        painter.end()
    return image
