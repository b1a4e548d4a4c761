"""
canvas/view.py

QWidget drawing surface: forwards mouse and keyboard input to the
interaction controller and paints the store through the renderer.
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor, QPainter
from PyQt6.QtWidgets import QInputDialog, QWidget

from models import Tool
from canvas.controller import InteractionController, PointerEvent
from canvas.renderer import QtTextMeasurer, SceneRenderer
from canvas.store import SceneStore

# Qt key -> controller key name
_KEY_NAMES = (
    (Qt.Key.Key_Delete, "Delete"),
    (Qt.Key.Key_Backspace, "Backspace"),
    (Qt.Key.Key_Escape, "Escape"),
)


def _key_name(key) -> Optional[str]:
    for qt_key, name in _KEY_NAMES:
        if key == qt_key:
            return name
    return None


def _pointer(event) -> PointerEvent:
    pos = event.position()
    mods = event.modifiers()
    return PointerEvent(
        pos.x(),
        pos.y(),
        shift=bool(mods & Qt.KeyboardModifier.ShiftModifier),
        ctrl=bool(mods & (Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier)),
        alt=bool(mods & Qt.KeyboardModifier.AltModifier),
    )


class CanvasView(QWidget):
    """
    Drawing surface widget.

    Behavior:
    - Left button drives the controller; other buttons are ignored
    - Losing focus or being hidden cancels an unfinished drag
    - Every store change schedules a repaint
    """

    def __init__(self, store: Optional[SceneStore] = None,
                 controller: Optional[InteractionController] = None,
                 renderer: Optional[SceneRenderer] = None, parent=None):
        super().__init__(parent)
        self.measurer = QtTextMeasurer()
        self.store = store or SceneStore(measure=self.measurer)
        if self.store.measure is None:
            self.store.measure = self.measurer
        self.controller = controller or InteractionController(self.store)
        self.renderer = renderer or SceneRenderer(measure=self.store.measure)
        self.background = QColor(255, 255, 255)

        if self.controller.prompt_text is None:
            self.controller.set_prompt_text_callback(self._ask_text)
        self.controller.set_on_hover_changed(lambda _id: self.update())

        self._unsubscribe = self.store.subscribe(lambda _store: self.update())

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(200, 150)

    def _ask_text(self, kind: str) -> Optional[str]:
        title = "Add comment" if kind == Tool.COMMENT else "Add text"
        text, ok = QInputDialog.getText(self, title, "Content:")
        return text if ok else None

    def set_tool(self, tool: str) -> None:
        self.controller.set_tool(tool)
        self.update()

    def detach(self) -> None:
        """Stop listening to the store."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ---- painting ----

    def paintEvent(self, event):
        painter = QPainter(self)
        try:
            painter.fillRect(self.rect(), self.background)
            self.renderer.render(
                painter,
                self.store,
                hovered_id=self.controller.hovered_id,
                marquee=self.controller.marquee_rect,
            )
        finally:
            painter.end()

    # ---- input ----

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return
        self.setFocus(Qt.FocusReason.MouseFocusReason)
        self.controller.pointer_down(_pointer(event))
        self.update()

    def mouseMoveEvent(self, event):
        self.controller.pointer_move(_pointer(event))
        self.update()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            super().mouseReleaseEvent(event)
            return
        self.controller.pointer_up(_pointer(event))
        self.update()

    def leaveEvent(self, event):
        self.controller.pointer_leave()
        self.update()
        super().leaveEvent(event)

    def keyPressEvent(self, event):
        name = _key_name(event.key())
        if name is not None and self.controller.key_down(name):
            event.accept()
            self.update()
            return
        super().keyPressEvent(event)

    def focusOutEvent(self, event):
        if self.controller.cancel_active_gesture():
            self.update()
        super().focusOutEvent(event)

    def hideEvent(self, event):
        self.controller.cancel_active_gesture()
        super().hideEvent(event)

    def closeEvent(self, event):
        self.detach()
        super().closeEvent(event)
