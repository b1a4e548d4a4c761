"""
main.py

VecSketch - vector drawing surface

Minimal PyQt6 shell around the canvas:
- Tool bar for select/pen/rect/line/ellipse/text/comment
- Group, ungroup, merge and z-order commands for the selection
- Open/save of JSON shape documents

Usage:
    python main.py [document.json]
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, Optional

from PyQt6.QtGui import QAction, QActionGroup, QKeySequence
from PyQt6.QtWidgets import QApplication, QFileDialog, QMainWindow, QMessageBox, QToolBar

from models import Tool
from settings import get_settings
from debug_trace import trace, trace_exception, close_log
from canvas import CanvasView, SceneStore
from document import DocumentError, load_document, save_document

log = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    """Main window: one canvas plus tool and command actions."""

    def __init__(self, settings_manager, path: Optional[str] = None):
        super().__init__()
        self.settings_manager = settings_manager
        self.setWindowTitle("VecSketch")

        self.store = SceneStore()
        self.canvas = CanvasView(self.store)
        self.setCentralWidget(self.canvas)

        self._tool_actions: Dict[str, QAction] = {}
        self._build_toolbar()
        self.canvas.controller.set_on_tool_changed(self._on_tool_changed)
        self.store.subscribe(self._on_store_changed)
        self._on_store_changed(self.store)

        if path:
            self.open_document(path)

    def _build_toolbar(self):
        """Build the application toolbar."""
        tb = QToolBar("Tools")
        self.addToolBar(tb)

        group = QActionGroup(self)
        group.setExclusive(True)

        def add_tool_action(text: str, tool: str, shortcut: str, tooltip: str):
            act = QAction(text, self)
            act.setCheckable(True)
            act.setShortcut(shortcut)
            act.setToolTip(f"{tooltip} ({shortcut})")
            act.setStatusTip(tooltip)
            act.triggered.connect(lambda checked, t=tool: self.canvas.set_tool(t))
            group.addAction(act)
            tb.addAction(act)
            self._tool_actions[tool] = act
            return act

        add_tool_action("Select", Tool.SELECT, "V", "Select, move and resize shapes")
        add_tool_action("Pen", Tool.PEN, "P", "Draw a freehand path")
        add_tool_action("Rect", Tool.RECT, "R", "Draw a rectangle")
        add_tool_action("Line", Tool.LINE, "L", "Draw a line")
        add_tool_action("Ellipse", Tool.ELLIPSE, "O", "Draw an ellipse")
        add_tool_action("Text", Tool.TEXT, "T", "Place text")
        add_tool_action("Comment", Tool.COMMENT, "C", "Place a comment")
        self._tool_actions[Tool.SELECT].setChecked(True)

        tb.addSeparator()

        def add_command(text: str, slot, shortcut: Optional[str] = None):
            act = QAction(text, self)
            if shortcut:
                act.setShortcut(QKeySequence(shortcut))
            act.triggered.connect(lambda checked=False: slot())
            tb.addAction(act)
            return act

        add_command("Group", self.store.group, "Ctrl+G")
        add_command("Ungroup", self.store.ungroup, "Ctrl+Shift+G")
        add_command("Merge", self.store.merge, "Ctrl+M")
        add_command("Forward", self.store.bring_to_front, "Ctrl+]")
        add_command("Backward", self.store.send_to_back, "Ctrl+[")
        add_command("To Front", lambda: self.store.bring_to_front(mode="absolute"), "Ctrl+Shift+]")
        add_command("To Back", lambda: self.store.send_to_back(mode="absolute"), "Ctrl+Shift+[")

        tb.addSeparator()
        add_command("Open...", self.open_document_dialog, "Ctrl+O")
        add_command("Save...", self.save_document_dialog, "Ctrl+S")

    def _on_tool_changed(self, tool: str):
        act = self._tool_actions.get(tool)
        if act is not None:
            act.setChecked(True)

    def _on_store_changed(self, store: SceneStore):
        count = len(store.selected_ids)
        if count == 1:
            (shape_id,) = store.selected_ids
            self.statusBar().showMessage(f"Selected: {store.layer_name(shape_id)}")
        elif count:
            self.statusBar().showMessage(f"{count} shapes selected")
        else:
            self.statusBar().showMessage(f"{len(store.shapes)} shapes")

    def open_document(self, path: str) -> bool:
        try:
            load_document(path, self.store)
        except (OSError, DocumentError) as e:
            log.warning("Could not open %s: %s", path, e)
            QMessageBox.critical(self, "Open failed", str(e))
            return False
        self.statusBar().showMessage(f"Opened: {path}")
        return True

    def open_document_dialog(self):
        """Open a JSON document from the workspace directory."""
        workspace = str(self.settings_manager.get_workspace_dir())
        path, _ = QFileDialog.getOpenFileName(self, "Open Document", workspace, "JSON (*.json)")
        if path:
            self.open_document(path)

    def save_document_dialog(self):
        """Save the scene as JSON to the workspace directory."""
        workspace = str(self.settings_manager.get_workspace_dir())
        path, _ = QFileDialog.getSaveFileName(self, "Save Document", workspace, "JSON (*.json)")
        if not path:
            return
        try:
            save_document(path, self.store)
        except OSError as e:
            log.warning("Could not save %s: %s", path, e)
            QMessageBox.critical(self, "Save failed", str(e))
            return
        self.statusBar().showMessage(f"Saved: {path}")


def main():
    """Application entry point."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)

    settings_manager = get_settings()
    settings_manager.ensure_file_complete()

    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    args = [a for a in sys.argv[1:] if not a.startswith("-")]
    w = MainWindow(settings_manager, args[0] if args else None)
    w.resize(1200, 800)
    w.show()
    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    def excepthook(exc_type, exc_value, exc_tb):
        import traceback
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
