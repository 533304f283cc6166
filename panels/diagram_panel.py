"""
panels/diagram_panel.py

Detached window showing one Mermaid Chart diagram: a title field, a Mermaid
code editor and the rendered SVG.

The window only talks to its controller through messages (see
``panels/controller.py``); it never calls the API itself.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from PyQt6.QtCore import QRectF, Qt
from PyQt6.QtGui import QColor, QFont, QPainter
from PyQt6.QtSvg import QSvgRenderer
from PyQt6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QPushButton,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from debug_trace import trace
from editor.highlighter import MermaidHighlighter
from panels.controller import DIAGRAM_DATA, GET_DIAGRAM_DATA, UPDATE_DIAGRAM
from utils import decode_data_url, prepare_svg_for_qt


class SvgPreview(QWidget):
    """Paints an SVG scaled to fit, keeping its aspect ratio."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._renderer = QSvgRenderer(self)
        self._renderer.setAspectRatioMode(Qt.AspectRatioMode.KeepAspectRatio)
        self._renderer.repaintNeeded.connect(self.update)
        self._background = QColor("#1e1e1e")
        self.setMinimumSize(200, 150)

    def set_background(self, color: str) -> None:
        self._background = QColor(color)
        self.update()

    def set_svg(self, svg_bytes: Optional[bytes]) -> bool:
        """Load *svg_bytes*; an empty or invalid document clears the preview."""
        if not svg_bytes:
            self._renderer.load(b"")
            self.update()
            return False
        text = svg_bytes.decode("utf-8", errors="replace")
        ok = self._renderer.load(prepare_svg_for_qt(text))
        if not ok:
            trace("preview: SVG could not be loaded", "PANEL")
        self.update()
        return ok

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), self._background)
        if self._renderer.isValid():
            margin = 8
            self._renderer.render(painter, QRectF(self.rect().adjusted(margin, margin, -margin, -margin)))
        else:
            painter.setPen(QColor("#888888"))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "No preview available")
        painter.end()


class DiagramPanel(QWidget):
    """
    Top-level panel window for one diagram.

    Args:
        title: Window title (the document id).
        on_message: Receives every message the panel sends to its controller.
        on_closed: Called once when the window is closed by any path.
        read_only: Viewer mode; only the rendered diagram is shown.
    """

    def __init__(
        self,
        title: str,
        on_message: Callable[[Dict[str, Any]], None],
        on_closed: Optional[Callable[[], None]] = None,
        read_only: bool = False,
        parent=None,
    ):
        super().__init__(parent, Qt.WindowType.Window)
        self.setAttribute(Qt.WidgetAttribute.WA_DeleteOnClose)
        self.setWindowTitle(title)
        self.resize(1000, 640)

        self._on_message = on_message
        self._on_closed = on_closed
        self._read_only = read_only
        self._closing = False
        self._requested_data = False

        layout = QVBoxLayout(self)

        header = QHBoxLayout()
        header.addWidget(QLabel("Title:"))
        self.title_edit = QLineEdit()
        self.title_edit.setReadOnly(read_only)
        header.addWidget(self.title_edit, 1)
        self.update_btn = QPushButton("Update diagram")
        self.update_btn.clicked.connect(self._send_update)
        self.update_btn.setVisible(not read_only)
        header.addWidget(self.update_btn)
        layout.addLayout(header)

        self.code_edit = QPlainTextEdit()
        font = QFont("Consolas", 10)
        font.setStyleHint(QFont.StyleHint.Monospace)
        self.code_edit.setFont(font)
        self.highlighter = MermaidHighlighter(self.code_edit.document())

        self.preview = SvgPreview()

        if read_only:
            layout.addWidget(self.preview, 1)
            self.code_edit.hide()
        else:
            splitter = QSplitter(Qt.Orientation.Horizontal)
            splitter.addWidget(self.code_edit)
            splitter.addWidget(self.preview)
            splitter.setSizes([450, 550])
            layout.addWidget(splitter, 1)

    # ------------------------------------------------------------------
    # Surface protocol
    # ------------------------------------------------------------------

    def post_message(self, message: Dict[str, Any]) -> None:
        """Handle a message from the controller."""
        if message.get("command") != DIAGRAM_DATA:
            trace(f"panel: unexpected message {message.get('command')!r}", "PANEL")
            return
        data = message.get("data") or {}
        self.title_edit.setText(data.get("title", ""))
        if self.code_edit.toPlainText() != data.get("code", ""):
            self.code_edit.setPlainText(data.get("code", ""))
        self.preview.set_svg(decode_data_url(data.get("diagramImage", "")))

    def reveal(self) -> None:
        self.show()
        self.raise_()
        self.activateWindow()

    def close_surface(self) -> None:
        if not self._closing:
            self.close()

    # ------------------------------------------------------------------
    # Qt events
    # ------------------------------------------------------------------

    def showEvent(self, event):
        super().showEvent(event)
        if not self._requested_data:
            self._requested_data = True
            self._on_message({"command": GET_DIAGRAM_DATA})

    def closeEvent(self, event):
        self._closing = True
        if self._on_closed is not None:
            callback, self._on_closed = self._on_closed, None
            callback()
        event.accept()

    def _send_update(self):
        self._on_message({
            "command": UPDATE_DIAGRAM,
            "data": {
                "code": self.code_edit.toPlainText(),
                "title": self.title_edit.text().strip(),
            },
        })
