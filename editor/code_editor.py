"""
editor/code_editor.py

Plain-text document editor with line numbers and diagram reference overlay.

Highlights and inline actions are installed wholesale by the overlay
controller through :meth:`TokenCodeEditor.set_highlights` and
:meth:`TokenCodeEditor.set_actions`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

from PyQt6.QtCore import Qt, QSize, pyqtSignal
from PyQt6.QtGui import QAction, QColor, QFont, QPainter, QTextCharFormat, QTextCursor
from PyQt6.QtWidgets import QPlainTextEdit, QTextEdit, QToolTip, QWidget

from models import SourceRange
from references.overlay import EDIT_COMMAND, VIEW_COMMAND, InlineAction
from references.scanner import language_for_path
from settings import get_settings


# =============================================================================
# Cached editor settings - initialized once to avoid repeated lookups during paint
# =============================================================================

class _CachedEditorSettings:
    """Cache for editor settings values to avoid repeated lookups during paint."""

    _instance = None

    def __init__(self):
        self._initialized = False
        # Default values (used if settings unavailable)
        self.lens_width = 16
        self.left_margin = 8
        self.right_margin = 4
        self.highlight_bar_width = 4
        self.font_family = "Consolas"
        self.font_size = 10
        self.tab_width = 4

    def _ensure_initialized(self):
        """Load settings on first access."""
        if self._initialized:
            return
        s = get_settings().settings.editor
        self.lens_width = s.lens.width
        self.left_margin = s.line_numbers.left_margin
        self.right_margin = s.line_numbers.right_margin
        self.highlight_bar_width = s.line_numbers.highlight_bar_width
        self.font_family = s.font.family
        self.font_size = s.font.size
        self.tab_width = s.font.tab_width
        self._initialized = True

    @classmethod
    def get(cls) -> "_CachedEditorSettings":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        cls._instance._ensure_initialized()
        return cls._instance

    @classmethod
    def invalidate(cls) -> None:
        """Re-read settings on next access (after the settings dialog saves)."""
        if cls._instance is not None:
            cls._instance._initialized = False


def invalidate_editor_settings() -> None:
    """Drop cached editor settings; call after the settings file changes."""
    _CachedEditorSettings.invalidate()


def utf16_offset(line_text: str, column: int) -> int:
    """Convert a code-point column into the UTF-16 offset Qt cursors use."""
    return len(line_text[:column].encode("utf-16-le")) // 2


class LineNumberArea(QWidget):
    """Widget that displays line numbers alongside the code editor."""

    def __init__(self, editor: "TokenCodeEditor"):
        super().__init__(editor)
        self.editor = editor

    def sizeHint(self):
        return self.editor.line_number_area_size_hint()

    def paintEvent(self, event):
        self.editor.line_number_area_paint_event(event)


class LensArea(QWidget):
    """Gutter showing a marker on every line that carries inline actions."""

    def __init__(self, editor: "TokenCodeEditor"):
        super().__init__(editor)
        self.editor = editor
        self.setMouseTracking(True)

    @property
    def lens_width(self) -> int:
        """Get lens width from settings. Default: 16 pixels."""
        return _CachedEditorSettings.get().lens_width

    def sizeHint(self):
        return QSize(self.lens_width, 0)

    def paintEvent(self, event):
        self.editor.lens_area_paint_event(event)

    def mousePressEvent(self, event):
        actions = self.editor.actions_at_y(event.pos().y())
        if actions:
            self.editor.action_triggered.emit(actions[0])

    def mouseMoveEvent(self, event):
        actions = self.editor.actions_at_y(event.pos().y())
        if actions:
            text = "\n".join(f"{a.title}: {a.reference.id}" for a in actions)
            QToolTip.showText(event.globalPosition().toPoint(), text, self)
        else:
            QToolTip.hideText()


class TokenCodeEditor(QPlainTextEdit):
    """
    Document editor with:
    - Line numbers
    - Highlighted ``[MermaidChart: <uuid>]`` references
    - A lens gutter and context menu entries for each reference
    """

    # Emitted with the InlineAction the user picked
    action_triggered = pyqtSignal(object)

    # Default line number colors (dark theme)
    DEFAULT_LINE_COLORS = {
        "background": "#1a1a1a",
        "text": "#606060",
        "text_active": "#ffffff",
        "highlight_bar": "#FF477B",
        "current_line_bg": "#2d2d2d",
    }

    def __init__(self, parent=None, path: Optional[Path] = None):
        super().__init__(parent)

        self.path: Optional[Path] = Path(path) if path else None
        self.language_id = language_for_path(self.path)

        self.line_number_area = LineNumberArea(self)
        self.lens_area = LensArea(self)

        self._highlights: List[SourceRange] = []
        self._actions_by_line: Dict[int, List[InlineAction]] = {}

        self._line_colors = dict(self.DEFAULT_LINE_COLORS)

        self.blockCountChanged.connect(self._update_margins)
        self.updateRequest.connect(self._update_gutters)

        self.reload_settings()

    def reload_settings(self) -> None:
        """Re-read font, tab width, gutter sizes and highlight colors."""
        ov = get_settings().settings.overlay
        self._highlight_bg = QColor(ov.highlight_color)
        self._highlight_bg.setAlphaF(max(0.0, min(1.0, float(ov.highlight_alpha))))
        self._highlight_fg = QColor(ov.text_color)

        # Set monospace font from settings. Defaults: "Consolas", 10pt
        cached = _CachedEditorSettings.get()
        font = QFont(cached.font_family, cached.font_size)
        font.setStyleHint(QFont.StyleHint.Monospace)
        self.setFont(font)

        # Tab width from settings. Default: 4 characters
        self.setTabStopDistance(self.fontMetrics().horizontalAdvance(' ') * cached.tab_width)

        self._update_margins()
        self._layout_gutters()
        self.set_highlights(self._highlights)

    def set_path(self, path: Optional[Path]) -> None:
        self.path = Path(path) if path else None
        self.language_id = language_for_path(self.path)

    def set_line_number_colors(self, colors: Dict[str, str]):
        self._line_colors = dict(self.DEFAULT_LINE_COLORS)
        self._line_colors.update(colors)
        self.line_number_area.update()
        self.lens_area.update()

    # ------------------------------------------------------------------
    # Overlay handle
    # ------------------------------------------------------------------

    def set_highlights(self, ranges: Sequence[SourceRange]) -> None:
        """Replace every reference highlight with *ranges*."""
        self._highlights = list(ranges)
        fmt = QTextCharFormat()
        fmt.setBackground(self._highlight_bg)
        fmt.setForeground(self._highlight_fg)

        doc = self.document()
        selections: List[QTextEdit.ExtraSelection] = []
        for rng in self._highlights:
            block = doc.findBlockByNumber(rng.line)
            if not block.isValid():
                continue
            text = block.text()
            sel = QTextEdit.ExtraSelection()
            sel.format = fmt  # type: ignore[assignment]
            cur = QTextCursor(doc)
            cur.setPosition(block.position() + utf16_offset(text, rng.start))
            cur.setPosition(block.position() + utf16_offset(text, rng.end), QTextCursor.MoveMode.KeepAnchor)
            sel.cursor = cur  # type: ignore[assignment]
            selections.append(sel)
        self.setExtraSelections(selections)

    def set_actions(self, actions: Sequence[InlineAction]) -> None:
        """Replace every inline action with *actions*."""
        by_line: Dict[int, List[InlineAction]] = {}
        for action in actions:
            by_line.setdefault(action.source_range.line, []).append(action)
        self._actions_by_line = by_line
        self.lens_area.update()

    def highlights(self) -> List[SourceRange]:
        return list(self._highlights)

    def actions_on_line(self, line: int) -> List[InlineAction]:
        return list(self._actions_by_line.get(line, []))

    def actions_at_y(self, y: int) -> List[InlineAction]:
        """Inline actions on the visible line at gutter height *y*."""
        block = self.firstVisibleBlock()
        top = int(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())

        while block.isValid():
            if block.isVisible():
                block_bottom = top + int(self.blockBoundingRect(block).height())
                if top <= y < block_bottom:
                    return self.actions_on_line(block.blockNumber())
            top += int(self.blockBoundingRect(block).height())
            block = block.next()
        return []

    # ------------------------------------------------------------------
    # Editing helpers
    # ------------------------------------------------------------------

    def cursor_line(self) -> int:
        return self.textCursor().blockNumber()

    def insert_line_at_cursor(self, line_text: str) -> None:
        """Insert *line_text* plus a newline at the start of the cursor's line."""
        cursor = self.textCursor()
        cursor.movePosition(QTextCursor.MoveOperation.StartOfBlock)
        cursor.insertText(line_text + "\n")
        self.setTextCursor(cursor)

    def contextMenuEvent(self, event):
        menu = self.createStandardContextMenu()
        line = self.cursorForPosition(event.pos()).blockNumber()
        actions = self.actions_on_line(line)
        if actions:
            menu.addSeparator()
            for inline in actions:
                for title, command in (("View Diagram", VIEW_COMMAND), ("Edit Diagram", EDIT_COMMAND)):
                    act = QAction(f"{title} ({inline.reference.id[:8]})", menu)
                    act.triggered.connect(
                        lambda _checked=False, i=inline, c=command: self.action_triggered.emit(
                            InlineAction(i.title, c, i.reference)
                        )
                    )
                    menu.addAction(act)
        menu.exec(event.globalPos())

    # ------------------------------------------------------------------
    # Gutters
    # ------------------------------------------------------------------

    def line_number_area_width(self) -> int:
        """Calculate the width needed for line numbers."""
        digits = len(str(max(1, self.blockCount())))
        # Left margin from settings. Default: 8 pixels
        left_margin = _CachedEditorSettings.get().left_margin
        return left_margin + self.fontMetrics().horizontalAdvance('9') * digits

    def line_number_area_size_hint(self):
        return QSize(self.line_number_area_width(), 0)

    def _update_margins(self):
        self.setViewportMargins(self.line_number_area_width() + self.lens_area.lens_width, 0, 0, 0)

    def _update_gutters(self, rect, dy):
        if dy:
            self.line_number_area.scroll(0, dy)
            self.lens_area.scroll(0, dy)
        else:
            self.line_number_area.update(0, rect.y(), self.line_number_area.width(), rect.height())
            self.lens_area.update(0, rect.y(), self.lens_area.width(), rect.height())

        if rect.contains(self.viewport().rect()):
            self._update_margins()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._layout_gutters()

    def _layout_gutters(self):
        cr = self.contentsRect()
        ln_width = self.line_number_area_width()
        self.line_number_area.setGeometry(cr.left(), cr.top(), ln_width, cr.height())
        self.lens_area.setGeometry(cr.left() + ln_width, cr.top(), self.lens_area.lens_width, cr.height())

    def line_number_area_paint_event(self, event):
        """Paint the line numbers, with a bar beside lines holding references."""
        painter = QPainter(self.line_number_area)
        colors = self._line_colors
        painter.fillRect(event.rect(), QColor(colors["background"]))

        block = self.firstVisibleBlock()
        block_number = block.blockNumber()
        top = int(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())
        bottom = top + int(self.blockBoundingRect(block).height())
        current_block = self.textCursor().block().blockNumber()

        cached = _CachedEditorSettings.get()
        bar_width = cached.highlight_bar_width
        right_margin = cached.right_margin

        while block.isValid() and top <= event.rect().bottom():
            if block.isVisible() and bottom >= event.rect().top():
                block_height = int(self.blockBoundingRect(block).height())

                if block_number in self._actions_by_line:
                    painter.fillRect(0, top, bar_width, block_height, QColor(colors["highlight_bar"]))

                if block_number == current_block:
                    painter.fillRect(bar_width, top, self.line_number_area.width() - bar_width,
                                     block_height, QColor(colors["current_line_bg"]))
                    painter.setPen(QColor(colors["text_active"]))
                else:
                    painter.setPen(QColor(colors["text"]))

                painter.drawText(bar_width, top,
                                 self.line_number_area.width() - bar_width - right_margin,
                                 block_height,
                                 Qt.AlignmentFlag.AlignRight | Qt.AlignmentFlag.AlignVCenter,
                                 str(block_number + 1))

            block = block.next()
            top = bottom
            bottom = top + int(self.blockBoundingRect(block).height())
            block_number += 1

        painter.end()

    def lens_area_paint_event(self, event):
        """Paint a diamond marker on lines that carry inline actions."""
        painter = QPainter(self.lens_area)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(event.rect(), QColor(self._line_colors["background"]))

        block = self.firstVisibleBlock()
        top = int(self.blockBoundingGeometry(block).translated(self.contentOffset()).top())
        width = self.lens_area.lens_width

        while block.isValid() and top <= event.rect().bottom():
            block_height = int(self.blockBoundingRect(block).height())
            if block.isVisible() and block.blockNumber() in self._actions_by_line:
                size = min(width, block_height) - 6
                cx = width // 2
                cy = top + block_height // 2
                painter.setPen(Qt.PenStyle.NoPen)
                painter.setBrush(QColor(self._line_colors["highlight_bar"]))
                painter.save()
                painter.translate(cx, cy)
                painter.rotate(45)
                painter.drawRect(-size // 2, -size // 2, size, size)
                painter.restore()
            top += block_height
            block = block.next()

        painter.end()
