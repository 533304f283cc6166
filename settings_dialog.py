"""
settings_dialog.py

Settings dialog for ChartLens.
Organizes all settings into logical tabs and groups.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, List

from PyQt6.QtCore import pyqtSignal
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QCheckBox,
    QColorDialog,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QLineEdit,
    QPushButton,
    QScrollArea,
    QSpinBox,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from debug_trace import trace
from settings import AppSettings, changed_keys

if TYPE_CHECKING:
    from settings import SettingsManager

THEMES = ("auto", "dark", "light")


class ColorButton(QPushButton):
    """A button that displays and allows selection of a color."""

    def __init__(self, color: str = "#000000", parent=None):
        super().__init__(parent)
        self._color = color
        self._update_style()
        self.clicked.connect(self._pick_color)
        self.setFixedWidth(80)

    def _update_style(self):
        # Text color by luminance
        qc = QColor(self._color)
        luminance = 0.299 * qc.red() + 0.587 * qc.green() + 0.114 * qc.blue()
        text_color = "#000000" if luminance > 128 else "#FFFFFF"
        self.setStyleSheet(
            f"background-color: {self._color}; color: {text_color}; "
            f"border: 1px solid #888; padding: 2px 8px;"
        )
        self.setText(self._color)

    def _pick_color(self):
        color = QColorDialog.getColor(QColor(self._color), self, "Select Color")
        if color.isValid():
            self._color = color.name()
            self._update_style()

    def color(self) -> str:
        """Get current color as hex string."""
        return self._color

    def setColor(self, color: str):
        """Set current color from hex string."""
        self._color = color
        self._update_style()


class SettingsDialog(QDialog):
    """
    Settings dialog with tabbed organization.

    Tabs:
    - General: Theme, debug trace
    - Mermaid Chart: Service URL, OAuth client, timeouts
    - Editor: Font, line numbers, action gutter
    - Highlights: Diagram reference highlight colors and rescan delay
    - Panel: Mermaid syntax colors in diagram panels

    Every save emits :attr:`settings_changed` with the dotted keys whose
    values changed (``theme``, ``mermaid_chart.base_url``, ...).
    """

    settings_changed = pyqtSignal(list)

    def __init__(self, settings_manager: "SettingsManager", parent=None):
        super().__init__(parent)
        self.settings_manager = settings_manager
        self.setWindowTitle("ChartLens Settings")
        self.setMinimumSize(560, 420)
        self.resize(620, 500)

        self._setup_ui()
        self._load_settings()

    def _setup_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(4)

        self.tabs = QTabWidget()
        layout.addWidget(self.tabs)

        self.tabs.addTab(self._create_general_tab(), "General")
        self.tabs.addTab(self._create_service_tab(), "Mermaid Chart")
        self.tabs.addTab(self._create_editor_tab(), "Editor")
        self.tabs.addTab(self._create_overlay_tab(), "Highlights")
        self.tabs.addTab(self._create_panel_tab(), "Panel")

        button_box = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok |
            QDialogButtonBox.StandardButton.Cancel |
            QDialogButtonBox.StandardButton.Apply |
            QDialogButtonBox.StandardButton.RestoreDefaults
        )
        button_box.accepted.connect(self._on_ok)
        button_box.rejected.connect(self.reject)
        button_box.button(QDialogButtonBox.StandardButton.Apply).clicked.connect(self._on_apply)
        button_box.button(QDialogButtonBox.StandardButton.RestoreDefaults).clicked.connect(self._on_restore_defaults)
        layout.addWidget(button_box)

    def _create_scrollable_tab(self, content_widget: QWidget) -> QScrollArea:
        """Wrap a widget in a scroll area for tabs with lots of content."""
        scroll = QScrollArea()
        scroll.setWidget(content_widget)
        scroll.setWidgetResizable(True)
        scroll.setFrameShape(QFrame.Shape.NoFrame)
        return scroll

    # =========================================================================
    # Tabs
    # =========================================================================

    def _create_general_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        theme_group = QGroupBox("Appearance")
        theme_layout = QFormLayout(theme_group)
        self.theme_combo = QComboBox()
        self.theme_combo.addItems(THEMES)
        self.theme_combo.setToolTip("Also selects the theme of rendered diagrams")
        theme_layout.addRow("Theme:", self.theme_combo)
        layout.addWidget(theme_group)

        debug_group = QGroupBox("Diagnostics")
        debug_layout = QFormLayout(debug_group)
        self.debug_trace_cb = QCheckBox("Write debug trace to stderr and the log file")
        debug_layout.addRow("", self.debug_trace_cb)
        layout.addWidget(debug_group)

        layout.addStretch()
        return widget

    def _create_service_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        group = QGroupBox("Service")
        form = QFormLayout(group)

        self.base_url_edit = QLineEdit()
        self.base_url_edit.setPlaceholderText("https://www.mermaidchart.com")
        form.addRow("Base URL:", self.base_url_edit)

        self.client_id_edit = QLineEdit()
        form.addRow("Client ID:", self.client_id_edit)

        self.redirect_port_spin = QSpinBox()
        self.redirect_port_spin.setRange(0, 65535)
        self.redirect_port_spin.setSpecialValueText("any")
        form.addRow("Sign-in Redirect Port:", self.redirect_port_spin)

        self.timeout_spin = QDoubleSpinBox()
        self.timeout_spin.setRange(1.0, 300.0)
        self.timeout_spin.setSuffix(" s")
        form.addRow("Request Timeout:", self.timeout_spin)

        layout.addWidget(group)
        layout.addStretch()
        return widget

    def _create_editor_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        font_group = QGroupBox("Font")
        font_layout = QFormLayout(font_group)

        self.editor_font_family = QLineEdit()
        font_layout.addRow("Font Family:", self.editor_font_family)

        self.editor_font_size = QSpinBox()
        self.editor_font_size.setRange(6, 72)
        font_layout.addRow("Font Size:", self.editor_font_size)

        self.editor_tab_width = QSpinBox()
        self.editor_tab_width.setRange(1, 16)
        font_layout.addRow("Tab Width:", self.editor_tab_width)

        layout.addWidget(font_group)

        ln_group = QGroupBox("Line Numbers")
        ln_layout = QFormLayout(ln_group)

        self.editor_ln_left_margin = QSpinBox()
        self.editor_ln_left_margin.setRange(0, 50)
        ln_layout.addRow("Left Margin:", self.editor_ln_left_margin)

        self.editor_ln_right_margin = QSpinBox()
        self.editor_ln_right_margin.setRange(0, 50)
        ln_layout.addRow("Right Margin:", self.editor_ln_right_margin)

        self.editor_ln_highlight_bar = QSpinBox()
        self.editor_ln_highlight_bar.setRange(0, 20)
        ln_layout.addRow("Highlight Bar Width:", self.editor_ln_highlight_bar)

        layout.addWidget(ln_group)

        lens_group = QGroupBox("Diagram Actions")
        lens_layout = QFormLayout(lens_group)
        self.editor_lens_width = QSpinBox()
        self.editor_lens_width.setRange(8, 40)
        lens_layout.addRow("Gutter Width:", self.editor_lens_width)
        layout.addWidget(lens_group)

        layout.addStretch()
        return self._create_scrollable_tab(widget)

    def _create_overlay_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        group = QGroupBox("Diagram References")
        form = QFormLayout(group)

        self.overlay_color = ColorButton()
        form.addRow("Highlight Color:", self.overlay_color)

        self.overlay_alpha = QDoubleSpinBox()
        self.overlay_alpha.setRange(0.0, 1.0)
        self.overlay_alpha.setSingleStep(0.05)
        form.addRow("Highlight Opacity:", self.overlay_alpha)

        self.overlay_text_color = ColorButton()
        form.addRow("Text Color:", self.overlay_text_color)

        self.overlay_debounce = QSpinBox()
        self.overlay_debounce.setRange(0, 5000)
        self.overlay_debounce.setSuffix(" ms")
        self.overlay_debounce.setToolTip("0 rescans on every change")
        form.addRow("Rescan Delay:", self.overlay_debounce)

        layout.addWidget(group)
        layout.addStretch()
        return widget

    def _create_panel_tab(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)

        syntax_group = QGroupBox("Mermaid Syntax Highlighting")
        syntax_layout = QFormLayout(syntax_group)

        self.syntax_keyword_color = ColorButton()
        self.syntax_keyword_bold = QCheckBox("Bold")
        kw_row = QHBoxLayout()
        kw_row.addWidget(self.syntax_keyword_color)
        kw_row.addWidget(self.syntax_keyword_bold)
        kw_row.addStretch()
        syntax_layout.addRow("Keywords:", kw_row)

        self.syntax_type_color = ColorButton()
        syntax_layout.addRow("Directions:", self.syntax_type_color)

        self.syntax_string_color = ColorButton()
        syntax_layout.addRow("Strings:", self.syntax_string_color)

        self.syntax_number_color = ColorButton()
        syntax_layout.addRow("Numbers:", self.syntax_number_color)

        self.syntax_comment_color = ColorButton()
        syntax_layout.addRow("Comments:", self.syntax_comment_color)

        self.syntax_operator_color = ColorButton()
        syntax_layout.addRow("Links:", self.syntax_operator_color)

        layout.addWidget(syntax_group)
        layout.addStretch()
        return self._create_scrollable_tab(widget)

    # =========================================================================
    # Settings Load/Save
    # =========================================================================

    def _load_settings(self):
        """Load current settings into the UI widgets."""
        s = self.settings_manager.settings

        self.theme_combo.setCurrentText(s.theme if s.theme in THEMES else "auto")
        self.debug_trace_cb.setChecked(s.debug_trace)

        mc = s.mermaid_chart
        self.base_url_edit.setText(mc.base_url)
        self.client_id_edit.setText(mc.client_id)
        self.redirect_port_spin.setValue(mc.redirect_port)
        self.timeout_spin.setValue(mc.timeout)

        ed = s.editor
        self.editor_font_family.setText(ed.font.family)
        self.editor_font_size.setValue(ed.font.size)
        self.editor_tab_width.setValue(ed.font.tab_width)
        self.editor_ln_left_margin.setValue(ed.line_numbers.left_margin)
        self.editor_ln_right_margin.setValue(ed.line_numbers.right_margin)
        self.editor_ln_highlight_bar.setValue(ed.line_numbers.highlight_bar_width)
        self.editor_lens_width.setValue(ed.lens.width)

        ov = s.overlay
        self.overlay_color.setColor(ov.highlight_color)
        self.overlay_alpha.setValue(ov.highlight_alpha)
        self.overlay_text_color.setColor(ov.text_color)
        self.overlay_debounce.setValue(ov.debounce_ms)

        syn = s.panel.syntax
        self.syntax_keyword_color.setColor(syn.keyword_color)
        self.syntax_keyword_bold.setChecked(syn.keyword_bold)
        self.syntax_type_color.setColor(syn.type_color)
        self.syntax_string_color.setColor(syn.string_color)
        self.syntax_number_color.setColor(syn.number_color)
        self.syntax_comment_color.setColor(syn.comment_color)
        self.syntax_operator_color.setColor(syn.operator_color)

    def _save_settings(self) -> List[str]:
        """Write the UI widgets back, save, and report what changed.

        Returns:
            Dotted keys whose values changed.
        """
        before = self.settings_manager.snapshot()
        s = self.settings_manager.settings

        s.theme = self.theme_combo.currentText()
        s.debug_trace = self.debug_trace_cb.isChecked()

        s.mermaid_chart.base_url = self.base_url_edit.text().strip()
        s.mermaid_chart.client_id = self.client_id_edit.text().strip()
        s.mermaid_chart.redirect_port = self.redirect_port_spin.value()
        s.mermaid_chart.timeout = self.timeout_spin.value()

        s.editor.font.family = self.editor_font_family.text().strip() or "Consolas"
        s.editor.font.size = self.editor_font_size.value()
        s.editor.font.tab_width = self.editor_tab_width.value()
        s.editor.line_numbers.left_margin = self.editor_ln_left_margin.value()
        s.editor.line_numbers.right_margin = self.editor_ln_right_margin.value()
        s.editor.line_numbers.highlight_bar_width = self.editor_ln_highlight_bar.value()
        s.editor.lens.width = self.editor_lens_width.value()

        s.overlay.highlight_color = self.overlay_color.color()
        s.overlay.highlight_alpha = self.overlay_alpha.value()
        s.overlay.text_color = self.overlay_text_color.color()
        s.overlay.debounce_ms = self.overlay_debounce.value()

        syn = s.panel.syntax
        syn.keyword_color = self.syntax_keyword_color.color()
        syn.keyword_bold = self.syntax_keyword_bold.isChecked()
        syn.type_color = self.syntax_type_color.color()
        syn.string_color = self.syntax_string_color.color()
        syn.number_color = self.syntax_number_color.color()
        syn.comment_color = self.syntax_comment_color.color()
        syn.operator_color = self.syntax_operator_color.color()

        self.settings_manager.save()
        keys = changed_keys(before, self.settings_manager.snapshot())
        trace(f"settings saved, changed: {keys}", "UI")
        return keys

    # =========================================================================
    # Button Handlers
    # =========================================================================

    def _apply(self):
        keys = self._save_settings()
        if keys:
            self.settings_changed.emit(keys)

    def _on_ok(self):
        self._apply()
        self.accept()

    def _on_apply(self):
        self._apply()

    def _on_restore_defaults(self):
        """Reset the widgets to default values; nothing is saved until OK/Apply."""
        current = self.settings_manager.settings
        self.settings_manager.settings = replace(AppSettings(), mermaid_chart=current.mermaid_chart)
        try:
            self._load_settings()
        finally:
            self.settings_manager.settings = current
