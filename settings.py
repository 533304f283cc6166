"""
settings.py

Persistent settings management for ChartLens.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/chartlens/settings.toml
    - macOS: ~/Library/Application Support/chartlens/settings.toml
    - Linux: ~/.config/chartlens/settings.toml

Default values are documented in comments throughout this file.
If settings.toml is corrupted, these defaults will be used.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "chartlens"

DEFAULT_BASE_URL = "https://www.mermaidchart.com"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Mermaid Chart Service Settings
# =============================================================================

@dataclass
class MermaidChartSettings:
    """Connection settings for the Mermaid Chart service.

    Defaults:
        base_url: "https://www.mermaidchart.com"
        client_id: ""
        redirect_port: 0
        timeout: 30.0
    """
    base_url: str = DEFAULT_BASE_URL  # Default: hosted service
    client_id: str = ""               # Default: empty (must be configured)
    redirect_port: int = 0            # Default: 0 (any free loopback port)
    timeout: float = 30.0             # Default: 30 seconds per request


# =============================================================================
# Editor Settings
# =============================================================================

@dataclass
class EditorFontSettings:
    """Editor font settings.

    Defaults:
        family: "Consolas"
        size: 10
        tab_width: 4
    """
    family: str = "Consolas"  # Default: "Consolas"
    size: int = 10            # Default: 10 points
    tab_width: int = 4        # Default: 4 characters


@dataclass
class EditorLineNumberSettings:
    """Line number gutter settings.

    Defaults:
        left_margin: 8
        right_margin: 4
        highlight_bar_width: 4
    """
    left_margin: int = 8           # Default: 8 pixels
    right_margin: int = 4          # Default: 4 pixels
    highlight_bar_width: int = 4   # Default: 4 pixels


@dataclass
class EditorLensSettings:
    """Inline action gutter settings.

    Defaults:
        width: 16
    """
    width: int = 16  # Default: 16 pixels


@dataclass
class EditorSettings:
    """All editor-related settings."""
    font: EditorFontSettings = field(default_factory=EditorFontSettings)
    line_numbers: EditorLineNumberSettings = field(default_factory=EditorLineNumberSettings)
    lens: EditorLensSettings = field(default_factory=EditorLensSettings)


# =============================================================================
# Overlay Settings
# =============================================================================

@dataclass
class OverlaySettings:
    """Diagram reference highlight settings.

    Defaults:
        highlight_color: "#FF477B"
        highlight_alpha: 0.3
        text_color: "#FFFFFF"
        debounce_ms: 250
    """
    highlight_color: str = "#FF477B"  # Default: Mermaid Chart pink
    highlight_alpha: float = 0.3      # Default: 30% opacity
    text_color: str = "#FFFFFF"       # Default: white
    debounce_ms: int = 250            # Default: 250 ms (0 = rescan on every change)


# =============================================================================
# Panel Settings
# =============================================================================

@dataclass
class PanelSyntaxSettings:
    """Mermaid syntax highlighting colors in the diagram panel.

    Defaults:
        keyword_color: "#C586C0"
        keyword_bold: True
        type_color: "#4EC9B0"
        string_color: "#CE9178"
        number_color: "#B5CEA8"
        comment_color: "#6A9955"
        operator_color: "#D4D4D4"
    """
    keyword_color: str = "#C586C0"   # Default: purple
    keyword_bold: bool = True        # Default: True
    type_color: str = "#4EC9B0"      # Default: teal
    string_color: str = "#CE9178"    # Default: orange
    number_color: str = "#B5CEA8"    # Default: light green
    comment_color: str = "#6A9955"   # Default: green
    operator_color: str = "#D4D4D4"  # Default: light gray


@dataclass
class PanelSettings:
    """All diagram panel settings."""
    syntax: PanelSyntaxSettings = field(default_factory=PanelSyntaxSettings)


# =============================================================================
# Main App Settings
# =============================================================================

@dataclass
class AppSettings:
    """Application settings with default values.

    Attributes:
        theme: "auto", "dark" or "light". Also picks the rendered diagram theme.
        debug_trace: Write debug trace output to stderr and the log file.
        mermaid_chart: Service connection settings.
        editor: Editor-related settings.
        overlay: Diagram reference highlight settings.
        panel: Diagram panel settings.
    """
    # UI Settings
    theme: str = "auto"  # Default: "auto" (follow the system palette)

    debug_trace: bool = False  # Default: off

    # Nested settings categories
    mermaid_chart: MermaidChartSettings = field(default_factory=MermaidChartSettings)
    editor: EditorSettings = field(default_factory=EditorSettings)
    overlay: OverlaySettings = field(default_factory=OverlaySettings)
    panel: PanelSettings = field(default_factory=PanelSettings)


def flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested TOML tables into ``{"section.key": value}``."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


def changed_keys(before: Dict[str, Any], after: Dict[str, Any]) -> List[str]:
    """Dotted keys whose values differ between two flattened snapshots.

    The ``general.`` prefix is dropped so that ``general.theme`` is reported as
    ``theme``; every other section keeps its name.
    """
    keys = set(before) | set(after)
    changed = sorted(k for k in keys if before.get(k) != after.get(k))
    return [k[len("general."):] if k.startswith("general.") else k for k in changed]


# =============================================================================
# Settings Manager
# =============================================================================

class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory, overriding the platform location.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.settings_dir = Path(settings_dir) if settings_dir else Path(platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
            return self._parse_toml(data)
        except (OSError, tomllib.TOMLDecodeError, AttributeError, TypeError, ValueError):
            # If file is corrupted or invalid, return defaults
            return AppSettings()

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        # General section
        general = data.get("general", {})
        settings.theme = general.get("theme", settings.theme)
        settings.debug_trace = general.get("debug_trace", settings.debug_trace)

        # Mermaid Chart section
        mc = data.get("mermaid_chart", {})
        settings.mermaid_chart.base_url = mc.get("base_url", settings.mermaid_chart.base_url)
        settings.mermaid_chart.client_id = mc.get("client_id", settings.mermaid_chart.client_id)
        settings.mermaid_chart.redirect_port = mc.get("redirect_port", settings.mermaid_chart.redirect_port)
        settings.mermaid_chart.timeout = mc.get("timeout", settings.mermaid_chart.timeout)

        # Editor section
        editor = data.get("editor", {})
        if "font" in editor:
            font = editor["font"]
            settings.editor.font.family = font.get("family", settings.editor.font.family)
            settings.editor.font.size = font.get("size", settings.editor.font.size)
            settings.editor.font.tab_width = font.get("tab_width", settings.editor.font.tab_width)

        if "line_numbers" in editor:
            ln = editor["line_numbers"]
            settings.editor.line_numbers.left_margin = ln.get("left_margin", settings.editor.line_numbers.left_margin)
            settings.editor.line_numbers.right_margin = ln.get("right_margin", settings.editor.line_numbers.right_margin)
            settings.editor.line_numbers.highlight_bar_width = ln.get("highlight_bar_width", settings.editor.line_numbers.highlight_bar_width)

        if "lens" in editor:
            settings.editor.lens.width = editor["lens"].get("width", settings.editor.lens.width)

        # Overlay section
        ov = data.get("overlay", {})
        settings.overlay.highlight_color = ov.get("highlight_color", settings.overlay.highlight_color)
        settings.overlay.highlight_alpha = ov.get("highlight_alpha", settings.overlay.highlight_alpha)
        settings.overlay.text_color = ov.get("text_color", settings.overlay.text_color)
        settings.overlay.debounce_ms = max(0, int(ov.get("debounce_ms", settings.overlay.debounce_ms)))

        # Panel section
        panel = data.get("panel", {})
        if "syntax" in panel:
            syn = panel["syntax"]
            settings.panel.syntax.keyword_color = syn.get("keyword_color", settings.panel.syntax.keyword_color)
            settings.panel.syntax.keyword_bold = syn.get("keyword_bold", settings.panel.syntax.keyword_bold)
            settings.panel.syntax.type_color = syn.get("type_color", settings.panel.syntax.type_color)
            settings.panel.syntax.string_color = syn.get("string_color", settings.panel.syntax.string_color)
            settings.panel.syntax.number_color = syn.get("number_color", settings.panel.syntax.number_color)
            settings.panel.syntax.comment_color = syn.get("comment_color", settings.panel.syntax.comment_color)
            settings.panel.syntax.operator_color = syn.get("operator_color", settings.panel.syntax.operator_color)

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        # Ensure directory exists
        self.settings_dir.mkdir(parents=True, exist_ok=True)

        # Convert settings to TOML structure
        data = self._to_toml_dict()

        with open(self.settings_file, "wb") as f:
            tomli_w.dump(data, f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "general": {
                "theme": s.theme,
                "debug_trace": s.debug_trace,
            },
            "mermaid_chart": {
                "base_url": s.mermaid_chart.base_url,
                "client_id": s.mermaid_chart.client_id,
                "redirect_port": s.mermaid_chart.redirect_port,
                "timeout": s.mermaid_chart.timeout,
            },
            "editor": {
                "font": {
                    "family": s.editor.font.family,
                    "size": s.editor.font.size,
                    "tab_width": s.editor.font.tab_width,
                },
                "line_numbers": {
                    "left_margin": s.editor.line_numbers.left_margin,
                    "right_margin": s.editor.line_numbers.right_margin,
                    "highlight_bar_width": s.editor.line_numbers.highlight_bar_width,
                },
                "lens": {
                    "width": s.editor.lens.width,
                },
            },
            "overlay": {
                "highlight_color": s.overlay.highlight_color,
                "highlight_alpha": s.overlay.highlight_alpha,
                "text_color": s.overlay.text_color,
                "debounce_ms": s.overlay.debounce_ms,
            },
            "panel": {
                "syntax": {
                    "keyword_color": s.panel.syntax.keyword_color,
                    "keyword_bold": s.panel.syntax.keyword_bold,
                    "type_color": s.panel.syntax.type_color,
                    "string_color": s.panel.syntax.string_color,
                    "number_color": s.panel.syntax.number_color,
                    "comment_color": s.panel.syntax.comment_color,
                    "operator_color": s.panel.syntax.operator_color,
                },
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        data = self._to_toml_dict()
        return tomli_w.dumps(data)

    def snapshot(self) -> Dict[str, Any]:
        """Current settings as a flat ``{"section.key": value}`` dict."""
        return flatten(self._to_toml_dict())

    def get_base_url(self, report: Optional[Callable[[str], None]] = None) -> str:
        """Configured service URL without a trailing slash.

        Args:
            report: Called with a user-facing message when the URL is empty.

        Returns:
            The base URL, or "" when it is not set.
        """
        url = (self.settings.mermaid_chart.base_url or "").strip().rstrip("/")
        if not url and report is not None:
            report("MermaidChart: Base URL is not set. Please set the base URL in the settings.")
        return url

    def get_client_id(self, report: Optional[Callable[[str], None]] = None) -> str:
        """Configured OAuth client id, or "" (reported) when not set."""
        client_id = (self.settings.mermaid_chart.client_id or "").strip()
        if not client_id and report is not None:
            report("MermaidChart: Client ID is not set. Please set the client ID in the settings.")
        return client_id

    def render_theme(self, system_is_dark: bool = True) -> str:
        """Rendered diagram theme ("dark"/"light") matching the UI theme."""
        if self.settings.theme in ("dark", "light"):
            return self.settings.theme
        return "dark" if system_is_dark else "light"

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file
