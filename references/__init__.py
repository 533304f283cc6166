"""
references package

Finds ``[MermaidChart: <uuid>]`` tokens in document comments and keeps the
editor overlay in step with them.
"""

from references.overlay import InlineAction, OverlayController, OverlayState
from references.scanner import comment_line_for, language_for_path, scan

__all__ = [
    "InlineAction",
    "OverlayController",
    "OverlayState",
    "comment_line_for",
    "language_for_path",
    "scan",
]
