"""
editor package

Plain-text document editor with line numbers and diagram reference
overlay, plus the Mermaid highlighter used by diagram panels.
"""

from editor.highlighter import MermaidHighlighter
from editor.code_editor import LensArea, LineNumberArea, TokenCodeEditor

__all__ = [
    "MermaidHighlighter",
    "LensArea",
    "LineNumberArea",
    "TokenCodeEditor",
]
