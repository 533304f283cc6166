"""
editor/highlighter.py

Mermaid syntax highlighter for the diagram panel editor.
"""

from __future__ import annotations

from typing import List, Tuple

from PyQt6.QtCore import QRegularExpression
from PyQt6.QtGui import QColor, QSyntaxHighlighter, QTextCharFormat

from settings import get_settings

MERMAID_KEYWORDS = (
    "graph", "digraph", "subgraph", "end", "classDef", "class", "linkStyle",
    "style", "flowchart", "sequenceDiagram", "stateDiagram", "erDiagram",
    "gantt", "pie",
)

MERMAID_TYPE_KEYWORDS = ("TB", "BT", "RL", "LR", "TD")

MERMAID_OPERATORS = ("-->", "---", "==>", "===", "-.->")


class MermaidHighlighter(QSyntaxHighlighter):
    """
    Keyword-level highlighter for Mermaid source. Not a parser.

    Highlights:
    - Diagram keywords (graph, flowchart, subgraph, ...)
    - Direction keywords (TB, LR, ...)
    - Quoted strings and numbers
    - Link operators (-->, ==>, ...)
    - ``%%`` comments
    """

    def __init__(self, parent):
        super().__init__(parent)

        self.rules: List[Tuple[QRegularExpression, QTextCharFormat]] = []

        # Defaults: keyword=#C586C0, type=#4EC9B0, string=#CE9178, number=#B5CEA8,
        # operator=#D4D4D4, comment=#6A9955
        syntax = get_settings().settings.panel.syntax

        def fmt(color_hex: str, bold: bool = False) -> QTextCharFormat:
            f = QTextCharFormat()
            f.setForeground(QColor(color_hex))
            if bold:
                f.setFontWeight(700)
            return f

        self.rules.append((
            QRegularExpression(r"\b(?:" + "|".join(MERMAID_KEYWORDS) + r")\b"),
            fmt(syntax.keyword_color, bold=syntax.keyword_bold),
        ))
        self.rules.append((
            QRegularExpression(r"\b(?:" + "|".join(MERMAID_TYPE_KEYWORDS) + r")\b"),
            fmt(syntax.type_color),
        ))
        self.rules.append((QRegularExpression(r"\b\d+\b"), fmt(syntax.number_color)))
        self.rules.append((
            QRegularExpression("|".join(QRegularExpression.escape(op) for op in MERMAID_OPERATORS)),
            fmt(syntax.operator_color),
        ))
        # Strings and comments last so they win over keywords inside them
        self.rules.append((QRegularExpression(r'".*?"'), fmt(syntax.string_color)))
        self.rules.append((QRegularExpression(r"^[\t ]*%%.*$"), fmt(syntax.comment_color)))

    def highlightBlock(self, text: str) -> None:
        """Apply highlighting rules to a block of text."""
        for regex, f in self.rules:
            it = regex.globalMatch(text)
            while it.hasNext():
                m = it.next()
                self.setFormat(m.capturedStart(), m.capturedLength(), f)
