"""
references/scanner.py

Finds ``[MermaidChart: <uuid>]`` tokens inside comments of arbitrary text.

Comment detection is a line-oriented heuristic, not a lexer: the first
``//``, ``#``, ``/*`` or ``<!--`` on a physical line opens a span that runs
to the end of that line. Tokens inside strings that happen to sit in such a
span are matched too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterator, List

from debug_trace import trace
from models import UUID_PATTERN, DiagramReference, SourceRange

COMMENT_PATTERN = re.compile(r"(?://|#|/\*|<!--).*$")
TOKEN_PATTERN = re.compile(rf"\[MermaidChart: ({UUID_PATTERN})\]")

# File suffix -> language id, used to pick the comment style for insertion
_SUFFIX_LANGUAGES = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".html": "html",
    ".htm": "html",
    ".xml": "html",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".py": "python",
    ".pyw": "python",
    ".sh": "shellscript",
    ".toml": "toml",
    ".json": "json",
    ".js": "javascript",
    ".ts": "typescript",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
}

_HTML_COMMENT_LANGUAGES = {"markdown", "html"}
_HASH_COMMENT_LANGUAGES = {"yaml", "python", "shellscript", "toml"}


@dataclass(frozen=True)
class CommentSpan:
    """Comment text found on one line: columns ``[start, end)``."""
    line: int
    start: int
    end: int


def _lines(text: str) -> Iterator[str]:
    for raw in text.split("\n"):
        yield raw[:-1] if raw.endswith("\r") else raw


def find_comments(text: str) -> List[CommentSpan]:
    """Locate comment spans, at most one per physical line."""
    spans: List[CommentSpan] = []
    if not isinstance(text, str) or not text:
        return spans
    for line_no, line in enumerate(_lines(text)):
        m = COMMENT_PATTERN.search(line)
        if m:
            spans.append(CommentSpan(line_no, m.start(), m.end()))
    return spans


def find_tokens(text: str, comments: List[CommentSpan]) -> List[DiagramReference]:
    """Collect every token inside the given comment spans, in span order."""
    refs: List[DiagramReference] = []
    if not comments:
        return refs
    lines = list(_lines(text))
    for span in comments:
        if span.line >= len(lines):
            continue
        line = lines[span.line]
        for m in TOKEN_PATTERN.finditer(line, span.start, span.end):
            refs.append(DiagramReference(
                id=m.group(1),
                source_range=SourceRange(span.line, m.start(), m.end()),
            ))
    return refs


def scan(text: str) -> List[DiagramReference]:
    """Return every diagram reference in *text*, ordered by (line, column).

    Never raises; anything that is not a well-formed token is skipped.
    """
    if not isinstance(text, str):
        return []
    refs = find_tokens(text, find_comments(text))
    trace(f"scan: {len(refs)} reference(s)", "SCAN")
    return refs


def comment_line_for(language_id: str, uuid: str) -> str:
    """Build the comment line that embeds *uuid* for a document language."""
    if language_id in _HTML_COMMENT_LANGUAGES:
        return f"<!-- [MermaidChart: {uuid}] -->"
    if language_id in _HASH_COMMENT_LANGUAGES:
        return f"# [MermaidChart: {uuid}]"
    return f"// [MermaidChart: {uuid}]"


def language_for_path(path) -> str:
    """Map a file path to a language id; unknown suffixes give ``plaintext``."""
    if not path:
        return "plaintext"
    return _SUFFIX_LANGUAGES.get(PurePath(str(path)).suffix.lower(), "plaintext")
