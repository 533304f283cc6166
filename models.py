"""
models.py

Data models and constants for ChartLens.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple


# ----------------------------
# Identifier shape
# ----------------------------

# Canonical 36-character UUID (8-4-4-4-12 hex groups)
UUID_PATTERN = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"

_UUID_RE = re.compile(rf"^{UUID_PATTERN}$")

# Render themes understood by the raw endpoint
THEMES = ("light", "dark")


def is_uuid(value: Any) -> bool:
    """Return True if *value* is a canonical UUID string."""
    return isinstance(value, str) and _UUID_RE.match(value) is not None


# ----------------------------
# Credential
# ----------------------------

@dataclass(frozen=True)
class Credential:
    """Bearer token plus the service endpoint it is valid against."""
    token: str
    endpoint: str


# ----------------------------
# Diagram references found in documents
# ----------------------------

@dataclass(frozen=True, order=True)
class SourceRange:
    """Zero-based line and half-open column range within that line."""
    line: int
    start: int
    end: int


@dataclass(frozen=True)
class DiagramReference:
    """A ``[MermaidChart: <uuid>]`` token found inside a comment.

    Identity is the UUID; the range is recomputed on every scan.
    """
    id: str
    source_range: SourceRange

    @property
    def title(self) -> str:
        return f"Chart - {self.id}"


# ----------------------------
# Remote diagrams and projects
# ----------------------------

@dataclass(frozen=True)
class Project:
    """A Mermaid Chart project (a folder of diagrams)."""
    id: str
    title: str

    @classmethod
    def from_api(cls, d: Dict[str, Any]) -> "Project":
        return cls(id=str(d.get("id", "")), title=str(d.get("title", "")))


@dataclass(frozen=True)
class Diagram:
    """Working copy of a remote Mermaid Chart document.

    The server is the source of truth. ``rendered_outputs`` maps a theme
    name (``"light"``/``"dark"``) to SVG markup and is always replaced as a
    whole, never merged.

    Attributes:
        id: Diagram id (distinct from the document id).
        document_id: Document UUID, the identity used in source tokens.
        project_id: Owning project UUID.
        version: ``(major, minor)`` revision.
        title: Display title.
        code: Mermaid source code.
        rendered_outputs: Theme name to SVG markup.
    """
    id: str
    document_id: str
    project_id: str
    version: Tuple[int, int] = (0, 1)
    title: str = ""
    code: str = ""
    rendered_outputs: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, d: Dict[str, Any]) -> "Diagram":
        """Build a Diagram from a REST document payload.

        Args:
            d: Document dict as returned by ``/rest-api/documents/...``.

        Returns:
            A ``Diagram``; ``svgCode`` becomes the light output and
            ``svgCodeDark`` the dark one when present.
        """
        outputs: Dict[str, str] = {}
        if d.get("svgCode"):
            outputs["light"] = d["svgCode"]
        if d.get("svgCodeDark"):
            outputs["dark"] = d["svgCodeDark"]
        return cls(
            id=str(d.get("id", "")),
            document_id=str(d.get("documentID", "")),
            project_id=str(d.get("projectID", "")),
            version=(int(d.get("major") or 0), int(d.get("minor") or 0)),
            title=d.get("title") or "",
            code=d.get("code") or "",
            rendered_outputs=outputs,
        )

    def to_api(self) -> Dict[str, Any]:
        """Serialize the editable fields for an update request."""
        major, minor = self.version
        return {
            "id": self.id,
            "documentID": self.document_id,
            "projectID": self.project_id,
            "major": major,
            "minor": minor,
            "title": self.title,
            "code": self.code,
        }

    @property
    def version_tag(self) -> str:
        major, minor = self.version
        return f"v{major}.{minor}"

    def with_edits(self, code: str, title: Optional[str] = None) -> "Diagram":
        """Return a copy carrying new code and (optionally) a new title."""
        return replace(self, code=code, title=title or self.title)

    def with_rendered(self, theme: str, svg: str) -> "Diagram":
        """Return a copy whose rendered output for *theme* is *svg*."""
        outputs = dict(self.rendered_outputs)
        outputs[theme] = svg
        return replace(self, rendered_outputs=outputs)


@dataclass
class ProjectListing:
    """A project together with its documents, as shown in the list view."""
    project: Project
    documents: List[Diagram] = field(default_factory=list)
