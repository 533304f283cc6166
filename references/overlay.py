"""
references/overlay.py

Keeps an editor's highlight ranges and inline actions equal to the latest
scan of its text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from debug_trace import trace, trace_exception
from models import DiagramReference, SourceRange
from references.scanner import scan

# Command ids carried by inline actions
VIEW_COMMAND = "view"
EDIT_COMMAND = "edit"


@dataclass(frozen=True)
class InlineAction:
    """A clickable affordance anchored to one reference."""
    title: str
    command: str
    reference: DiagramReference

    @property
    def source_range(self) -> SourceRange:
        return self.reference.source_range


@dataclass(frozen=True)
class OverlayState:
    """Everything the overlay shows for one document."""
    highlights: Tuple[SourceRange, ...] = ()
    actions: Tuple[InlineAction, ...] = ()


class OverlayHandle(Protocol):
    """What the editor must provide to display an overlay."""

    def set_highlights(self, ranges: Sequence[SourceRange]) -> None: ...

    def set_actions(self, actions: Sequence[InlineAction]) -> None: ...


class OverlayController:
    """Replaces the whole overlay on every call; no diffing.

    After ``apply(handle, refs)`` the handle shows exactly ``render(refs)``.
    Calling it twice with the same references leaves the same state.
    """

    def __init__(self):
        self.last_state: Optional[OverlayState] = None

    @staticmethod
    def render(references: Sequence[DiagramReference]) -> OverlayState:
        return OverlayState(
            highlights=tuple(r.source_range for r in references),
            actions=tuple(InlineAction("View Diagram", VIEW_COMMAND, r) for r in references),
        )

    def apply(self, handle: OverlayHandle, references: Sequence[DiagramReference]) -> OverlayState:
        """Install the overlay for *references* on *handle*.

        Errors raised by the handle are traced and dropped; the overlay never
        propagates a failure to the editing path. If either half fails, both
        are cleared so highlights and actions never disagree.
        """
        state = self.render(references)
        if handle is None:
            return state
        try:
            handle.set_highlights(list(state.highlights))
            handle.set_actions(list(state.actions))
        except Exception:
            trace_exception("Overlay handle rejected update")
            self._clear(handle)
            return state
        self.last_state = state
        return state

    def _clear(self, handle: OverlayHandle) -> None:
        self.last_state = OverlayState()
        for setter in (handle.set_highlights, handle.set_actions):
            try:
                setter([])
            except Exception:
                trace_exception("Overlay handle rejected clear")

    def refresh(self, handle: OverlayHandle, text: str) -> List[DiagramReference]:
        """Rescan *text* and apply the result to *handle*."""
        references = scan(text)
        self.apply(handle, references)
        trace(f"overlay: {len(references)} highlight(s)", "SCAN")
        return references
