"""
panels/controller.py

Mediates between one panel surface and the Mermaid Chart API.

The surface speaks a small message protocol:

    surface -> controller
        {"command": "getDiagramData"}
        {"command": "updateDiagram", "data": {"code": ..., "title": ...}}

    controller -> surface
        {"command": "diagramData",
         "data": {"code": ..., "title": ..., "diagramImage": "data:image/svg+xml;base64,..."}}
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Protocol

from api.errors import ValidationError
from debug_trace import trace
from models import Diagram
from utils import svg_data_url

GET_DIAGRAM_DATA = "getDiagramData"
UPDATE_DIAGRAM = "updateDiagram"
DIAGRAM_DATA = "diagramData"

UPDATED_MESSAGE = "Diagram updated"
UPDATE_FAILED_MESSAGE = "Failed to update diagram"
UPDATE_IN_PROGRESS_MESSAGE = "An update for this diagram is already in progress"

Runner = Callable[..., None]


class PanelSurface(Protocol):
    def post_message(self, message: Dict[str, Any]) -> None: ...

    def reveal(self) -> None: ...

    def close_surface(self) -> None: ...


class Notifier(Protocol):
    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class PanelController:
    """Owns the working copy of one diagram while its panel is open.

    Args:
        diagram: Initial working copy, with at least one rendered output.
        client: ``DiagramClient`` (or anything with the same three calls).
        runner: ``runner(fn, on_finished, on_failed)`` running *fn* off the
            UI thread and calling back on it.
        notifier: Shows info and error messages to the user.
        surface: Panel widget; may be attached later with :meth:`attach`.
        on_updated: Called after every successful update, even when the
            panel has been closed in the meantime.
        theme: Rendered output shown in the panel.
    """

    def __init__(
        self,
        diagram: Diagram,
        client: Any,
        runner: Runner,
        notifier: Notifier,
        surface: Optional[PanelSurface] = None,
        on_updated: Optional[Callable[[Diagram], None]] = None,
        theme: str = "dark",
    ):
        self._working_copy = diagram
        self.client = client
        self.runner = runner
        self.notifier = notifier
        self.surface = surface
        self.on_updated = on_updated
        self.theme = theme
        self.disposed = False
        self.updating = False

    @property
    def working_copy(self) -> Diagram:
        return self._working_copy

    @property
    def diagram_id(self) -> str:
        return self._working_copy.document_id

    def attach(self, surface: PanelSurface) -> None:
        self.surface = surface

    def reveal(self) -> None:
        if self.surface is not None and not self.disposed:
            self.surface.reveal()

    def dispose(self) -> None:
        """Detach from the surface. Further results for this panel are dropped."""
        if self.disposed:
            return
        self.disposed = True
        surface, self.surface = self.surface, None
        if surface is not None:
            surface.close_surface()

    # ------------------------------------------------------------------
    # Message protocol
    # ------------------------------------------------------------------

    def handle_message(self, message: Dict[str, Any]) -> None:
        if self.disposed:
            return
        command = message.get("command") if isinstance(message, dict) else None
        if command == GET_DIAGRAM_DATA:
            self.post_diagram_data()
        elif command == UPDATE_DIAGRAM:
            self.request_update(message.get("data") or {})
        else:
            trace(f"panel {self.diagram_id}: ignoring message {command!r}", "PANEL")

    def diagram_data(self) -> Dict[str, Any]:
        """Payload of the ``diagramData`` response for the current working copy."""
        diagram = self._working_copy
        outputs = diagram.rendered_outputs
        svg = outputs.get(self.theme) or next(iter(outputs.values()), "")
        return {
            "code": diagram.code,
            "title": diagram.title,
            "diagramImage": svg_data_url(svg),
        }

    def post_diagram_data(self) -> None:
        if self.surface is None or self.disposed:
            return
        self.surface.post_message({"command": DIAGRAM_DATA, "data": self.diagram_data()})

    # ------------------------------------------------------------------
    # Update chain
    # ------------------------------------------------------------------

    def request_update(self, data: Dict[str, Any]) -> None:
        """Push edited code and title, then reload the document and its rendering.

        The working copy only changes once the whole chain has succeeded.
        A request arriving while another is in flight is refused.
        """
        if self.updating:
            trace(f"panel {self.diagram_id}: update already in flight", "PANEL")
            self.notifier.info(UPDATE_IN_PROGRESS_MESSAGE)
            return

        requested_id = data.get("documentID")
        if requested_id and requested_id != self.diagram_id:
            trace(f"panel {self.diagram_id}: refusing update for {requested_id}", "PANEL")
            self.notifier.error(UPDATE_FAILED_MESSAGE)
            return

        edited = self._working_copy.with_edits(
            code=str(data.get("code", self._working_copy.code)),
            title=data.get("title"),
        )
        theme = self.theme
        client = self.client

        def _chain() -> Diagram:
            client.update_document(edited)
            fresh = client.get_document(edited.document_id)
            if fresh.document_id != edited.document_id:
                raise ValidationError(
                    f"Server returned document {fresh.document_id} for {edited.document_id}"
                )
            svg = client.get_rendered_output(fresh, theme)
            return fresh.with_rendered(theme, svg)

        self.updating = True
        trace(f"panel {self.diagram_id}: update requested", "PANEL")
        self.runner(_chain, self._on_update_finished, self._on_update_failed)

    def _on_update_finished(self, fresh: Diagram) -> None:
        self.updating = False
        if self.disposed:
            trace(f"panel {self.diagram_id}: closed before update finished, result dropped", "PANEL")
        else:
            self._working_copy = fresh
            self.post_diagram_data()
            self.notifier.info(UPDATED_MESSAGE)
        if self.on_updated is not None:
            self.on_updated(fresh)

    def _on_update_failed(self, error: BaseException) -> None:
        self.updating = False
        trace(f"panel {self.diagram_id}: update failed: {error!r}", "PANEL")
        self.notifier.error(UPDATE_FAILED_MESSAGE)
