"""
panels/registry.py

At most one live panel per diagram id.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from debug_trace import trace
from panels.controller import PanelController


class PanelRegistry:
    """Explicit map from diagram id to its panel controller.

    An entry is removed before its controller is disposed, so a lookup never
    returns a controller whose surface is already gone.
    """

    def __init__(self, name: str = "panels"):
        self.name = name
        self._entries: Dict[str, PanelController] = {}

    def open_or_reveal(self, diagram_id: str, factory: Callable[[], PanelController]) -> PanelController:
        """Reveal the panel for *diagram_id*, creating it with *factory* if needed."""
        existing = self._entries.get(diagram_id)
        if existing is not None:
            trace(f"{self.name}: reveal {diagram_id}", "PANEL")
            existing.reveal()
            return existing

        controller = factory()
        self._entries[diagram_id] = controller
        trace(f"{self.name}: open {diagram_id} ({len(self._entries)} live)", "PANEL")
        controller.reveal()
        return controller

    def dispose(self, diagram_id: str) -> bool:
        """Remove the entry, then dispose its controller. Unknown ids are a no-op."""
        controller = self._entries.pop(diagram_id, None)
        if controller is None:
            return False
        trace(f"{self.name}: dispose {diagram_id}", "PANEL")
        controller.dispose()
        return True

    # Hook name used by panel surfaces when they are closed
    on_dispose = dispose

    def dispose_all(self) -> None:
        for diagram_id in list(self._entries):
            self.dispose(diagram_id)

    def get(self, diagram_id: str) -> Optional[PanelController]:
        return self._entries.get(diagram_id)

    def ids(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, diagram_id: object) -> bool:
        return diagram_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
