"""
panels package

Diagram panels: one live panel per diagram id, a message-driven controller
and the Qt window that hosts it.
"""

from panels.controller import PanelController
from panels.registry import PanelRegistry

__all__ = ["PanelController", "PanelRegistry"]
