"""
events.py

Subscription-based notifications between the host UI and the core.

Components subscribe by event kind and get back an unsubscribe callable;
there is no global bus, every emitter is an explicit ``EventSource``
instance handed to whoever needs it.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from debug_trace import trace, trace_exception

# Event kinds
SESSIONS_CHANGED = "sessions_changed"
ACTIVE_DOCUMENT_CHANGED = "active_document_changed"
DOCUMENT_CHANGED = "document_changed"
CONFIGURATION_CHANGED = "configuration_changed"

Handler = Callable[..., Any]


class EventSource:
    """Keyed observer list.

    Handlers run synchronously in subscription order. A failing handler is
    traced and does not prevent the remaining handlers from running.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, kind: str, handler: Handler) -> Callable[[], None]:
        """Register *handler* for *kind*.

        Returns:
            A callable that removes exactly this subscription.
        """
        self._handlers.setdefault(kind, []).append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(kind, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, kind: str, *args: Any) -> None:
        handlers = list(self._handlers.get(kind, []))
        trace(f"emit {kind} -> {len(handlers)} handler(s)", "EVENT")
        for handler in handlers:
            try:
                handler(*args)
            except Exception:
                trace_exception(f"Handler for {kind} failed")

    def handler_count(self, kind: str) -> int:
        return len(self._handlers.get(kind, []))
