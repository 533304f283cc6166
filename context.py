"""
context.py

Process-wide application context.

Built once at start-up and passed explicitly to whoever needs it; nothing
here is a module-level singleton.
"""

from __future__ import annotations

import webbrowser
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import requests

from api.client import DiagramClient
from auth.credentials import CredentialStore
from auth.provider import MermaidChartAuthProvider
from auth.session import SessionManager
from debug_trace import trace
from events import EventSource
from panels.registry import PanelRegistry
from references.overlay import OverlayController
from settings import SettingsManager


@dataclass
class AppContext:
    """Every long-lived collaborator of the running application.

    Attributes:
        settings_manager: Persistent settings.
        events: Host event source.
        runner: ``runner(fn, on_finished, on_failed)``; serialized background jobs.
        store: Current token and endpoint.
        provider: Host identity provider.
        session: Session manager installing tokens into ``store``.
        client: Mermaid Chart API client.
        panels: Edit panels, one per diagram id.
        viewers: Read-only viewer panels, one per diagram id.
        overlay: Reference highlight controller.
    """
    settings_manager: SettingsManager
    events: EventSource
    runner: Callable[..., None]
    store: CredentialStore
    provider: Any
    session: SessionManager
    client: DiagramClient
    panels: PanelRegistry
    viewers: PanelRegistry
    overlay: OverlayController
    unsubscribers: List[Callable[[], None]] = field(default_factory=list)

    def render_theme(self, system_is_dark: bool = True) -> str:
        return self.settings_manager.render_theme(system_is_dark)

    def shutdown(self) -> None:
        """Dispose every panel and drop all event subscriptions."""
        self.panels.dispose_all()
        self.viewers.dispose_all()
        for unsubscribe in self.unsubscribers:
            unsubscribe()
        self.unsubscribers.clear()
        trace("context shut down", "UI")


def build_context(
    settings_manager: SettingsManager,
    events: EventSource,
    runner: Callable[..., None],
    provider: Any = None,
    http: Optional[requests.Session] = None,
    open_browser: Callable[[str], bool] = webbrowser.open,
) -> AppContext:
    """Wire the store, session manager, client and registries together.

    Args:
        settings_manager: Source of the endpoint and timeouts.
        events: Event source shared with the host UI.
        runner: Serialized background job runner.
        provider: Identity provider; a ``MermaidChartAuthProvider`` by default.
        http: Shared ``requests`` session for the client and provider.
        open_browser: Opens the sign-in page.
    """
    http = http or requests.Session()
    store = CredentialStore(endpoint=settings_manager.get_base_url())
    if provider is None:
        provider = MermaidChartAuthProvider(settings_manager, events, open_browser=open_browser, http=http)

    session = SessionManager(store, provider)
    client = DiagramClient(store, session, http=http, timeout=settings_manager.settings.mermaid_chart.timeout)
    session.probe = client.whoami

    ctx = AppContext(
        settings_manager=settings_manager,
        events=events,
        runner=runner,
        store=store,
        provider=provider,
        session=session,
        client=client,
        panels=PanelRegistry("panels"),
        viewers=PanelRegistry("viewers"),
        overlay=OverlayController(),
    )
    ctx.unsubscribers.extend(session.register_listeners(
        events,
        schedule=lambda job: runner(job),
        endpoint_getter=settings_manager.get_base_url,
    ))
    trace(f"context ready, endpoint {store.endpoint or '(unset)'}", "UI")
    return ctx
