"""
auth/session.py

Session orchestration: obtain a session from the identity provider, install
its token into the credential store, and re-authenticate once on rejection.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, List, Optional

from api.errors import AuthorizationError, CredentialRejected
from auth.credentials import CredentialStore
from debug_trace import trace
from events import CONFIGURATION_CHANGED, SESSIONS_CHANGED, EventSource
from models import Credential

BASE_URL_KEY = "mermaid_chart.base_url"


class SessionState(Enum):
    NO_SESSION = "no_session"
    PENDING = "pending"
    AUTHENTICATED = "authenticated"
    REAUTHENTICATING = "reauthenticating"
    FAILED = "failed"


class SessionManager:
    """Owns the lifecycle of the access credential.

    ``NO_SESSION -> PENDING -> AUTHENTICATED -> (rejection) ->
    REAUTHENTICATING -> AUTHENTICATED | FAILED``. ``FAILED`` only ends the
    current attempt; the next :meth:`ensure_session` starts over.

    Args:
        store: Credential store this manager installs tokens into.
        provider: Host identity provider exposing
            ``get_session(create_if_none=..., force_new=..., silent=...)``.
        probe: Lightweight authenticated call used by :meth:`validate`.
            Must raise :class:`CredentialRejected` on a 401.
    """

    def __init__(
        self,
        store: CredentialStore,
        provider: Any,
        probe: Optional[Callable[[], Any]] = None,
    ):
        self.store = store
        self.provider = provider
        self.probe = probe
        self.state = SessionState.AUTHENTICATED if store.token else SessionState.NO_SESSION
        self.reauth_count = 0

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------

    def ensure_session(self) -> Credential:
        """Return the cached credential, acquiring a session if needed.

        Raises:
            AuthorizationError: The provider produced no session.
        """
        credential = self.store.get()
        if credential is not None:
            return credential

        self.state = SessionState.PENDING
        trace("No cached token, requesting session", "AUTH")
        session = self._request_session(create_if_none=True)
        if session is None:
            self.state = SessionState.FAILED
            raise AuthorizationError("Sign-in to Mermaid Chart did not complete")

        return self._install(session)

    def initialize(self) -> None:
        """Acquire a session and confirm it is accepted."""
        self.ensure_session()
        self.validate()

    def validate(self, already_rejected: bool = False) -> None:
        """Confirm the credential, re-authenticating once on rejection.

        Args:
            already_rejected: The caller has just seen a 401 with the current
                token, so the probe is skipped.

        Raises:
            AuthorizationError: No replacement session could be obtained.
        """
        if not already_rejected:
            self.ensure_session()
            if self.probe is None:
                return
            try:
                self.probe()
                self.state = SessionState.AUTHENTICATED
                return
            except CredentialRejected:
                trace("Probe rejected the cached token", "AUTH")

        self._reauthenticate()

    def _reauthenticate(self) -> None:
        self.state = SessionState.REAUTHENTICATING
        self.store.clear()
        self.reauth_count += 1
        trace("Forcing a new session", "AUTH")

        session = self._request_session(force_new=True)
        if session is None:
            self.state = SessionState.FAILED
            raise AuthorizationError("Mermaid Chart rejected the credential and re-authentication failed")
        self._install(session)

    def reject(self) -> None:
        """The freshly installed credential was rejected too; end this attempt."""
        trace("Credential rejected after re-authentication", "AUTH")
        self.store.clear()
        self.state = SessionState.FAILED

    def _request_session(self, **kwargs) -> Any:
        try:
            return self.provider.get_session(**kwargs)
        except Exception:
            self.state = SessionState.FAILED
            raise

    def _install(self, session: Any) -> Credential:
        self.store.set_token(session.access_token)
        self.state = SessionState.AUTHENTICATED
        trace(f"Session installed for {getattr(session, 'account', '?')}", "AUTH")
        return self.store.get()

    # ------------------------------------------------------------------
    # Host notifications
    # ------------------------------------------------------------------

    def on_external_session_change(self, event: Any = None) -> None:
        """Sessions for this provider changed outside the manager.

        The cached token is dropped. If the provider still holds a session
        it is installed and validated; otherwise the manager waits in
        ``NO_SESSION`` for the next on-demand :meth:`ensure_session`.
        A notification for the session already installed is ignored.
        """
        trace(f"External session change: {event!r}", "AUTH")
        session = self.provider.get_session(silent=True)
        if session is not None and self.store.token == session.access_token:
            return
        self.store.clear()
        if session is None:
            self.state = SessionState.NO_SESSION
            return
        self._install(session)
        self.validate()

    def on_endpoint_config_change(self, new_endpoint: str) -> None:
        """Point the store at a new endpoint without discarding the token."""
        trace(f"Endpoint changed to {new_endpoint}", "AUTH")
        self.store.set_endpoint(new_endpoint)

    def register_listeners(
        self,
        events: EventSource,
        schedule: Callable[[Callable[[], Any]], None],
        endpoint_getter: Callable[[], str],
    ) -> List[Callable[[], None]]:
        """Subscribe to session and configuration changes.

        Args:
            events: Host event source.
            schedule: Runs a zero-argument job on the serialized job queue.
            endpoint_getter: Reads the configured base URL.

        Returns:
            Unsubscribe callables for every subscription made.
        """
        def _sessions_changed(event=None):
            schedule(lambda: self.on_external_session_change(event))

        def _configuration_changed(keys):
            if BASE_URL_KEY in keys:
                endpoint = endpoint_getter()
                schedule(lambda: self.on_endpoint_config_change(endpoint))

        return [
            events.subscribe(SESSIONS_CHANGED, _sessions_changed),
            events.subscribe(CONFIGURATION_CHANGED, _configuration_changed),
        ]
