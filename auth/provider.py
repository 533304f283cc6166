"""
auth/provider.py

Mermaid Chart identity provider: OAuth2 authorization code flow with PKCE,
redirected to a one-shot loopback listener, with sessions persisted in the
user data directory.

Session file location:
    - Windows: %LOCALAPPDATA%/chartlens/sessions.toml
    - macOS: ~/Library/Application Support/chartlens/sessions.toml
    - Linux: ~/.local/share/chartlens/sessions.toml
"""

from __future__ import annotations

import secrets
import sys
import threading
import uuid
import webbrowser
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Callable, Dict, Optional
from urllib.parse import parse_qs, urlencode, urlparse

import platformdirs
import requests

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

from api.errors import AuthorizationError
from debug_trace import trace, trace_exception
from events import SESSIONS_CHANGED, EventSource
from utils import encoded_sha256_hash, make_code_verifier

APP_NAME = "chartlens"

# Seconds to wait for the browser to come back to the loopback listener
LOGIN_TIMEOUT = 300.0

_CALLBACK_PAGE = (
    b"<!DOCTYPE html><html><body style='font-family: sans-serif'>"
    b"<h3>ChartLens</h3><p>Sign-in complete. You can close this tab.</p>"
    b"</body></html>"
)


@dataclass
class AuthSession:
    """A session as held by the identity provider."""
    id: str
    access_token: str
    account: str = ""


class _CallbackHandler(BaseHTTPRequestHandler):
    """Captures the query string of the OAuth redirect."""

    def do_GET(self):
        query = parse_qs(urlparse(self.path).query)
        self.server.callback_params = {k: v[0] for k, v in query.items() if v}
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.end_headers()
        self.wfile.write(_CALLBACK_PAGE)

    def log_message(self, format, *args):
        trace(f"callback: {format % args}", "AUTH")


class _LoopbackListener:
    """One-shot HTTP listener on 127.0.0.1 for the OAuth redirect."""

    def __init__(self, port: int = 0):
        self._server = HTTPServer(("127.0.0.1", port), _CallbackHandler)
        self._server.callback_params = None
        self._server.timeout = 1.0

    @property
    def redirect_uri(self) -> str:
        host, port = self._server.server_address[:2]
        return f"http://{host}:{port}/callback"

    def wait(self, timeout: float, cancelled: threading.Event) -> Optional[Dict[str, str]]:
        waited = 0.0
        while self._server.callback_params is None and waited < timeout:
            if cancelled.is_set():
                return None
            self._server.handle_request()
            waited += self._server.timeout
        return self._server.callback_params

    def close(self) -> None:
        self._server.server_close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class MermaidChartAuthProvider:
    """Host identity system for Mermaid Chart.

    Args:
        settings_manager: Source of ``base_url``, ``client_id``, ``redirect_port``
            and ``timeout``.
        events: Receives ``SESSIONS_CHANGED`` whenever a session is stored or removed.
        open_browser: Opens the authorization URL for the user.
        sessions_file: Override for the persisted sessions path.
        http: ``requests``-compatible session for the token exchange.
    """

    id = "mermaidchart"
    label = "MermaidChart"

    def __init__(
        self,
        settings_manager,
        events: EventSource,
        open_browser: Callable[[str], bool] = webbrowser.open,
        sessions_file: Optional[Path] = None,
        http: Optional[requests.Session] = None,
    ):
        self.settings_manager = settings_manager
        self.events = events
        self._open_browser = open_browser
        self.sessions_file = sessions_file or Path(platformdirs.user_data_dir(APP_NAME)) / "sessions.toml"
        self._http = http or requests.Session()
        self._cancelled = threading.Event()
        self._session: Optional[AuthSession] = self._load()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_session(
        self,
        create_if_none: bool = False,
        force_new: bool = False,
        silent: bool = False,
    ) -> Optional[AuthSession]:
        """Return the stored session, or run an interactive sign-in.

        Args:
            create_if_none: Sign in interactively when nothing is stored.
            force_new: Ignore the stored session and always sign in again.
            silent: Never start an interactive flow.

        Returns:
            The session, or None when nothing is stored and no flow ran.

        Raises:
            AuthorizationError: The interactive flow failed.
        """
        if force_new and not silent:
            return self._create_session()
        if self._session is not None:
            return self._session
        if create_if_none and not silent:
            return self._create_session()
        return None

    def remove_session(self) -> None:
        """Forget the stored session (sign out)."""
        if self._session is None:
            return
        self._session = None
        try:
            self.sessions_file.unlink()
        except FileNotFoundError:
            pass
        self.events.emit(SESSIONS_CHANGED, {"removed": True})

    def cancel_login(self) -> None:
        """Abort an interactive sign-in waiting on the loopback listener."""
        self._cancelled.set()

    # ------------------------------------------------------------------
    # Interactive flow
    # ------------------------------------------------------------------

    def _create_session(self) -> AuthSession:
        cfg = self.settings_manager.settings.mermaid_chart
        base_url = cfg.base_url.rstrip("/")
        if not base_url:
            raise AuthorizationError("MermaidChart: Base URL is not set. Please set the base URL in the settings.")
        if not cfg.client_id:
            raise AuthorizationError("MermaidChart: Client ID is not set. Please set the client ID in the settings.")

        self._cancelled.clear()
        verifier = make_code_verifier()
        state = secrets.token_urlsafe(16)

        with _LoopbackListener(cfg.redirect_port) as listener:
            redirect_uri = listener.redirect_uri
            query = urlencode({
                "client_id": cfg.client_id,
                "redirect_uri": redirect_uri,
                "response_type": "code",
                "code_challenge_method": "S256",
                "code_challenge": encoded_sha256_hash(verifier),
                "state": state,
                "scope": "email",
            })
            trace(f"Opening browser for sign-in (redirect {redirect_uri})", "AUTH")
            self._open_browser(f"{base_url}/oauth/authorize?{query}")
            params = listener.wait(LOGIN_TIMEOUT, self._cancelled)

        if params is None:
            raise AuthorizationError("Sign-in was cancelled or timed out")
        if params.get("state") != state:
            raise AuthorizationError("Sign-in response did not match the request")
        if "error" in params:
            raise AuthorizationError(f"Sign-in failed: {params.get('error_description') or params['error']}")
        code = params.get("code")
        if not code:
            raise AuthorizationError("Sign-in response carried no authorization code")

        token = self._exchange_code(base_url, cfg, redirect_uri, verifier, code)
        account = self._fetch_account(base_url, cfg, token)
        session = AuthSession(id=str(uuid.uuid4()), access_token=token, account=account)
        self._store(session)
        return session

    def _exchange_code(self, base_url: str, cfg, redirect_uri: str, verifier: str, code: str) -> str:
        try:
            resp = self._http.post(
                f"{base_url}/oauth/token",
                json={
                    "client_id": cfg.client_id,
                    "redirect_uri": redirect_uri,
                    "code_verifier": verifier,
                    "code": code,
                    "grant_type": "authorization_code",
                },
                timeout=cfg.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise AuthorizationError(f"Token exchange failed: {e}") from e

        if resp.status_code != 200:
            raise AuthorizationError(f"Token exchange failed with HTTP {resp.status_code}")
        try:
            token = resp.json().get("access_token")
        except ValueError:
            token = None
        if not token:
            raise AuthorizationError("Token exchange returned no access token")
        return token

    def _fetch_account(self, base_url: str, cfg, token: str) -> str:
        """Best-effort account label for the session; empty on any failure."""
        try:
            resp = self._http.get(
                f"{base_url}/rest-api/users/me",
                headers={"Authorization": f"Bearer {token}"},
                timeout=cfg.timeout,
            )
            if resp.status_code == 200:
                user = resp.json()
                return user.get("emailAddress") or user.get("fullName") or ""
        except (requests.exceptions.RequestException, ValueError):
            trace_exception("Could not read account details")
        return ""

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _store(self, session: AuthSession) -> None:
        self._session = session
        try:
            self.sessions_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.sessions_file, "wb") as f:
                tomli_w.dump({"session": {
                    "id": session.id,
                    "access_token": session.access_token,
                    "account": session.account,
                }}, f)
        except OSError:
            trace_exception("Could not persist session")
        self.events.emit(SESSIONS_CHANGED, {"added": session.id})

    def _load(self) -> Optional[AuthSession]:
        if not self.sessions_file.exists():
            return None
        try:
            with open(self.sessions_file, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            return None
        s = data.get("session", {})
        if not s.get("access_token"):
            return None
        return AuthSession(id=s.get("id", ""), access_token=s["access_token"], account=s.get("account", ""))
