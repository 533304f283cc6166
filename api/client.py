"""
api/client.py

Typed facade over the Mermaid Chart REST API.

Every call attaches the current bearer token. A 401 triggers one
re-authentication through the session manager and one retry of the same
call; a second 401 becomes AuthorizationError. Everything else propagates
as its own error kind without retry.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from api.errors import (
    AuthorizationError,
    CredentialRejected,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from auth.credentials import CredentialStore
from models import THEMES, Diagram, Project, is_uuid

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0


class DiagramClient:
    """Mermaid Chart API client.

    Args:
        store: Source of the token and endpoint for every request.
        session_manager: Provides ``ensure_session()`` and
            ``validate(already_rejected=True)``. May be attached later.
        http: ``requests``-compatible session (anything with ``request()``).
        timeout: Per-request transport timeout in seconds.
    """

    def __init__(
        self,
        store: CredentialStore,
        session_manager: Any = None,
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.store = store
        self.session_manager = session_manager
        self.http = http or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def whoami(self) -> Dict[str, Any]:
        """Current user. No retry; raises CredentialRejected on 401."""
        return self._json("GET", "/rest-api/users/me")

    def list_projects(self) -> List[Project]:
        data = self._call("list_projects", lambda: self._json("GET", "/rest-api/projects"))
        return [Project.from_api(p) for p in data or []]

    def list_documents(self, project_id: str) -> List[Diagram]:
        _require_uuid(project_id, "project id")
        data = self._call(
            "list_documents",
            lambda: self._json("GET", f"/rest-api/projects/{project_id}/documents"),
        )
        return [Diagram.from_api(d) for d in data or []]

    def get_document(self, document_id: str) -> Diagram:
        _require_uuid(document_id, "document id")
        data = self._call(
            "get_document",
            lambda: self._json("GET", f"/rest-api/documents/{document_id}"),
        )
        return Diagram.from_api(data)

    def create_document(self, project_id: str) -> Diagram:
        _require_uuid(project_id, "project id")
        data = self._call(
            "create_document",
            lambda: self._json("POST", f"/rest-api/projects/{project_id}/documents", json={}),
        )
        return Diagram.from_api(data)

    def update_document(self, diagram: Diagram) -> None:
        _require_uuid(diagram.document_id, "document id")
        data = self._call(
            "update_document",
            lambda: self._json("PUT", f"/rest-api/documents/{diagram.document_id}", json=diagram.to_api()),
        )
        if isinstance(data, dict) and data.get("result") == "failed":
            raise ValidationError(f"Server rejected update of document {diagram.document_id}")

    def delete_document(self, document_id: str) -> Diagram:
        _require_uuid(document_id, "document id")
        data = self._call(
            "delete_document",
            lambda: self._json("DELETE", f"/rest-api/documents/{document_id}"),
        )
        return Diagram.from_api(data or {"documentID": document_id})

    def get_rendered_output(self, diagram: Diagram, theme: str) -> str:
        """Rendered SVG for *diagram* at its version in the given theme."""
        _require_uuid(diagram.document_id, "document id")
        if theme not in THEMES:
            raise ValidationError(f"Unknown theme: {theme!r}")
        params = {"version": diagram.version_tag, "theme": theme, "format": "svg"}
        resp = self._call(
            "get_rendered_output",
            lambda: self._send("GET", f"/raw/{diagram.document_id}", params=params),
        )
        return resp.text

    def get_edit_url(self, document_id: str) -> str:
        """Browser URL that opens the document in the Mermaid Chart editor."""
        doc = self.get_document(document_id)
        return (
            f"{self.store.endpoint}/app/projects/{doc.project_id}"
            f"/diagrams/{doc.document_id}/version/{doc.version_tag}/edit"
        )

    # ------------------------------------------------------------------
    # Retry-after-reauthentication
    # ------------------------------------------------------------------

    def _call(self, name: str, fn: Callable[[], T]) -> T:
        if self.session_manager is not None:
            self.session_manager.ensure_session()
        try:
            return fn()
        except CredentialRejected:
            log.info("%s: credential rejected, re-authenticating", name)

        if self.session_manager is None:
            raise AuthorizationError("Mermaid Chart rejected the credential")
        self.session_manager.validate(already_rejected=True)

        try:
            return fn()
        except CredentialRejected as e:
            log.warning("%s: credential rejected after re-authentication", name)
            self.session_manager.reject()
            raise AuthorizationError("Mermaid Chart rejected the credential twice") from e

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        credential = self.store.get()
        if credential is None:
            raise CredentialRejected("No access token installed")
        if not credential.endpoint:
            raise ValidationError("Mermaid Chart base URL is not configured")

        headers = {
            "Authorization": f"Bearer {credential.token}",
            "Accept": "application/json",
        }
        url = f"{credential.endpoint}{path}"
        try:
            resp = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Request timed out: {method} {path}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed: {method} {path}: {e}") from e

        log.debug("%s %s -> %s", method, path, resp.status_code)
        self._check_status(resp, path)
        return resp

    def _json(self, method: str, path: str, **kwargs) -> Any:
        resp = self._send(method, path, **kwargs)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise NetworkError(f"Invalid response format from {path}") from e

    @staticmethod
    def _check_status(resp: requests.Response, path: str) -> None:
        status = resp.status_code
        if status == 401:
            raise CredentialRejected(f"Unauthorized: {path}")
        if status == 404:
            raise NotFoundError(path.rstrip("/").split("/")[-1])
        if status in (400, 422):
            raise ValidationError(_error_message(resp, f"Invalid request: {path}"))
        if status >= 500:
            raise NetworkError(f"Server error: {status}", status=status)
        if status >= 400:
            raise NetworkError(_error_message(resp, f"API error: {status}"), status=status)


def _require_uuid(value: str, what: str) -> None:
    if not is_uuid(value):
        raise ValidationError(f"Malformed {what}: {value!r}")


def _error_message(resp: requests.Response, fallback: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or fallback)
    return fallback
