"""Tests for api/client.py against a scripted HTTP transport."""
from __future__ import annotations

import json
import os
import sys

import pytest
import requests

# Ensure project root is on sys.path so imports work
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from api.client import DiagramClient
from api.errors import (
    AuthorizationError,
    CredentialRejected,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from auth.credentials import CredentialStore
from auth.session import SessionManager, SessionState
from models import Diagram

ENDPOINT = "https://mc.example"
PROJECT_ID = "11111111-2222-4333-8444-555555555555"
DOC_ID = "0d9b5b1e-7f43-4c1a-9d0e-2a6a1f3b9c11"

DOC_PAYLOAD = {
    "id": "diagram-1",
    "documentID": DOC_ID,
    "projectID": PROJECT_ID,
    "major": 0,
    "minor": 3,
    "title": "Flow",
    "code": "graph TD\n  A-->B",
    "svgCode": "<svg>light</svg>",
    "svgCodeDark": "<svg>dark</svg>",
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class FakeHttp:
    """Returns scripted responses in order and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.requests.append({"method": method, "url": url, "headers": headers, "timeout": timeout, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeSessionManager:
    """Installs the next token from a list on every re-authentication."""

    def __init__(self, store, tokens=()):
        self.store = store
        self.tokens = list(tokens)
        self.revalidations = 0
        self.rejections = 0

    def ensure_session(self):
        return self.store.get()

    def validate(self, already_rejected=False):
        assert already_rejected
        self.revalidations += 1
        if not self.tokens:
            raise AuthorizationError("no session")
        self.store.set_token(self.tokens.pop(0))

    def reject(self):
        self.rejections += 1
        self.store.clear()


def make_client(*responses, tokens=(), token="t1"):
    store = CredentialStore(ENDPOINT, token=token)
    manager = FakeSessionManager(store, tokens)
    http = FakeHttp(*responses)
    return DiagramClient(store, manager, http=http, timeout=5.0), http, manager


# ─────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────


class TestOperations:
    def test_list_projects(self):
        client, http, _ = make_client(FakeResponse(payload=[{"id": PROJECT_ID, "title": "Main"}]))
        projects = client.list_projects()
        assert [(p.id, p.title) for p in projects] == [(PROJECT_ID, "Main")]
        assert http.requests[0]["url"] == f"{ENDPOINT}/rest-api/projects"
        assert http.requests[0]["headers"]["Authorization"] == "Bearer t1"
        assert http.requests[0]["timeout"] == 5.0

    def test_list_documents(self):
        client, http, _ = make_client(FakeResponse(payload=[DOC_PAYLOAD]))
        docs = client.list_documents(PROJECT_ID)
        assert docs[0].document_id == DOC_ID
        assert http.requests[0]["url"].endswith(f"/rest-api/projects/{PROJECT_ID}/documents")

    def test_get_document(self):
        client, _, _ = make_client(FakeResponse(payload=DOC_PAYLOAD))
        doc = client.get_document(DOC_ID)
        assert doc.version == (0, 3)
        assert doc.rendered_outputs == {"light": "<svg>light</svg>", "dark": "<svg>dark</svg>"}

    def test_create_document(self):
        client, http, _ = make_client(FakeResponse(payload=DOC_PAYLOAD))
        doc = client.create_document(PROJECT_ID)
        assert doc.project_id == PROJECT_ID
        assert http.requests[0]["method"] == "POST"

    def test_update_document_sends_editable_fields(self):
        client, http, _ = make_client(FakeResponse(payload={"result": "ok"}))
        diagram = Diagram.from_api(DOC_PAYLOAD).with_edits("graph LR\n  X-->Y", "Renamed")
        client.update_document(diagram)
        sent = http.requests[0]
        assert sent["method"] == "PUT"
        assert sent["json"]["code"] == "graph LR\n  X-->Y"
        assert sent["json"]["title"] == "Renamed"
        assert sent["json"]["documentID"] == DOC_ID

    def test_update_result_failed(self):
        client, _, _ = make_client(FakeResponse(payload={"result": "failed"}))
        with pytest.raises(ValidationError):
            client.update_document(Diagram.from_api(DOC_PAYLOAD))

    def test_delete_document(self):
        client, http, _ = make_client(FakeResponse(payload=DOC_PAYLOAD))
        deleted = client.delete_document(DOC_ID)
        assert deleted.document_id == DOC_ID
        assert http.requests[0]["method"] == "DELETE"

    def test_rendered_output_parameters(self):
        client, http, _ = make_client(FakeResponse(text="<svg>raw</svg>"))
        svg = client.get_rendered_output(Diagram.from_api(DOC_PAYLOAD), "dark")
        assert svg == "<svg>raw</svg>"
        sent = http.requests[0]
        assert sent["url"] == f"{ENDPOINT}/raw/{DOC_ID}"
        assert sent["params"] == {"version": "v0.3", "theme": "dark", "format": "svg"}

    def test_rendered_output_unknown_theme(self):
        client, http, _ = make_client()
        with pytest.raises(ValidationError):
            client.get_rendered_output(Diagram.from_api(DOC_PAYLOAD), "sepia")
        assert http.requests == []

    def test_edit_url(self):
        client, _, _ = make_client(FakeResponse(payload=DOC_PAYLOAD))
        url = client.get_edit_url(DOC_ID)
        assert url == f"{ENDPOINT}/app/projects/{PROJECT_ID}/diagrams/{DOC_ID}/version/v0.3/edit"

    @pytest.mark.parametrize("bad_id", ["", "abc", DOC_ID + "0", None])
    def test_malformed_ids_rejected_locally(self, bad_id):
        client, http, _ = make_client()
        with pytest.raises(ValidationError):
            client.get_document(bad_id)
        assert http.requests == []


# ─────────────────────────────────────────────────────────
# Error mapping
# ─────────────────────────────────────────────────────────


class TestErrorMapping:
    def test_not_found(self):
        client, _, _ = make_client(FakeResponse(404, {"error": "missing"}))
        with pytest.raises(NotFoundError):
            client.get_document(DOC_ID)

    @pytest.mark.parametrize("status", [400, 422])
    def test_validation(self, status):
        client, _, _ = make_client(FakeResponse(status, {"error": "bad code"}))
        with pytest.raises(ValidationError, match="bad code"):
            client.get_document(DOC_ID)

    @pytest.mark.parametrize("status", [500, 503, 418])
    def test_other_statuses_are_network_errors(self, status):
        client, _, _ = make_client(FakeResponse(status, {}))
        with pytest.raises(NetworkError) as info:
            client.list_projects()
        assert info.value.status == status

    def test_transport_failure(self):
        client, _, _ = make_client(requests.exceptions.ConnectionError("refused"))
        with pytest.raises(NetworkError):
            client.list_projects()

    def test_timeout(self):
        client, _, _ = make_client(requests.exceptions.Timeout("slow"))
        with pytest.raises(NetworkError, match="timed out"):
            client.list_projects()

    def test_invalid_json(self):
        client, _, _ = make_client(FakeResponse(text="<html>oops</html>"))
        with pytest.raises(NetworkError):
            client.list_projects()

    def test_non_auth_errors_not_retried(self):
        client, http, manager = make_client(FakeResponse(500, {}), tokens=["t2"])
        with pytest.raises(NetworkError):
            client.list_projects()
        assert len(http.requests) == 1
        assert manager.revalidations == 0


# ─────────────────────────────────────────────────────────
# Retry after re-authentication
# ─────────────────────────────────────────────────────────


class TestReauthentication:
    def test_single_retry_with_new_token(self):
        client, http, manager = make_client(
            FakeResponse(401),
            FakeResponse(payload=[{"id": PROJECT_ID, "title": "Main"}]),
            tokens=["t2"],
        )
        projects = client.list_projects()
        assert len(projects) == 1
        assert manager.revalidations == 1
        assert [r["headers"]["Authorization"] for r in http.requests] == ["Bearer t1", "Bearer t2"]

    def test_second_rejection_is_authorization_error(self):
        client, http, manager = make_client(FakeResponse(401), FakeResponse(401), tokens=["t2", "t3"])
        with pytest.raises(AuthorizationError):
            client.list_projects()
        assert len(http.requests) == 2
        assert manager.revalidations == 1
        assert manager.rejections == 1
        assert client.store.token is None

    def test_reauthentication_failure_propagates(self):
        client, http, _ = make_client(FakeResponse(401))
        with pytest.raises(AuthorizationError):
            client.list_projects()
        assert len(http.requests) == 1

    def test_whoami_does_not_retry(self):
        client, http, manager = make_client(FakeResponse(401), tokens=["t2"])
        with pytest.raises(CredentialRejected):
            client.whoami()
        assert manager.revalidations == 0

    def test_without_session_manager(self):
        store = CredentialStore(ENDPOINT, token="t1")
        client = DiagramClient(store, http=FakeHttp(FakeResponse(401)))
        with pytest.raises(AuthorizationError):
            client.list_projects()

    def test_missing_endpoint(self):
        client, http, _ = make_client()
        client.store.set_endpoint("")
        with pytest.raises(ValidationError):
            client.list_projects()
        assert http.requests == []


class TestWithSessionManager:
    """End to end with the real SessionManager."""

    def test_stale_token_replaced_once(self):
        class Provider:
            def __init__(self):
                self.forced = 0

            def get_session(self, create_if_none=False, force_new=False, silent=False):
                if force_new:
                    self.forced += 1

                    class S:
                        access_token = "fresh"
                    return S()
                return None

        store = CredentialStore(ENDPOINT, token="stale")
        provider = Provider()
        manager = SessionManager(store, provider)
        http = FakeHttp(FakeResponse(401), FakeResponse(payload=DOC_PAYLOAD))
        client = DiagramClient(store, manager, http=http)
        manager.probe = client.whoami

        doc = client.get_document(DOC_ID)
        assert doc.document_id == DOC_ID
        assert provider.forced == 1
        assert store.token == "fresh"
        assert manager.reauth_count == 1

    def test_double_rejection_fails_session(self):
        class Provider:
            def get_session(self, create_if_none=False, force_new=False, silent=False):
                class S:
                    access_token = "fresh"
                return S()

        store = CredentialStore(ENDPOINT, token="stale")
        manager = SessionManager(store, Provider())
        http = FakeHttp(FakeResponse(401), FakeResponse(401))
        client = DiagramClient(store, manager, http=http)
        manager.probe = client.whoami

        with pytest.raises(AuthorizationError):
            client.get_document(DOC_ID)
        assert manager.state == SessionState.FAILED
        assert store.token is None
        assert len(http.requests) == 2

    def test_cancelled_sign_in_fails_session(self):
        class Provider:
            def get_session(self, create_if_none=False, force_new=False, silent=False):
                raise AuthorizationError("Sign-in was cancelled")

        store = CredentialStore(ENDPOINT, token="stale")
        manager = SessionManager(store, Provider())
        client = DiagramClient(store, manager, http=FakeHttp(FakeResponse(401)))

        with pytest.raises(AuthorizationError):
            client.get_document(DOC_ID)
        assert manager.state == SessionState.FAILED
        assert store.token is None
