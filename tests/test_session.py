"""Tests for auth/credentials.py and auth/session.py."""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass

import pytest

# Ensure project root is on sys.path so imports work
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from api.errors import AuthorizationError, CredentialRejected
from auth.credentials import CredentialStore
from auth.session import BASE_URL_KEY, SessionManager, SessionState
from events import CONFIGURATION_CHANGED, SESSIONS_CHANGED, EventSource


@dataclass
class FakeSession:
    access_token: str
    account: str = "someone@example.com"


class FakeProvider:
    """Hands out sessions from a list; records every call."""

    def __init__(self, tokens=(), stored=None):
        self.tokens = list(tokens)
        self.stored = FakeSession(stored) if stored else None
        self.calls = []

    def get_session(self, create_if_none=False, force_new=False, silent=False):
        self.calls.append({"create_if_none": create_if_none, "force_new": force_new, "silent": silent})
        if silent:
            return self.stored
        if force_new or (self.stored is None and create_if_none):
            if not self.tokens:
                return None
            self.stored = FakeSession(self.tokens.pop(0))
        return self.stored


class Probe:
    """Rejects the listed tokens."""

    def __init__(self, store, rejected=()):
        self.store = store
        self.rejected = set(rejected)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.store.token in self.rejected:
            raise CredentialRejected("401")
        return {"id": "me"}


# ─────────────────────────────────────────────────────────
# CredentialStore
# ─────────────────────────────────────────────────────────


class TestCredentialStore:
    def test_empty_store(self):
        store = CredentialStore("https://mc.example/")
        assert store.get() is None
        assert store.endpoint == "https://mc.example"

    def test_token_and_endpoint_independent(self):
        store = CredentialStore("https://a.example", token="t1")
        store.set_endpoint("https://b.example/")
        assert store.get().token == "t1"
        assert store.get().endpoint == "https://b.example"
        store.clear()
        assert store.get() is None
        assert store.endpoint == "https://b.example"

    def test_empty_token_means_none(self):
        store = CredentialStore("https://a.example")
        store.set_token("")
        assert store.token is None


# ─────────────────────────────────────────────────────────
# SessionManager
# ─────────────────────────────────────────────────────────


class TestEnsureSession:
    def test_cached_token_needs_no_provider(self):
        store = CredentialStore("https://mc.example", token="cached")
        provider = FakeProvider()
        manager = SessionManager(store, provider)
        assert manager.ensure_session().token == "cached"
        assert provider.calls == []
        assert manager.state == SessionState.AUTHENTICATED

    def test_acquires_session_when_empty(self):
        store = CredentialStore("https://mc.example")
        provider = FakeProvider(tokens=["t1"])
        manager = SessionManager(store, provider)
        assert manager.state == SessionState.NO_SESSION
        credential = manager.ensure_session()
        assert credential.token == "t1"
        assert store.token == "t1"
        assert provider.calls[0]["create_if_none"] is True
        assert manager.state == SessionState.AUTHENTICATED

    def test_no_session_raises(self):
        manager = SessionManager(CredentialStore("https://mc.example"), FakeProvider())
        with pytest.raises(AuthorizationError):
            manager.ensure_session()
        assert manager.state == SessionState.FAILED


class TestValidate:
    def test_accepted_token(self):
        store = CredentialStore("https://mc.example", token="good")
        manager = SessionManager(store, FakeProvider())
        manager.probe = Probe(store)
        manager.validate()
        assert manager.state == SessionState.AUTHENTICATED
        assert manager.reauth_count == 0

    def test_rejected_token_forces_new_session(self):
        store = CredentialStore("https://mc.example", token="stale")
        provider = FakeProvider(tokens=["fresh"], stored="stale")
        manager = SessionManager(store, provider)
        manager.probe = Probe(store, rejected={"stale"})
        manager.validate()
        assert store.token == "fresh"
        assert manager.reauth_count == 1
        assert provider.calls[-1]["force_new"] is True

    def test_already_rejected_skips_probe(self):
        store = CredentialStore("https://mc.example", token="stale")
        provider = FakeProvider(tokens=["fresh"])
        manager = SessionManager(store, provider)
        probe = Probe(store)
        manager.probe = probe
        manager.validate(already_rejected=True)
        assert probe.calls == 0
        assert store.token == "fresh"

    def test_reauth_without_session_fails(self):
        store = CredentialStore("https://mc.example", token="stale")
        manager = SessionManager(store, FakeProvider())
        manager.probe = Probe(store, rejected={"stale"})
        with pytest.raises(AuthorizationError):
            manager.validate()
        assert manager.state == SessionState.FAILED
        assert store.token is None

    def test_provider_error_during_reauth_fails(self):
        class CancellingProvider(FakeProvider):
            def get_session(self, create_if_none=False, force_new=False, silent=False):
                raise AuthorizationError("Sign-in timed out")

        store = CredentialStore("https://mc.example", token="stale")
        manager = SessionManager(store, CancellingProvider())
        with pytest.raises(AuthorizationError):
            manager.validate(already_rejected=True)
        assert manager.state == SessionState.FAILED
        assert store.token is None

    def test_provider_error_during_acquire_fails(self):
        class BrokenProvider(FakeProvider):
            def get_session(self, create_if_none=False, force_new=False, silent=False):
                raise ConnectionError("token exchange failed")

        manager = SessionManager(CredentialStore("https://mc.example"), BrokenProvider())
        with pytest.raises(ConnectionError):
            manager.ensure_session()
        assert manager.state == SessionState.FAILED

    def test_reject_clears_token(self):
        store = CredentialStore("https://mc.example", token="fresh")
        manager = SessionManager(store, FakeProvider())
        manager.reject()
        assert manager.state == SessionState.FAILED
        assert store.token is None
        assert store.endpoint == "https://mc.example"

    def test_failed_state_recovers_on_next_ensure(self):
        store = CredentialStore("https://mc.example")
        provider = FakeProvider()
        manager = SessionManager(store, provider)
        with pytest.raises(AuthorizationError):
            manager.ensure_session()
        provider.tokens.append("later")
        assert manager.ensure_session().token == "later"
        assert manager.state == SessionState.AUTHENTICATED


class TestHostNotifications:
    def test_external_change_installs_new_session(self):
        store = CredentialStore("https://mc.example", token="old")
        provider = FakeProvider(stored="new")
        manager = SessionManager(store, provider)
        manager.probe = Probe(store)
        manager.on_external_session_change({"added": "x"})
        assert store.token == "new"
        assert manager.state == SessionState.AUTHENTICATED

    def test_external_removal_clears_token(self):
        store = CredentialStore("https://mc.example", token="old")
        manager = SessionManager(store, FakeProvider())
        manager.on_external_session_change({"removed": True})
        assert store.token is None
        assert manager.state == SessionState.NO_SESSION

    def test_external_change_for_installed_token_is_ignored(self):
        store = CredentialStore("https://mc.example", token="same")
        provider = FakeProvider(stored="same")
        manager = SessionManager(store, provider)
        probe = Probe(store)
        manager.probe = probe
        manager.on_external_session_change()
        assert store.token == "same"
        assert probe.calls == 0

    def test_external_change_never_prompts(self):
        store = CredentialStore("https://mc.example")
        provider = FakeProvider(tokens=["interactive"])
        SessionManager(store, provider).on_external_session_change()
        assert all(call["silent"] for call in provider.calls)
        assert store.token is None

    def test_endpoint_change_keeps_token(self):
        store = CredentialStore("https://a.example", token="t1")
        manager = SessionManager(store, FakeProvider())
        manager.on_endpoint_config_change("https://b.example")
        assert store.endpoint == "https://b.example"
        assert store.token == "t1"


class TestRegisterListeners:
    def _setup(self):
        store = CredentialStore("https://a.example", token="t1")
        manager = SessionManager(store, FakeProvider())
        events = EventSource()
        jobs = []
        unsubscribers = manager.register_listeners(
            events,
            schedule=jobs.append,
            endpoint_getter=lambda: "https://b.example",
        )
        return store, events, jobs, unsubscribers

    def test_base_url_change_scheduled(self):
        store, events, jobs, _ = self._setup()
        events.emit(CONFIGURATION_CHANGED, [BASE_URL_KEY])
        assert len(jobs) == 1
        jobs[0]()
        assert store.endpoint == "https://b.example"
        assert store.token == "t1"

    def test_unrelated_configuration_ignored(self):
        _, events, jobs, _ = self._setup()
        events.emit(CONFIGURATION_CHANGED, ["theme", "overlay.debounce_ms"])
        assert jobs == []

    def test_sessions_changed_scheduled(self):
        store, events, jobs, _ = self._setup()
        events.emit(SESSIONS_CHANGED, {"removed": True})
        assert len(jobs) == 1
        jobs[0]()
        assert store.token is None

    def test_unsubscribe(self):
        _, events, jobs, unsubscribers = self._setup()
        for unsubscribe in unsubscribers:
            unsubscribe()
        events.emit(SESSIONS_CHANGED, None)
        events.emit(CONFIGURATION_CHANGED, [BASE_URL_KEY])
        assert jobs == []
