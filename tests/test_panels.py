"""Tests for panels/registry.py and panels/controller.py.

Jobs run synchronously through a stand-in runner; no Qt needed.
"""
from __future__ import annotations

import base64
import os
import sys

import pytest

# Ensure project root is on sys.path so imports work
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from api.errors import NetworkError
from models import Diagram
from panels.controller import (
    DIAGRAM_DATA,
    GET_DIAGRAM_DATA,
    UPDATE_DIAGRAM,
    UPDATE_FAILED_MESSAGE,
    UPDATE_IN_PROGRESS_MESSAGE,
    UPDATED_MESSAGE,
    PanelController,
)
from panels.registry import PanelRegistry

DOC_ID = "0d9b5b1e-7f43-4c1a-9d0e-2a6a1f3b9c11"
OTHER_ID = "f3e2d1c0-b9a8-4765-8432-10fedcba9876"
PROJECT_ID = "11111111-2222-4333-8444-555555555555"


def make_diagram(**kwargs) -> Diagram:
    values = dict(
        id="diagram-1",
        document_id=DOC_ID,
        project_id=PROJECT_ID,
        version=(0, 1),
        title="Flow",
        code="graph TD\n  A-->B",
        rendered_outputs={"dark": "<svg>v1</svg>"},
    )
    values.update(kwargs)
    return Diagram(**values)


def sync_runner(fn, on_finished=None, on_failed=None):
    try:
        result = fn()
    except Exception as e:
        if on_failed is not None:
            on_failed(e)
        return
    if on_finished is not None:
        on_finished(result)


class DeferredRunner:
    """Holds jobs until ``run_all`` so tests can interleave events."""

    def __init__(self):
        self.jobs = []

    def __call__(self, fn, on_finished=None, on_failed=None):
        self.jobs.append((fn, on_finished, on_failed))

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for job in jobs:
            sync_runner(*job)


class FakeSurface:
    def __init__(self):
        self.messages = []
        self.revealed = 0
        self.closed = 0

    def post_message(self, message):
        self.messages.append(message)

    def reveal(self):
        self.revealed += 1

    def close_surface(self):
        self.closed += 1


class FakeNotifier:
    def __init__(self):
        self.infos = []
        self.errors = []

    def info(self, message):
        self.infos.append(message)

    def error(self, message):
        self.errors.append(message)


class FakeClient:
    """Serves one document; optionally fails a named step."""

    def __init__(self, diagram: Diagram, fail_on=None, served_id=None):
        self.server = diagram
        self.fail_on = fail_on
        self.served_id = served_id
        self.calls = []

    def _step(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise NetworkError(f"{name} failed")

    def update_document(self, diagram):
        self._step("update_document")
        major, minor = self.server.version
        self.server = Diagram(
            id=diagram.id,
            document_id=diagram.document_id,
            project_id=diagram.project_id,
            version=(major, minor + 1),
            title=diagram.title,
            code=diagram.code,
        )

    def get_document(self, document_id):
        self._step("get_document")
        if self.served_id:
            return make_diagram(document_id=self.served_id)
        return self.server

    def get_rendered_output(self, diagram, theme):
        self._step("get_rendered_output")
        return f"<svg>{theme} {diagram.version_tag}</svg>"


def decoded_image(message) -> str:
    url = message["data"]["diagramImage"]
    assert url.startswith("data:image/svg+xml;base64,")
    return base64.b64decode(url.split(",", 1)[1]).decode("utf-8")


# ─────────────────────────────────────────────────────────
# PanelController: message protocol
# ─────────────────────────────────────────────────────────


class TestMessageProtocol:
    def setup_method(self):
        self.surface = FakeSurface()
        self.notifier = FakeNotifier()
        self.client = FakeClient(make_diagram())
        self.controller = PanelController(
            make_diagram(), self.client, sync_runner, self.notifier, surface=self.surface
        )

    def test_get_diagram_data_uses_working_copy(self):
        self.controller.handle_message({"command": GET_DIAGRAM_DATA})
        assert self.client.calls == []
        message = self.surface.messages[-1]
        assert message["command"] == DIAGRAM_DATA
        assert message["data"]["code"] == "graph TD\n  A-->B"
        assert message["data"]["title"] == "Flow"
        assert decoded_image(message) == "<svg>v1</svg>"

    def test_falls_back_to_any_rendered_output(self):
        controller = PanelController(
            make_diagram(rendered_outputs={"light": "<svg>l</svg>"}),
            self.client, sync_runner, self.notifier, surface=self.surface, theme="dark",
        )
        assert base64.b64decode(controller.diagram_data()["diagramImage"].split(",", 1)[1]) == b"<svg>l</svg>"

    def test_unknown_command_ignored(self):
        self.controller.handle_message({"command": "bogus"})
        self.controller.handle_message("not a dict")
        assert self.surface.messages == []
        assert self.notifier.errors == []


# ─────────────────────────────────────────────────────────
# PanelController: update chain
# ─────────────────────────────────────────────────────────


class TestUpdate:
    def _controller(self, client, runner=sync_runner, on_updated=None):
        surface = FakeSurface()
        notifier = FakeNotifier()
        controller = PanelController(
            make_diagram(), client, runner, notifier, surface=surface, on_updated=on_updated
        )
        return controller, surface, notifier

    def test_successful_update_replaces_working_copy(self):
        client = FakeClient(make_diagram())
        updated = []
        controller, surface, notifier = self._controller(client, on_updated=updated.append)

        controller.handle_message({"command": UPDATE_DIAGRAM, "data": {"code": "graph LR\n  X-->Y", "title": "New"}})

        assert client.calls == ["update_document", "get_document", "get_rendered_output"]
        copy = controller.working_copy
        assert copy.code == "graph LR\n  X-->Y"
        assert copy.title == "New"
        assert copy.version == (0, 2)
        assert copy.rendered_outputs == {"dark": "<svg>dark v0.2</svg>"}
        assert copy.document_id == DOC_ID
        assert decoded_image(surface.messages[-1]) == "<svg>dark v0.2</svg>"
        assert notifier.infos == [UPDATED_MESSAGE]
        assert len(updated) == 1

    @pytest.mark.parametrize("step", ["update_document", "get_document", "get_rendered_output"])
    def test_failure_leaves_working_copy_untouched(self, step):
        client = FakeClient(make_diagram(), fail_on=step)
        updated = []
        controller, surface, notifier = self._controller(client, on_updated=updated.append)
        before = controller.working_copy

        controller.request_update({"code": "changed", "title": "Changed"})

        assert controller.working_copy == before
        assert surface.messages == []
        assert notifier.errors == [UPDATE_FAILED_MESSAGE]
        assert notifier.infos == []
        assert updated == []
        assert controller.updating is False

    def test_server_returning_other_document_fails(self):
        client = FakeClient(make_diagram(), served_id=OTHER_ID)
        controller, _, notifier = self._controller(client)
        controller.request_update({"code": "changed"})
        assert controller.working_copy.document_id == DOC_ID
        assert controller.working_copy.code == "graph TD\n  A-->B"
        assert notifier.errors == [UPDATE_FAILED_MESSAGE]

    def test_update_for_other_document_refused(self):
        client = FakeClient(make_diagram())
        controller, _, notifier = self._controller(client)
        controller.request_update({"code": "x", "documentID": OTHER_ID})
        assert client.calls == []
        assert notifier.errors == [UPDATE_FAILED_MESSAGE]

    def test_missing_title_keeps_current(self):
        client = FakeClient(make_diagram())
        controller, _, _ = self._controller(client)
        controller.request_update({"code": "graph LR"})
        assert controller.working_copy.title == "Flow"

    def test_second_update_while_in_flight_refused(self):
        client = FakeClient(make_diagram())
        runner = DeferredRunner()
        controller, _, notifier = self._controller(client, runner=runner)

        controller.request_update({"code": "first"})
        controller.request_update({"code": "second"})
        assert len(runner.jobs) == 1
        assert notifier.infos == [UPDATE_IN_PROGRESS_MESSAGE]

        runner.run_all()
        assert controller.working_copy.code == "first"
        assert controller.updating is False

        controller.request_update({"code": "third"})
        runner.run_all()
        assert controller.working_copy.code == "third"

    def test_result_after_dispose_is_dropped(self):
        client = FakeClient(make_diagram())
        runner = DeferredRunner()
        updated = []
        controller, surface, notifier = self._controller(client, runner=runner, on_updated=updated.append)
        before = controller.working_copy

        controller.request_update({"code": "late"})
        assert controller.updating is True
        controller.dispose()
        runner.run_all()

        assert controller.working_copy == before
        assert surface.messages == []
        assert notifier.infos == []
        assert len(updated) == 1


# ─────────────────────────────────────────────────────────
# PanelController: lifecycle
# ─────────────────────────────────────────────────────────


class TestControllerLifecycle:
    def test_dispose_closes_surface_once(self):
        surface = FakeSurface()
        controller = PanelController(make_diagram(), None, sync_runner, FakeNotifier(), surface=surface)
        controller.dispose()
        controller.dispose()
        assert surface.closed == 1
        assert controller.disposed

    def test_messages_ignored_after_dispose(self):
        surface = FakeSurface()
        controller = PanelController(make_diagram(), None, sync_runner, FakeNotifier(), surface=surface)
        controller.dispose()
        controller.handle_message({"command": GET_DIAGRAM_DATA})
        assert surface.messages == []

    def test_reveal_after_attach(self):
        controller = PanelController(make_diagram(), None, sync_runner, FakeNotifier())
        controller.reveal()
        surface = FakeSurface()
        controller.attach(surface)
        controller.reveal()
        assert surface.revealed == 1


# ─────────────────────────────────────────────────────────
# PanelRegistry
# ─────────────────────────────────────────────────────────


class TestPanelRegistry:
    def _factory(self, created, surfaces):
        def factory():
            surface = FakeSurface()
            surfaces.append(surface)
            controller = PanelController(make_diagram(), None, sync_runner, FakeNotifier(), surface=surface)
            created.append(controller)
            return controller
        return factory

    def test_one_panel_per_id(self):
        registry = PanelRegistry()
        created, surfaces = [], []
        first = registry.open_or_reveal(DOC_ID, self._factory(created, surfaces))
        second = registry.open_or_reveal(DOC_ID, self._factory(created, surfaces))
        assert first is second
        assert len(created) == 1
        assert surfaces[0].revealed == 2
        assert len(registry) == 1

    def test_distinct_ids_get_distinct_panels(self):
        registry = PanelRegistry()
        created, surfaces = [], []
        registry.open_or_reveal(DOC_ID, self._factory(created, surfaces))
        registry.open_or_reveal(OTHER_ID, self._factory(created, surfaces))
        assert sorted(registry.ids()) == sorted([DOC_ID, OTHER_ID])

    def test_dispose_then_reopen_creates_fresh_panel(self):
        registry = PanelRegistry()
        created, surfaces = [], []
        first = registry.open_or_reveal(DOC_ID, self._factory(created, surfaces))
        assert registry.dispose(DOC_ID) is True
        assert DOC_ID not in registry
        assert first.disposed
        assert surfaces[0].closed == 1

        second = registry.open_or_reveal(DOC_ID, self._factory(created, surfaces))
        assert second is not first
        assert len(created) == 2

    def test_dispose_unknown_id(self):
        assert PanelRegistry().dispose(DOC_ID) is False

    def test_surface_close_reentry(self):
        """A surface that reports its own close back to the registry is disposed once."""
        registry = PanelRegistry()

        class ReentrantSurface(FakeSurface):
            def close_surface(self):
                super().close_surface()
                registry.on_dispose(DOC_ID)

        surface = ReentrantSurface()
        registry.open_or_reveal(
            DOC_ID,
            lambda: PanelController(make_diagram(), None, sync_runner, FakeNotifier(), surface=surface),
        )
        registry.on_dispose(DOC_ID)
        assert surface.closed == 1
        assert len(registry) == 0

    def test_dispose_all(self):
        registry = PanelRegistry()
        created, surfaces = [], []
        registry.open_or_reveal(DOC_ID, self._factory(created, surfaces))
        registry.open_or_reveal(OTHER_ID, self._factory(created, surfaces))
        registry.dispose_all()
        assert len(registry) == 0
        assert all(c.disposed for c in created)
