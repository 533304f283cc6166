"""Tests for references/overlay.py: the overlay always equals the latest scan."""
from __future__ import annotations

import os
import sys

# Ensure project root is on sys.path so imports work
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from references.overlay import VIEW_COMMAND, OverlayController, OverlayState
from references.scanner import scan

UUID_A = "0d9b5b1e-7f43-4c1a-9d0e-2a6a1f3b9c11"
UUID_B = "f3e2d1c0-b9a8-4765-8432-10fedcba9876"
TEXT = f"# [MermaidChart: {UUID_A}]\ncode\n// [MermaidChart: {UUID_B}]\n"


class RecordingHandle:
    def __init__(self):
        self.highlights = None
        self.actions = None
        self.calls = 0

    def set_highlights(self, ranges):
        self.calls += 1
        self.highlights = list(ranges)

    def set_actions(self, actions):
        self.actions = list(actions)


class BrokenHandle:
    def set_highlights(self, ranges):
        raise RuntimeError("editor went away")

    def set_actions(self, actions):
        raise RuntimeError("editor went away")


# ─────────────────────────────────────────────────────────
# render / apply
# ─────────────────────────────────────────────────────────


class TestOverlayController:
    def test_one_highlight_and_action_per_reference(self):
        refs = scan(TEXT)
        state = OverlayController.render(refs)
        assert len(state.highlights) == 2
        assert len(state.actions) == 2
        assert all(a.command == VIEW_COMMAND for a in state.actions)
        assert [a.reference.id for a in state.actions] == [UUID_A, UUID_B]
        assert [a.source_range for a in state.actions] == list(state.highlights)

    def test_apply_installs_render(self):
        handle = RecordingHandle()
        controller = OverlayController()
        refs = scan(TEXT)
        state = controller.apply(handle, refs)
        assert handle.highlights == list(state.highlights)
        assert handle.actions == list(state.actions)
        assert controller.last_state == state

    def test_apply_twice_same_as_once(self):
        handle = RecordingHandle()
        controller = OverlayController()
        refs = scan(TEXT)
        first = controller.apply(handle, refs)
        snapshot = (list(handle.highlights), list(handle.actions))
        second = controller.apply(handle, refs)
        assert first == second
        assert (handle.highlights, handle.actions) == snapshot

    def test_empty_references_clear_overlay(self):
        handle = RecordingHandle()
        controller = OverlayController()
        controller.apply(handle, scan(TEXT))
        state = controller.apply(handle, [])
        assert state == OverlayState()
        assert handle.highlights == []
        assert handle.actions == []

    def test_handle_failure_does_not_raise(self):
        state = OverlayController().apply(BrokenHandle(), scan(TEXT))
        assert len(state.highlights) == 2

    def test_partial_failure_clears_both_sets(self):
        class ActionsFailingHandle(RecordingHandle):
            fail_actions = False

            def set_actions(self, actions):
                if self.fail_actions and actions:
                    raise RuntimeError("lens provider unavailable")
                super().set_actions(actions)

        handle = ActionsFailingHandle()
        controller = OverlayController()
        controller.apply(handle, scan(TEXT))
        assert len(handle.actions) == 2

        handle.fail_actions = True
        controller.apply(handle, scan(f"// [MermaidChart: {UUID_B}]"))
        assert handle.highlights == []
        assert handle.actions == []
        assert controller.last_state == OverlayState()

    def test_missing_handle(self):
        state = OverlayController().apply(None, scan(TEXT))
        assert len(state.actions) == 2


class TestRefresh:
    def test_refresh_rescans_text(self):
        handle = RecordingHandle()
        controller = OverlayController()
        refs = controller.refresh(handle, TEXT)
        assert [r.id for r in refs] == [UUID_A, UUID_B]
        assert len(handle.highlights) == 2

    def test_refresh_after_edit_replaces_everything(self):
        handle = RecordingHandle()
        controller = OverlayController()
        controller.refresh(handle, TEXT)
        controller.refresh(handle, f"// [MermaidChart: {UUID_B}]")
        assert [a.reference.id for a in handle.actions] == [UUID_B]
        assert handle.highlights[0].line == 0
        assert handle.calls == 2
