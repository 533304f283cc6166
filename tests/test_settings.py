"""Tests for settings.py: TOML persistence and the change-key helpers."""
from __future__ import annotations

import os
import sys

# Ensure project root is on sys.path so imports work
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from settings import AppSettings, SettingsManager, changed_keys, flatten


class TestSettingsManager:
    def test_defaults_when_file_missing(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        assert manager.settings == AppSettings()
        assert not manager.get_settings_path().exists()
        manager.ensure_file_complete()
        assert manager.get_settings_path().exists()

    def test_save_and_reload(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        manager.settings.theme = "light"
        manager.settings.mermaid_chart.base_url = "https://mc.example"
        manager.settings.mermaid_chart.client_id = "abc"
        manager.settings.overlay.debounce_ms = 0
        manager.settings.editor.font.size = 13
        manager.save()

        reloaded = SettingsManager(settings_dir=tmp_path)
        assert reloaded.settings == manager.settings

    def test_partial_file_keeps_other_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text('[mermaid_chart]\nclient_id = "xyz"\n', encoding="utf-8")
        settings = SettingsManager(settings_dir=tmp_path).settings
        assert settings.mermaid_chart.client_id == "xyz"
        assert settings.mermaid_chart.base_url == AppSettings().mermaid_chart.base_url
        assert settings.overlay == AppSettings().overlay

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("theme = [unterminated", encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_wrong_value_type_falls_back_to_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text('[overlay]\ndebounce_ms = "soon"\n', encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_negative_debounce_clamped(self, tmp_path):
        (tmp_path / "settings.toml").write_text("[overlay]\ndebounce_ms = -5\n", encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings.overlay.debounce_ms == 0

    def test_to_toml_has_every_section(self, tmp_path):
        text = SettingsManager(settings_dir=tmp_path).to_toml()
        for section in ("[general]", "[mermaid_chart]", "[editor.font]", "[overlay]", "[panel.syntax]"):
            assert section in text


class TestAccessors:
    def test_base_url_trailing_slash_removed(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        manager.settings.mermaid_chart.base_url = " https://mc.example/ "
        assert manager.get_base_url() == "https://mc.example"

    def test_missing_base_url_reported(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        manager.settings.mermaid_chart.base_url = ""
        messages = []
        assert manager.get_base_url(messages.append) == ""
        assert messages == ["MermaidChart: Base URL is not set. Please set the base URL in the settings."]

    def test_missing_client_id_reported(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        messages = []
        assert manager.get_client_id(messages.append) == ""
        assert len(messages) == 1
        assert "Client ID" in messages[0]

    def test_configured_values_not_reported(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        manager.settings.mermaid_chart.client_id = "abc"
        messages = []
        manager.get_base_url(messages.append)
        manager.get_client_id(messages.append)
        assert messages == []

    def test_render_theme(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        assert manager.render_theme(system_is_dark=True) == "dark"
        assert manager.render_theme(system_is_dark=False) == "light"
        manager.settings.theme = "light"
        assert manager.render_theme(system_is_dark=True) == "light"


class TestChangedKeys:
    def test_flatten(self):
        assert flatten({"a": {"b": 1, "c": {"d": 2}}, "e": 3}) == {"a.b": 1, "a.c.d": 2, "e": 3}

    def test_general_prefix_dropped(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        before = manager.snapshot()
        manager.settings.theme = "light"
        manager.settings.mermaid_chart.base_url = "https://other.example"
        assert changed_keys(before, manager.snapshot()) == ["mermaid_chart.base_url", "theme"]

    def test_no_changes(self, tmp_path):
        manager = SettingsManager(settings_dir=tmp_path)
        assert changed_keys(manager.snapshot(), manager.snapshot()) == []
