"""Tests for calmsync.config: environment-driven settings."""

from __future__ import annotations

import pytest

from calmsync.config import CalmSyncSettings, get_settings


class TestSettings:
    """Defaults and environment overrides."""

    def test_defaults(self) -> None:
        settings = CalmSyncSettings()
        assert settings.default_format == "structural"
        assert settings.diagram_direction == "right"
        assert settings.validate_on_generate is True
        assert settings.declaration_method == "define_node"
        assert settings.entry_point_markers == ["build", "define_nodes", "definenodes"]

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CALMSYNC_DIAGRAM_DIRECTION", "down")
        monkeypatch.setenv("CALMSYNC_ENTRY_POINT_MARKERS", '["make", "setup"]')
        settings = CalmSyncSettings()
        assert settings.diagram_direction == "down"
        assert settings.entry_point_markers == ["make", "setup"]

    def test_cached(self) -> None:
        assert get_settings() is get_settings()
