"""
Tests for environment-driven configuration.
"""

import importlib

import pytest

import constants


@pytest.fixture
def reload_constants(monkeypatch):
    """Reload constants under a patched environment and restore the defaults afterwards."""
    def reload(**env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return importlib.reload(constants)

    yield reload
    monkeypatch.undo()
    importlib.reload(constants)


class TestConstants:
    """Tests for constants.py."""

    def test_default_port(self, reload_constants, monkeypatch):
        monkeypatch.delenv("WS_PORT", raising=False)

        assert reload_constants().WS_PORT == 3001

    def test_port_overridable_from_environment(self, reload_constants):
        assert reload_constants(WS_PORT="4567").WS_PORT == 4567

    def test_timing_overrides(self, reload_constants):
        config = reload_constants(SWEEP_INTERVAL_SECONDS="5", SEND_TIMEOUT_SECONDS="0.5", MAX_VIEWERS_PER_ROOM="10")

        assert config.SWEEP_INTERVAL_SECONDS == 5.0
        assert config.SEND_TIMEOUT_SECONDS == 0.5
        assert config.MAX_VIEWERS_PER_ROOM == 10
