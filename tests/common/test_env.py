"""Tests for environment configuration interface."""

from pathlib import Path

import pytest

from common.env import Environment, env


class TestEnvironment:
    """Tests for Environment class."""

    def test_database_path_default(self, monkeypatch):
        """Test database_path returns default value."""
        monkeypatch.delenv("MARGINALIA_DB_PATH", raising=False)
        assert Environment.database_path() == Path("data/books.db")

    def test_database_path_from_env(self, monkeypatch):
        """Test database_path reads from environment."""
        monkeypatch.setenv("MARGINALIA_DB_PATH", "/tmp/test.db")
        assert str(Environment.database_path()) == "/tmp/test.db"

    def test_legacy_json_path_default(self, monkeypatch):
        """Test legacy_json_path returns default value."""
        monkeypatch.delenv("MARGINALIA_LEGACY_JSON", raising=False)
        assert Environment.legacy_json_path() == Path("data/books.json")

    def test_legacy_json_path_from_env(self, monkeypatch):
        """Test legacy_json_path reads from environment."""
        monkeypatch.setenv("MARGINALIA_LEGACY_JSON", "/tmp/books.json")
        assert str(Environment.legacy_json_path()) == "/tmp/books.json"

    def test_save_delay_defaults(self, monkeypatch):
        """Test debounce settings fall back to their defaults."""
        for name in (
            "MARGINALIA_CARD_SAVE_DELAY",
            "MARGINALIA_CARD_SAVE_MAX_WAIT",
            "MARGINALIA_CONNECTION_SAVE_DELAY",
            "MARGINALIA_CONNECTION_SAVE_MAX_WAIT",
        ):
            monkeypatch.delenv(name, raising=False)

        assert Environment.card_save_delay() == 0.3
        assert Environment.card_save_max_wait() == 1.0
        assert Environment.connection_save_delay() == 1.0
        assert Environment.connection_save_max_wait() == 3.0

    def test_card_save_delay_from_env(self, monkeypatch):
        """Test card_save_delay parses a float."""
        monkeypatch.setenv("MARGINALIA_CARD_SAVE_DELAY", "0.05")
        assert Environment.card_save_delay() == 0.05

    def test_invalid_delay_raises(self, monkeypatch):
        """Test a non-numeric delay is rejected."""
        monkeypatch.setenv("MARGINALIA_CONNECTION_SAVE_DELAY", "soon")
        with pytest.raises(ValueError):
            Environment.connection_save_delay()


class TestEnvSingleton:
    """Tests for env singleton instance."""

    def test_env_is_environment_instance(self):
        """Test env is an instance of Environment."""
        assert isinstance(env, Environment)

    def test_env_methods_accessible(self, monkeypatch):
        """Test env singleton methods are accessible."""
        monkeypatch.setenv("MARGINALIA_DB_PATH", "/tmp/singleton.db")
        assert str(env.database_path()) == "/tmp/singleton.db"
