"""Tests for configuration loading and validation."""
from pathlib import Path

import pytest

from notekeeper.config import MAX_SEARCH_RESULTS, NotekeeperConfig
from notekeeper.exceptions import ConfigurationError, ErrorCode


class TestDefaults:

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("NOTEKEEPER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("NOTEKEEPER_DATABASE_NAME", "custom.db")
        monkeypatch.setenv("NOTEKEEPER_SEARCH_LIMIT", "20")
        monkeypatch.setenv("NOTEKEEPER_BUSY_TIMEOUT_MS", "100")
        monkeypatch.setenv("NOTEKEEPER_LOG_LEVEL", "debug")

        cfg = NotekeeperConfig()
        assert cfg.data_dir == tmp_path
        assert cfg.get_database_path() == tmp_path / "custom.db"
        assert cfg.search_limit == 20
        assert cfg.busy_timeout_ms == 100
        assert cfg.log_level == "DEBUG"

    def test_defaults(self, monkeypatch):
        for var in (
            "NOTEKEEPER_DATA_DIR",
            "NOTEKEEPER_DATABASE_NAME",
            "NOTEKEEPER_SEARCH_LIMIT",
            "NOTEKEEPER_LOG_DIR",
        ):
            monkeypatch.delenv(var, raising=False)
        cfg = NotekeeperConfig()
        assert cfg.data_dir == Path.home() / ".notekeeper"
        assert cfg.database_name == "notekeeper.db"
        assert cfg.search_limit == MAX_SEARCH_RESULTS
        assert cfg.log_dir is None


class TestPaths:

    def test_absolute_database_name(self, tmp_path):
        cfg = NotekeeperConfig(data_dir=tmp_path, database_name=str(tmp_path / "x" / "a.db"))
        assert cfg.get_database_path() == tmp_path / "x" / "a.db"

    def test_memory_database_passes_through(self, tmp_path):
        cfg = NotekeeperConfig(data_dir=tmp_path, database_name=":memory:")
        assert str(cfg.get_database_path()) == ":memory:"

    def test_log_dir(self, tmp_path):
        cfg = NotekeeperConfig(data_dir=tmp_path)
        assert cfg.get_log_dir() == tmp_path / "logs"
        cfg.log_dir = tmp_path / "elsewhere"
        assert cfg.get_log_dir() == tmp_path / "elsewhere"

    def test_ensure_data_dir(self, tmp_path):
        cfg = NotekeeperConfig(data_dir=tmp_path / "nested" / "data")
        assert cfg.ensure_data_dir().is_dir()


class TestValidation:

    @pytest.mark.parametrize("limit", [0, -1, MAX_SEARCH_RESULTS + 1])
    def test_search_limit_range(self, limit):
        with pytest.raises(ConfigurationError) as exc_info:
            NotekeeperConfig(search_limit=limit)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID
        assert exc_info.value.config_key == "search_limit"

    def test_negative_busy_timeout(self):
        with pytest.raises(ConfigurationError):
            NotekeeperConfig(busy_timeout_ms=-1)

    def test_unknown_log_level(self):
        with pytest.raises(ConfigurationError):
            NotekeeperConfig(log_level="LOUD")

    def test_empty_database_name(self):
        with pytest.raises(ConfigurationError):
            NotekeeperConfig(database_name="  ")

    def test_assignment_is_validated(self, tmp_path):
        cfg = NotekeeperConfig(data_dir=tmp_path)
        with pytest.raises(ConfigurationError):
            cfg.search_limit = 99
