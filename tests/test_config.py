"""Tests for config module."""

from pathlib import Path

import pytest

from creator.config import DEFAULT_MODEL, DEFAULT_SERVER_URL, DriverConfig, load_config
from creator.exceptions import ConfigError
from creator.logging import LogConfig


class TestDriverConfig:
    """Tests for DriverConfig dataclass."""

    def test_defaults(self):
        config = DriverConfig()
        assert config.server_url == DEFAULT_SERVER_URL
        assert config.model == "pearai_model"
        assert config.poll_interval == 0.1
        assert config.ready_timeout == 30.0
        assert config.working_dir is None

    def test_trailing_slash_stripped(self):
        config = DriverConfig(server_url="https://example.test/api/")
        assert config.server_url == "https://example.test/api"

    def test_managed_api_base(self):
        """Managed model traffic goes through the server's aider integration."""
        config = DriverConfig(server_url="https://example.test")
        assert config.managed_api_base == "https://example.test/integrations/aider"

    def test_working_dir_expanded(self):
        config = DriverConfig(working_dir="~/code")
        assert not config.working_dir.startswith("~")
        assert config.working_dir.endswith("code")


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_defaults(self, monkeypatch):
        for name in ("CREATOR_SERVER_URL", "CREATOR_MODEL", "CREATOR_API_KEY", "CREATOR_WORKDIR"):
            monkeypatch.delenv(name, raising=False)
        config = load_config()
        assert config.model == DEFAULT_MODEL
        assert config.api_key == ""

    def test_load_from_env(self, monkeypatch):
        monkeypatch.setenv("CREATOR_MODEL", "gpt-4o")
        monkeypatch.setenv("CREATOR_API_KEY", "sk-test")
        monkeypatch.setenv("CREATOR_POLL_INTERVAL", "0.25")
        monkeypatch.setenv("CREATOR_WORKDIR", "/srv/project")
        monkeypatch.setenv("CREATOR_READY_TIMEOUT", "5")
        config = load_config()
        assert config.model == "gpt-4o"
        assert config.api_key == "sk-test"
        assert config.poll_interval == 0.25
        assert config.working_dir == "/srv/project"
        assert config.ready_timeout == 5.0

    def test_non_numeric_setting_raises(self, monkeypatch):
        monkeypatch.setenv("CREATOR_PROBE_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="CREATOR_PROBE_TIMEOUT"):
            load_config()

    def test_negative_setting_raises(self, monkeypatch):
        monkeypatch.setenv("CREATOR_START_GRACE", "-1")
        with pytest.raises(ConfigError):
            load_config()


class TestLogConfig:
    """Tests for log configuration."""

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CREATOR_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("CREATOR_LOG_DIR", str(tmp_path))
        monkeypatch.setenv("CREATOR_LOG_MAX_SIZE_MB", "2")
        monkeypatch.setenv("CREATOR_LOG_REDACT", "false")
        config = LogConfig.from_env()
        assert config.process_level == "DEBUG"
        assert config.turn_level == "DEBUG"
        assert config.log_dir == Path(tmp_path)
        assert config.max_file_size_bytes == 2 * 1024 * 1024
        assert config.redact_enabled is False

    def test_invalid_size_ignored(self, monkeypatch):
        monkeypatch.setenv("CREATOR_LOG_MAX_SIZE_MB", "lots")
        assert LogConfig.from_env().max_file_size_bytes == 10 * 1024 * 1024

    def test_log_paths(self, tmp_path):
        config = LogConfig(log_dir=tmp_path)
        assert config.process_log_path == tmp_path / "process.jsonl"
        assert config.turn_log_path == tmp_path / "turn.jsonl"
