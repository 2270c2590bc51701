"""
Logging Configuration for Creator.

Defines paths, rotation settings, log levels, and redaction.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class LogConfig:
    """Configuration for the Creator structured logs."""

    log_dir: Path = field(default_factory=lambda: Path.home() / ".creator" / "logs")

    max_file_size_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5

    # DEBUG, INFO, WARNING, ERROR
    process_level: str = "INFO"
    turn_level: str = "INFO"

    # Mask API keys and tokens before they reach disk
    redact_enabled: bool = True

    @classmethod
    def from_env(cls) -> "LogConfig":
        """Load config from environment variables with defaults."""
        config = cls()

        if level := os.environ.get("CREATOR_LOG_LEVEL"):
            config.process_level = level
            config.turn_level = level

        if log_dir := os.environ.get("CREATOR_LOG_DIR"):
            config.log_dir = Path(log_dir)

        # In MB
        if max_size := os.environ.get("CREATOR_LOG_MAX_SIZE_MB"):
            try:
                config.max_file_size_bytes = int(max_size) * 1024 * 1024
            except ValueError:
                pass

        if os.environ.get("CREATOR_LOG_REDACT", "").lower() in ("0", "false", "no"):
            config.redact_enabled = False

        return config

    def ensure_log_dir(self) -> None:
        """Create log directory if it doesn't exist."""
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def process_log_path(self) -> Path:
        """Path to the child process lifecycle log."""
        return self.log_dir / "process.jsonl"

    @property
    def turn_log_path(self) -> Path:
        """Path to the chat turn log."""
        return self.log_dir / "turn.jsonl"


_config: LogConfig | None = None


def get_config() -> LogConfig:
    """Get the global log config, initializing from env if needed."""
    global _config
    if _config is None:
        _config = LogConfig.from_env()
        _config.ensure_log_dir()
    return _config


def set_config(config: LogConfig) -> None:
    """Set a custom log config (useful for testing)."""
    global _config
    _config = config
    _config.ensure_log_dir()
