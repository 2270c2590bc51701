"""
Creator - Configuration Management

Driver settings come from environment variables with sensible defaults.
User files (prompt history) live in ~/.config/creator/
"""

import os
from dataclasses import dataclass
from pathlib import Path

from creator.exceptions import ConfigError


# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "creator"
HISTORY_FILE = CONFIG_DIR / "history"

DEFAULT_SERVER_URL = "https://server.trypear.ai/pearai-server-api2"
DEFAULT_MODEL = "pearai_model"


@dataclass
class DriverConfig:
    """Settings for one aider driver instance."""

    server_url: str = DEFAULT_SERVER_URL
    model: str = DEFAULT_MODEL
    api_key: str = ""
    working_dir: str | None = None
    # Seconds between transcript polls while a turn is open
    poll_interval: float = 0.1
    # Upper bound for each `--version` probe
    probe_timeout: float = 10.0
    # How long start() watches for an immediate crash after spawning
    start_grace: float = 0.5
    # How long a fresh session may take to print its first idle prompt
    ready_timeout: float = 30.0
    # Refresh access tokens expiring within this many seconds
    refresh_margin: float = 300.0

    def __post_init__(self) -> None:
        self.server_url = self.server_url.rstrip("/")
        if self.working_dir:
            self.working_dir = str(Path(self.working_dir).expanduser())

    @property
    def managed_api_base(self) -> str:
        """OpenAI-compatible endpoint aider talks to for the managed model."""
        return f"{self.server_url}/integrations/aider"


def ensure_config_dir() -> None:
    """Ensure configuration directory exists."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number", {"value": raw})
    if value < 0:
        raise ConfigError(f"{name} must not be negative", {"value": raw})
    return value


def load_config() -> DriverConfig:
    """
    Load driver configuration from the environment.

    Returns:
        DriverConfig with all settings loaded

    Raises:
        ConfigError: If a numeric setting is malformed
    """
    return DriverConfig(
        server_url=os.environ.get("CREATOR_SERVER_URL", DEFAULT_SERVER_URL),
        model=os.environ.get("CREATOR_MODEL", DEFAULT_MODEL),
        api_key=os.environ.get("CREATOR_API_KEY", ""),
        working_dir=os.environ.get("CREATOR_WORKDIR") or None,
        poll_interval=_env_float("CREATOR_POLL_INTERVAL", 0.1),
        probe_timeout=_env_float("CREATOR_PROBE_TIMEOUT", 10.0),
        start_grace=_env_float("CREATOR_START_GRACE", 0.5),
        ready_timeout=_env_float("CREATOR_READY_TIMEOUT", 30.0),
    )
