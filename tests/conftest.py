"""Shared fixtures for the driver tests."""

import pytest

from creator.logging import LogConfig, reset_loggers, set_config


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path):
    """Send structured logs to a temporary directory."""
    log_dir = tmp_path / "logs"
    set_config(LogConfig(log_dir=log_dir))
    reset_loggers()
    yield log_dir
    reset_loggers()
