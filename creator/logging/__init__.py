"""
Creator Logging System.

Structured JSONL logs for:
- aider process lifecycle (start, exit, kill, reset)
- chat turns (request, chunk count, completion, timing)

Usage:
    from creator.logging import process_logger, ProcessLogEntry, now_iso

    entry = ProcessLogEntry(timestamp=now_iso(), event="start", session_id="...")
    process_logger.info(entry.to_json())

Logs are written to ~/.creator/logs/:
    - process.jsonl
    - turn.jsonl
"""

import threading
from typing import Any

from .config import LogConfig, get_config, set_config
from .entries import ProcessLogEntry, TurnLogEntry, now_iso
from .handlers import create_jsonl_logger, redact_secrets

_context = threading.local()


def set_session_id(session_id: str) -> None:
    """Set the current session ID for log correlation."""
    _context.session_id = session_id


def get_session_id() -> str:
    """Get the current session ID, or 'unknown' if not set."""
    return getattr(_context, "session_id", "unknown")


# Created on first use so importing never touches the filesystem
_loggers: dict[str, Any] = {}
_init_lock = threading.Lock()


def _ensure_loggers() -> None:
    """Initialize loggers on first use."""
    if _loggers:
        return

    with _init_lock:
        if _loggers:
            return

        config = get_config()

        _loggers["process"] = create_jsonl_logger(
            "creator.process",
            config.process_log_path,
            level=config.process_level,
            max_bytes=config.max_file_size_bytes,
            backup_count=config.backup_count,
            redact=config.redact_enabled,
        )
        _loggers["turn"] = create_jsonl_logger(
            "creator.turn",
            config.turn_log_path,
            level=config.turn_level,
            max_bytes=config.max_file_size_bytes,
            backup_count=config.backup_count,
            redact=config.redact_enabled,
        )


def reset_loggers() -> None:
    """Drop initialized loggers so the next use picks up a new config (for testing)."""
    with _init_lock:
        for logger in _loggers.values():
            for handler in list(logger.handlers):
                handler.close()
            logger.handlers.clear()
        _loggers.clear()


class _LazyLogger:
    """Lazy wrapper that initializes the actual logger on first use."""

    def __init__(self, name: str):
        self._name = name

    def _get_logger(self) -> Any:
        _ensure_loggers()
        return _loggers[self._name]

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._get_logger().error(msg, *args, **kwargs)


process_logger = _LazyLogger("process")
turn_logger = _LazyLogger("turn")


__all__ = [
    "process_logger",
    "turn_logger",
    "ProcessLogEntry",
    "TurnLogEntry",
    "now_iso",
    "get_session_id",
    "set_session_id",
    "redact_secrets",
    "reset_loggers",
    "LogConfig",
    "get_config",
    "set_config",
]
