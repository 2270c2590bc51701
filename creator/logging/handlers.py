"""
Custom Log Handlers for Creator.

Rotating JSONL handler with optional masking of credentials.
"""

import json
import logging
import re
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Shell exports and env assignments of secret-looking variables
_ASSIGNMENT_RE = re.compile(
    r"""\b([A-Z0-9_]*(?:API_KEY|TOKEN|SECRET|PASSWORD)[A-Z0-9_]*)=('[^']*'|[^\s"';,]+)"""
)
# Bare JWTs and sk- style API keys
_TOKEN_RE = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+|\bsk-[\w-]{8,}")

REDACTED = "***"


def redact_secrets(text: str) -> str:
    """Mask tokens and secret assignments in a log line."""
    text = _ASSIGNMENT_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", text)
    return _TOKEN_RE.sub(REDACTED, text)


class JSONLRotatingHandler(RotatingFileHandler):
    """
    Rotating file handler writing one JSON object per line.

    Entries built with ``to_json()`` are written unchanged; plain text
    messages are wrapped with timestamp, level and logger name.
    """

    def __init__(
        self,
        filename: str | Path,
        max_bytes: int = 10_000_000,
        backup_count: int = 5,
        redact: bool = True,
    ):
        filepath = Path(filename)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        super().__init__(
            str(filepath),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        self.redact = redact

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            if self.redact:
                msg = redact_secrets(msg)

            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                data = {
                    "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                    "level": record.levelname,
                    "message": msg,
                    "logger": record.name,
                }

            if self.shouldRollover(record):
                self.doRollover()
            self.stream.write(json.dumps(data, default=str) + "\n")
            self.flush()

        except Exception:
            self.handleError(record)


class SimpleFormatter(logging.Formatter):
    """Return the message as-is; entries are already JSON."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def create_jsonl_logger(
    name: str,
    filepath: Path,
    level: str = "INFO",
    max_bytes: int = 10_000_000,
    backup_count: int = 5,
    redact: bool = True,
) -> logging.Logger:
    """
    Create a logger configured for JSONL output.

    Args:
        name: Logger name
        filepath: Path to log file
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        max_bytes: Max file size before rotation
        backup_count: Number of backup files
        redact: Mask credentials before writing

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = JSONLRotatingHandler(
        filepath,
        max_bytes=max_bytes,
        backup_count=backup_count,
        redact=redact,
    )
    handler.setFormatter(SimpleFormatter())
    logger.addHandler(handler)

    # Structured logs stay out of the console
    logger.propagate = False

    return logger
