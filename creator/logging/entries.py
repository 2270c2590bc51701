"""
Log Entry Data Structures for Creator.

Structured entries for the aider process lifecycle and for chat turns.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


def now_iso() -> str:
    """Current local time as ISO 8601."""
    return datetime.now().isoformat()


@dataclass
class ProcessLogEntry:
    """Log entry for a child process lifecycle event."""

    timestamp: str  # ISO 8601
    event: str  # "start", "spawn_failed", "exit", "kill", "reset", "interrupt"
    session_id: str

    model: str = ""
    command: list[str] = field(default_factory=list)
    cwd: str = ""
    pid: int | None = None
    returncode: int | None = None

    error: str | None = None
    error_type: str | None = None

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self), default=str)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class TurnLogEntry:
    """Log entry for one request/response exchange."""

    timestamp: str
    turn_id: str
    session_id: str

    request: str = ""
    chunk_count: int = 0
    output_chars: int = 0
    complete: bool = False
    duration_ms: int = 0

    error: str | None = None

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self), default=str)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TurnLogEntry":
        """Create from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
