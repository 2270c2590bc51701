"""
Creator - aider as a streaming chat backend.

Runs the aider CLI as a supervised child process and turns its terminal
transcript into an incremental, cancellable chat stream.
"""

__version__ = "0.1.0"

from creator.exceptions import (
    AuthError,
    ConfigError,
    CreatorError,
    DriverError,
    ResolutionError,
    SpawnError,
    UnexpectedExitError,
)
from creator.provider import CreatorLLM

__all__ = [
    "__version__",
    "CreatorLLM",
    "CreatorError",
    "ConfigError",
    "DriverError",
    "ResolutionError",
    "AuthError",
    "SpawnError",
    "UnexpectedExitError",
]
