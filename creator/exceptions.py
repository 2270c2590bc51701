"""
Creator - Exception Hierarchy

All Creator-specific exceptions inherit from CreatorError.
Fatal driver errors carry a ``hint`` telling the user what to do next.
"""

from typing import Any


class CreatorError(Exception):
    """Base exception for all Creator-related errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(CreatorError):
    """Raised when configuration is invalid or missing."""

    pass


# Driver Errors
class DriverError(CreatorError):
    """Base exception for the aider subprocess driver."""

    hint: str = ""


class ResolutionError(DriverError):
    """Raised when no invocation candidate answers the version probe."""

    hint = (
        "Aider command not found. Please ensure it's installed correctly "
        "(python -m pip install aider-chat) and on your PATH."
    )

    def __init__(self, message: str, tried: list[str] | None = None):
        super().__init__(message, {"tried": tried or []})
        self.tried = tried or []


class AuthError(DriverError):
    """Raised when no usable token or API key is available for a model."""

    hint = "Token invalid or missing. Please log in again and restart the session."


class SpawnError(DriverError):
    """Raised when the OS refuses to create the child process."""

    hint = "Aider failed to start. Check the working directory and show the logs."

    def __init__(self, message: str, errno: int | None = None, command: str | None = None):
        super().__init__(message, {"errno": errno, "command": command})
        self.errno = errno
        self.command = command


class UnexpectedExitError(DriverError):
    """Raised when the child exits non-zero without having been killed."""

    hint = "Aider stopped unexpectedly. Reset the session to start it again."

    def __init__(self, message: str, returncode: int | None, stderr_tail: str = ""):
        super().__init__(message, {"returncode": returncode, "stderr_tail": stderr_tail})
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class StreamChunkError(DriverError):
    """Raised when a single output chunk cannot be transformed.

    Never escapes the streaming loop; it is reported inline instead.
    """

    pass


class TurnInProgressError(DriverError):
    """Raised when send() is called while a turn is still open."""

    pass


class StateTransitionError(DriverError):
    """Raised when an invalid supervisor state transition is attempted."""

    def __init__(self, message: str, from_state: str, to_state: str):
        super().__init__(message, {"from_state": from_state, "to_state": to_state})
        self.from_state = from_state
        self.to_state = to_state
