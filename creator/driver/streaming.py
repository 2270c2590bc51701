"""
Streaming adapter: turns aider's terminal transcript into chat chunks.

aider is not request/response; it is a terminal program that prints an
idle prompt when it wants more input. A turn therefore ends when the
freshly emitted output ends with that prompt. Between a send and the
prompt, the adapter polls the transcript buffer and forwards whatever is
new as one assistant chunk per tick.
"""

import asyncio
import logging
import re
import sys
import time
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

from creator.driver.transcript import TranscriptBuffer
from creator.exceptions import StreamChunkError, TurnInProgressError, UnexpectedExitError
from creator.logging import TurnLogEntry, get_session_id, now_iso, turn_logger

logger = logging.getLogger(__name__)

# Emitted instead of blank content
RESPONSE_OVER = "Aider response over"

_TEMPLATE_SPECIAL_RE = re.compile(r"([\\$])")
_TEMPLATE_ESCAPED_RE = re.compile(r"\\([\\$])")


def idle_prompt_marker(platform: str | None = None) -> str:
    """The prompt aider prints when it is ready for input."""
    platform = platform or sys.platform
    return "\r\n> " if platform.startswith("win") else "\n> "


def escape_for_template(text: str | None) -> str:
    """Backslash-escape ``\\`` and ``$`` for downstream template rendering."""
    if not text:
        return RESPONSE_OVER
    return _TEMPLATE_SPECIAL_RE.sub(r"\\\1", text)


def unescape_for_display(text: str) -> str:
    """Undo escape_for_template for plain terminal output."""
    return _TEMPLATE_ESCAPED_RE.sub(r"\1", text)


@dataclass
class ChatMessage:
    """One chat message or streamed chunk."""

    role: str
    content: str


@dataclass
class ChatTurn:
    """A request and the chunks streamed back for it."""

    request: str
    turn_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    chunks: list[str] = field(default_factory=list)
    complete: bool = False
    error: str | None = None
    started: float = field(default_factory=time.monotonic)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


class ProcessView(Protocol):
    """What the adapter needs from the supervisor."""

    @property
    def is_running(self) -> bool: ...

    @property
    def exit_error(self) -> UnexpectedExitError | None: ...

    @property
    def transcript(self) -> TranscriptBuffer: ...

    def write(self, text: str) -> bool: ...


class StreamingAdapter:
    """
    Runs one turn at a time against a supervised aider process.

    The poll loop suspends on ``asyncio.sleep`` between ticks, so ``kill()``
    and ``interrupt()`` can run at any point and are observed within one
    poll interval.
    """

    def __init__(
        self,
        supervisor: ProcessView,
        poll_interval: float = 0.1,
        platform: str | None = None,
    ):
        self.supervisor = supervisor
        self.poll_interval = poll_interval
        self.end_marker = idle_prompt_marker(platform)
        self._turn: ChatTurn | None = None
        self.last_turn: ChatTurn | None = None

    @property
    def turn_open(self) -> bool:
        return self._turn is not None

    async def wait_for_prompt(self, timeout: float) -> bool:
        """
        Wait for a freshly started aider to print its first idle prompt.

        The startup banner is discarded so the first turn only sees its
        own reply. Gives up after ``timeout`` seconds and lets the session
        continue anyway.

        Returns:
            True if the prompt appeared in time

        Raises:
            UnexpectedExitError: If aider crashed while starting up
        """
        transcript = self.supervisor.transcript
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            while not transcript.text.endswith(self.end_marker):
                if not self.supervisor.is_running:
                    exit_error = self.supervisor.exit_error
                    if exit_error is not None:
                        raise exit_error
                    return False
                if loop.time() >= deadline:
                    logger.warning(f"Aider did not show its prompt within {timeout}s, continuing")
                    return False
                await asyncio.sleep(self.poll_interval)
            logger.debug("Aider is ready for input")
            return True
        finally:
            transcript.reset()

    async def send(self, message: str) -> AsyncIterator[ChatMessage]:
        """
        Submit ``message`` and stream aider's reply until its idle prompt.

        Yields:
            Assistant chunks, escaped for template rendering

        Raises:
            TurnInProgressError: If another turn is still open
            UnexpectedExitError: If aider crashed mid-turn
        """
        if self._turn is not None:
            raise TurnInProgressError(
                "A turn is already in progress; wait for it to finish before sending"
            )

        turn = ChatTurn(request=message)
        self._turn = turn
        transcript = self.supervisor.transcript
        transcript.reset()
        self.supervisor.write(message)

        try:
            while True:
                await asyncio.sleep(self.poll_interval)

                error_chunk = None
                try:
                    new_output, content = self._next_chunk()
                except StreamChunkError as e:
                    logger.exception("Failed to process Aider output chunk")
                    error_chunk = ChatMessage(role="assistant", content=f"Error: {e.message}")
                    new_output = content = ""

                if error_chunk is not None:
                    yield error_chunk

                if new_output:
                    turn.chunks.append(content)
                    yield ChatMessage(role="assistant", content=content)

                    if new_output.endswith(self.end_marker):
                        turn.complete = True
                        break

                # Killed, exited or crashed mid-turn
                if not self.supervisor.is_running:
                    exit_error = self.supervisor.exit_error
                    if exit_error is not None:
                        turn.error = exit_error.message
                        raise exit_error
                    logger.info("Aider process stopped before the turn completed")
                    break
        finally:
            transcript.reset()
            self._turn = None
            self.last_turn = turn
            self._log_turn(turn)

    def _next_chunk(self) -> tuple[str, str]:
        """New raw output since the last tick, and its escaped form."""
        try:
            new_output = self.supervisor.transcript.take_new()
            return new_output, escape_for_template(new_output) if new_output else ""
        except Exception as e:
            raise StreamChunkError(f"Could not process Aider output: {e}") from e

    def _log_turn(self, turn: ChatTurn) -> None:
        entry = TurnLogEntry(
            timestamp=now_iso(),
            turn_id=turn.turn_id,
            session_id=get_session_id(),
            request=turn.request[:2000],
            chunk_count=len(turn.chunks),
            output_chars=sum(len(chunk) for chunk in turn.chunks),
            complete=turn.complete,
            duration_ms=int((time.monotonic() - turn.started) * 1000),
            error=turn.error,
        )
        if turn.complete:
            turn_logger.info(entry.to_json())
        else:
            turn_logger.warning(entry.to_json())
