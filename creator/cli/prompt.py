"""
Chat prompt with command history and slash-command completion.

Uses prompt_toolkit to provide:
- Command history (arrow up/down), persisted across sessions
- Tab completion for slash commands and model names
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style

from creator.config import HISTORY_FILE, ensure_config_dir
from creator.driver.models import SUPPORTED_MODELS

if TYPE_CHECKING:
    from prompt_toolkit.document import Document


SLASH_COMMANDS = {
    "/help": "Show available commands",
    "/quit": "Stop aider and exit",
    "/exit": "Stop aider and exit",
    "/reset": "Restart aider (clears its conversation)",
    "/interrupt": "Send Ctrl+C to aider",
    "/model": "Switch model and restart aider",
    "/models": "List supported models",
    "/status": "Show aider process status",
}


class CreatorCompleter(Completer):
    """Completes slash commands, and model names after /model."""

    def get_completions(self, document: Document, complete_event):
        text = document.text_before_cursor

        if text.startswith("/model "):
            partial = text[len("/model "):]
            for model in SUPPORTED_MODELS:
                if model.startswith(partial):
                    yield Completion(model, start_position=-len(partial), display_meta="model")
            return

        if text.startswith("/") and " " not in text:
            for cmd, desc in SLASH_COMMANDS.items():
                if cmd.startswith(text):
                    yield Completion(cmd, start_position=-len(text), display_meta=desc)


def get_history_path() -> Path:
    """Get path to the chat history file."""
    ensure_config_dir()
    return HISTORY_FILE


def create_prompt_session() -> PromptSession:
    """Create a prompt session with history and completion."""
    style = Style.from_dict(
        {
            "prompt": "ansicyan bold",
        }
    )

    session: PromptSession = PromptSession(
        history=FileHistory(str(get_history_path())),
        auto_suggest=AutoSuggestFromHistory(),
        completer=CreatorCompleter(),
        complete_while_typing=False,  # Only complete on Tab
        style=style,
    )
    return session
