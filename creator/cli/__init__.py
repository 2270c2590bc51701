"""
Creator CLI components.

- startup.py: aider invocation check
- prompt.py: Prompt with history and completion
- interactive.py: Chat loop and slash commands
- typer_commands.py: CLI entry points (chat, models, check)
"""

from creator.cli.interactive import conversation_loop, handle_command, stream_turn
from creator.cli.prompt import SLASH_COMMANDS, CreatorCompleter, create_prompt_session
from creator.cli.startup import check_invocations, show_startup_panel
from creator.cli.typer_commands import app, main

__all__ = [
    "app",
    "main",
    "SLASH_COMMANDS",
    "CreatorCompleter",
    "create_prompt_session",
    "check_invocations",
    "show_startup_panel",
    "conversation_loop",
    "handle_command",
    "stream_turn",
]
