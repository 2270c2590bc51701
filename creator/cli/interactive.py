"""
Creator CLI - Interactive chat loop.

Reads prompts, streams aider's replies to the terminal, and handles the
slash commands that control the aider session.
"""

import asyncio
import logging
import signal
import sys

from rich.console import Console
from rich.table import Table

from creator.cli.prompt import SLASH_COMMANDS, create_prompt_session
from creator.driver.models import SUPPORTED_MODELS, family_for
from creator.driver.streaming import ChatMessage, unescape_for_display
from creator.exceptions import DriverError
from creator.provider import CreatorLLM

logger = logging.getLogger(__name__)
console = Console()


def show_models_table(current: str | None = None) -> None:
    """Print supported models with their family and secret variable."""
    table = Table(title="Supported models")
    table.add_column("Model", style="cyan")
    table.add_column("Family")
    table.add_column("Secret variable", style="dim")
    for model in SUPPORTED_MODELS:
        family = family_for(model)
        marker = " *" if model == current else ""
        table.add_row(f"{model}{marker}", family.name, family.env_var)
    console.print(table)


def show_driver_error(error: DriverError) -> None:
    console.print(f"\n[bold red]{type(error).__name__}:[/bold red] {error.message}")
    if error.hint:
        console.print(f"[dim]{error.hint}[/dim]")


def _install_interrupt_handler(llm: CreatorLLM) -> bool:
    """Route Ctrl+C to aider while a reply is streaming (POSIX only)."""
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, llm.interrupt)
    except (NotImplementedError, RuntimeError):
        return False
    return True


async def stream_turn(llm: CreatorLLM, text: str) -> bool:
    """
    Send one prompt and print the reply as it streams.

    Returns:
        True if aider finished the turn
    """
    marker = llm.adapter.end_marker
    handler_installed = _install_interrupt_handler(llm)
    try:
        async for chunk in llm.stream_chat([ChatMessage(role="user", content=text)]):
            display = unescape_for_display(chunk.content)
            # Our own prompt replaces aider's
            if display.endswith(marker):
                display = display[: -len(marker)] + "\n"
            console.print(display, end="", markup=False, highlight=False, soft_wrap=True)
    except DriverError as e:
        show_driver_error(e)
        return False
    finally:
        if handler_installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)

    turn = llm.adapter.last_turn
    if turn is None or not turn.complete:
        console.print("\n[yellow]Aider stopped before finishing the reply.[/yellow]")
        return False
    return True


async def handle_command(llm: CreatorLLM, user_input: str) -> bool:
    """
    Run a slash command.

    Returns:
        False when the loop should exit
    """
    cmd, _, arg = user_input.strip().partition(" ")
    cmd = cmd.lower()
    arg = arg.strip()

    if cmd in ("/quit", "/exit"):
        return False

    if cmd == "/help":
        table = Table(show_header=False, box=None)
        for name, desc in SLASH_COMMANDS.items():
            table.add_row(f"[cyan]{name}[/cyan]", desc)
        console.print(table)
    elif cmd == "/models":
        show_models_table(current=llm.model)
    elif cmd == "/status":
        supervisor = llm.supervisor
        session = supervisor.session
        pid = session.pid if session else None
        console.print(
            f"  state: [bold]{supervisor.state.name}[/bold]  model: {llm.model}  pid: {pid or '-'}"
        )
    elif cmd == "/interrupt":
        if not llm.interrupt():
            console.print("[yellow]No running aider process.[/yellow]")
    elif cmd in ("/reset", "/model"):
        if cmd == "/model" and not arg:
            console.print("[red]Usage: /model <name>[/red]")
            return True
        try:
            await llm.reset_session(model=arg or None)
        except DriverError as e:
            show_driver_error(e)
        else:
            console.print(f"[green]Aider restarted with {llm.model}.[/green]")
    else:
        console.print(f"[red]Unknown command: {user_input}[/red]")
    return True


async def conversation_loop(llm: CreatorLLM) -> None:
    """
    Main chat loop. Starts aider, then alternates prompt and streamed reply.

    Always kills aider on the way out.
    """
    if not sys.stdin.isatty():
        console.print("[red]Error: creator chat requires an interactive terminal.[/red]")
        return

    prompt_session = create_prompt_session()

    try:
        with console.status(f"Starting aider ({llm.model})..."):
            await llm.start()
    except DriverError as e:
        show_driver_error(e)
        llm.close()
        return

    console.print("[bold]Aider is ready.[/bold]")
    console.print("[dim]Type a request, /help for commands, /quit to exit[/dim]")
    console.print()

    try:
        while True:
            try:
                user_input = await prompt_session.prompt_async("> ")
            except KeyboardInterrupt:
                console.print("[yellow]Use /quit to exit[/yellow]")
                continue
            except EOFError:
                break

            if not user_input.strip():
                continue

            if user_input.startswith("/"):
                if not await handle_command(llm, user_input):
                    break
                continue

            await stream_turn(llm, user_input)
            console.print()
    finally:
        llm.close()
        console.print("[yellow]Goodbye![/yellow]")
