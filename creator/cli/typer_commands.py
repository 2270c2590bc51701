"""
Creator CLI - Typer Commands

Entry points: chat with aider, list supported models, check which aider
invocation would be used.
"""

import asyncio
import logging
from dataclasses import replace

import typer

from creator.cli.interactive import console, conversation_loop, show_models_table
from creator.cli.startup import check_invocations, show_startup_panel
from creator.config import DriverConfig, load_config
from creator.driver.resolver import ExecutableResolver
from creator.exceptions import ConfigError
from creator.provider import CreatorLLM

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="creator",
    help="Chat with aider as a streaming, interruptible backend",
    add_completion=False,
)


def _load_config_or_exit() -> DriverConfig:
    try:
        return load_config()
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def chat(
    model: str = typer.Option(None, "--model", "-m", help="Model to run aider with"),
    api_key: str = typer.Option(
        None, "--api-key", envvar="CREATOR_API_KEY", help="API key for api-key models"
    ),
    cwd: str = typer.Option(None, "--cwd", help="Directory aider works in"),
) -> None:
    """Start an interactive chat with aider."""
    config = _load_config_or_exit()
    if cwd:
        config = replace(config, working_dir=cwd)

    llm = CreatorLLM(model=model, api_key=api_key, config=config)
    asyncio.run(conversation_loop(llm))


@app.command()
def models() -> None:
    """List supported models."""
    config = _load_config_or_exit()
    show_models_table(current=config.model)


@app.command()
def check() -> None:
    """Probe every aider invocation and show which one would be used."""
    config = _load_config_or_exit()
    resolver = ExecutableResolver(probe_timeout=config.probe_timeout)

    with console.status("Probing aider..."):
        results = asyncio.run(check_invocations(resolver))

    if not show_startup_panel(results):
        console.print("[red]No working aider found. Install it with: pip install aider-chat[/red]")
        raise typer.Exit(1)


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
