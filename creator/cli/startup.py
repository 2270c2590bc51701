"""
Creator CLI - Startup Checks

Probes every aider invocation candidate and reports which one a chat
session would use.
"""

import asyncio
import os

from rich.console import Console
from rich.panel import Panel

from creator.driver.environment import EnvironmentBuilder
from creator.driver.resolver import ExecutableResolver

console = Console()


async def check_invocations(
    resolver: ExecutableResolver,
    env_builder: EnvironmentBuilder | None = None,
) -> dict[str, tuple[bool, str]]:
    """
    Probe all invocation candidates in parallel.

    Returns:
        Candidate label -> (works, message), in priority order
    """
    env_builder = env_builder or EnvironmentBuilder()
    user_path = await asyncio.to_thread(env_builder.resolve_user_path)
    env = {**os.environ, "PATH": user_path}

    outcomes = await asyncio.gather(
        *(resolver.probe(candidate, env) for candidate in resolver.candidates)
    )

    results: dict[str, tuple[bool, str]] = {}
    chosen = False
    for candidate, works in zip(resolver.candidates, outcomes):
        if works and not chosen:
            results[str(candidate)] = (True, "will be used")
            chosen = True
        elif works:
            results[str(candidate)] = (True, "available (shadowed)")
        else:
            results[str(candidate)] = (False, "not found or errored")
    return results


def show_startup_panel(results: dict[str, tuple[bool, str]]) -> bool:
    """
    Display probe results.

    Returns:
        True if at least one candidate works
    """
    console.print()
    console.print(
        Panel.fit(
            "[bold]CREATOR[/bold] - aider invocation check",
            border_style="blue",
        )
    )
    console.print()

    any_passed = False
    for candidate, (success, message) in results.items():
        if success:
            console.print(f"  [green][✓][/green] {candidate:<20} {message}")
            any_passed = True
        else:
            console.print(f"  [red][✗][/red] {candidate:<20} {message}")

    console.print()
    return any_passed
