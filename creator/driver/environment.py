"""
Child process environment.

The child must see the user's interactive PATH, UTF-8 I/O, aider's simple
output mode, and exactly one model-specific secret. POSIX and Windows get
there differently: POSIX prefixes the shell command with an inline export,
while Windows persists the variables with ``setx`` before spawning because
the ``cmd.exe`` child does not reliably inherit freshly set variables.
Both strategies yield the same effective environment.
"""

import asyncio
import logging
import os
import shlex
import subprocess
import sys
from collections.abc import Mapping, Sequence

from creator.driver.models import SECRET_ENV_VARS, family_for
from creator.exceptions import SpawnError

logger = logging.getLogger(__name__)

# Overlaid on every child environment
BASE_CHILD_ENV: dict[str, str] = {
    "PYTHONIOENCODING": "utf-8",
    "AIDER_SIMPLE_OUTPUT": "1",
}

PATH_PROBE_TIMEOUT = 10.0


class PosixEnvironment:
    """Linux and macOS: login shell PATH, inline export before the command."""

    default_shell = "/bin/sh"

    def resolve_shell(self) -> str:
        return os.environ.get("SHELL") or self.default_shell

    def path_command(self, shell: str) -> list[str]:
        return [shell, "-ilc", "echo $PATH"]

    def spawn_command(
        self, shell: str, argv: Sequence[str], env_var: str, secret: str
    ) -> list[str]:
        # exec so the child pid is aider itself; terminate() must reach it
        script = f"export {env_var}={shlex.quote(secret)}; exec {shlex.join(argv)}"
        return [shell, "-c", script]

    def persist_commands(self, env_var: str, secret: str) -> list[list[str]]:
        return []


class WindowsEnvironment:
    """Windows: merged User+Machine PATH, ``setx`` before ``cmd.exe /c``."""

    default_shell = "cmd.exe"

    def resolve_shell(self) -> str:
        return os.environ.get("COMSPEC") or self.default_shell

    def path_command(self, shell: str) -> list[str]:
        return [
            "powershell",
            "-NoProfile",
            "-Command",
            "[Environment]::GetEnvironmentVariable('Path', 'User') + ';' + "
            "[Environment]::GetEnvironmentVariable('Path', 'Machine')",
        ]

    def spawn_command(
        self, shell: str, argv: Sequence[str], env_var: str, secret: str
    ) -> list[str]:
        return [shell, "/c", *argv]

    def persist_commands(self, env_var: str, secret: str) -> list[list[str]]:
        commands = [["setx", name, value] for name, value in BASE_CHILD_ENV.items()]
        # Switch the console code page to UTF-8
        commands.append(["chcp", "65001"])
        commands.append(["setx", env_var, secret])
        return commands


class EnvironmentBuilder:
    """
    Builds the environment and command line for the aider child.

    The platform strategy is chosen once, from ``platform`` (defaults to
    ``sys.platform``), so both variants can be tested on any host.
    """

    def __init__(self, platform: str | None = None):
        self.platform = platform or sys.platform
        self.is_windows = self.platform.startswith("win")
        self.strategy: PosixEnvironment | WindowsEnvironment = (
            WindowsEnvironment() if self.is_windows else PosixEnvironment()
        )

    def resolve_shell(self) -> str:
        """Path of the user's interactive shell or command interpreter."""
        return self.strategy.resolve_shell()

    def resolve_user_path(self) -> str:
        """
        PATH as the user's interactive shell sees it.

        Falls back to the inherited PATH on any failure; never raises.
        Blocks for at most PATH_PROBE_TIMEOUT seconds.
        """
        inherited = os.environ.get("PATH", "")
        command = self.strategy.path_command(self.resolve_shell())
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                stdin=subprocess.DEVNULL,
                timeout=PATH_PROBE_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Error getting user PATH: {e}")
            return inherited

        if result.returncode != 0:
            logger.error(f"Error getting user PATH: exit code {result.returncode}")
            return inherited

        # Login shells may print banners first; PATH is the last line
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            return inherited
        return lines[-1]

    def build_env(
        self,
        model: str,
        secret: str,
        user_path: str | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """
        Environment mapping for the child process.

        Args:
            model: Model identifier, selects the secret variable
            secret: API key or access token
            user_path: Pre-resolved PATH (resolved here if omitted)
            base_env: Environment to start from (defaults to os.environ)

        Returns:
            Inherited environment with exactly one family secret overlaid
        """
        env = dict(os.environ if base_env is None else base_env)
        for name in SECRET_ENV_VARS:
            env.pop(name, None)

        env["PATH"] = user_path if user_path is not None else self.resolve_user_path()
        env.update(BASE_CHILD_ENV)
        env[family_for(model).env_var] = secret
        return env

    def spawn_command(self, argv: Sequence[str], model: str, secret: str) -> list[str]:
        """Full command line, wrapped in the platform shell."""
        env_var = family_for(model).env_var
        return self.strategy.spawn_command(self.resolve_shell(), argv, env_var, secret)

    async def apply_platform_env(self, model: str, secret: str) -> None:
        """
        Persist child variables where the platform requires it (Windows).

        Commands run one at a time, in order, before the spawn.

        Raises:
            SpawnError: If any persistence command fails
        """
        env_var = family_for(model).env_var
        for command in self.strategy.persist_commands(env_var, secret):
            # chcp is a cmd builtin
            argv = [self.resolve_shell(), "/c", *command] if command[0] == "chcp" else command
            label = " ".join(argv[:2]) if argv[0] == "setx" else " ".join(argv)
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
                _, stderr = await process.communicate()
            except OSError as e:
                logger.error(f"Error executing {label}: {e}")
                raise SpawnError(f"Could not run {label}: {e}", errno=e.errno, command=label)

            if process.returncode != 0:
                message = stderr.decode(errors="replace").strip()[:200]
                logger.error(f"Error executing {label}: {message}")
                raise SpawnError(
                    f"{label} exited with code {process.returncode}",
                    command=label,
                )
            logger.debug(f"Executed: {label}")
