"""
Aider Executable Resolver

Finds a working way to launch aider by probing an ordered list of
invocation candidates with a silent, time-bounded ``--version`` call.
Earlier candidates shadow later ones, so a locally installed module wins
over whatever ``aider`` script happens to be on PATH.
"""

import asyncio
import logging
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from creator.exceptions import ResolutionError

logger = logging.getLogger(__name__)

# Flags that turn aider into a plain line-oriented chat backend
AIDER_CHAT_FLAGS: tuple[str, ...] = (
    "--no-pretty",
    "--yes-always",
    "--no-auto-commits",
    "--no-suggest-shell-commands",
)


@dataclass(frozen=True)
class InvocationCandidate:
    """One concrete way to launch aider."""

    command: tuple[str, ...]
    version_flag: str = "--version"

    def probe_argv(self, chat_flags: Sequence[str]) -> list[str]:
        """Arguments for the liveness probe."""
        return [*self.command, *chat_flags, self.version_flag]

    def chat_argv(self, chat_flags: Sequence[str]) -> list[str]:
        """Arguments for an interactive chat session."""
        return [*self.command, *chat_flags]

    def __str__(self) -> str:
        return shlex.join(self.command)


DEFAULT_CANDIDATES: tuple[InvocationCandidate, ...] = (
    InvocationCandidate(("python", "-m", "aider")),
    InvocationCandidate(("python3", "-m", "aider")),
    InvocationCandidate(("aider",)),
)


@dataclass(frozen=True)
class Invocation:
    """A resolved candidate plus the argv used to start a chat."""

    candidate: InvocationCandidate
    argv: tuple[str, ...]


class ExecutableResolver:
    """
    Picks the first invocation candidate whose version probe succeeds.

    Resolution is deterministic for a given environment, so failures are
    not retried.
    """

    def __init__(
        self,
        candidates: Sequence[InvocationCandidate] = DEFAULT_CANDIDATES,
        chat_flags: Sequence[str] = AIDER_CHAT_FLAGS,
        probe_timeout: float = 10.0,
    ):
        """
        Initialize resolver.

        Args:
            candidates: Invocation candidates in priority order
            chat_flags: Flags appended to every candidate
            probe_timeout: Seconds before a silent candidate is given up on
        """
        self.candidates = tuple(candidates)
        self.chat_flags = tuple(chat_flags)
        self.probe_timeout = probe_timeout

    async def probe(
        self,
        candidate: InvocationCandidate,
        env: Mapping[str, str] | None = None,
    ) -> bool:
        """
        Run the version probe for one candidate.

        Output is discarded; only the exit status matters.

        Returns:
            True if the probe exited with status 0 within the timeout
        """
        argv = candidate.probe_argv(self.chat_flags)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
                env=dict(env) if env is not None else None,
            )
        except OSError as e:
            logger.debug(f"Probe for '{candidate}' could not start: {e}")
            return False

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=self.probe_timeout)
        except TimeoutError:
            logger.warning(f"Probe for '{candidate}' timed out after {self.probe_timeout}s")
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
            return False

        return returncode == 0

    async def resolve(self, env: Mapping[str, str] | None = None) -> Invocation:
        """
        Return the first working invocation.

        Args:
            env: Environment for the probes (so the user's PATH applies)

        Returns:
            Invocation for the first candidate that answered the probe

        Raises:
            ResolutionError: If no candidate works
        """
        tried: list[str] = []
        for candidate in self.candidates:
            tried.append(str(candidate))
            if await self.probe(candidate, env):
                logger.info(f"Using aider invocation: {candidate}")
                return Invocation(
                    candidate=candidate,
                    argv=tuple(candidate.chat_argv(self.chat_flags)),
                )
            logger.info(f"Command '{candidate}' not found or errored. Trying next...")

        raise ResolutionError(
            "Aider command not found. Please ensure it's installed correctly.",
            tried=tried,
        )
