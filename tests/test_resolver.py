"""Tests for the aider executable resolver."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from creator.driver.resolver import (
    AIDER_CHAT_FLAGS,
    DEFAULT_CANDIDATES,
    ExecutableResolver,
    InvocationCandidate,
)
from creator.exceptions import ResolutionError


def finished_process(returncode: int) -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.wait = AsyncMock(return_value=returncode)
    return process


class HangingProcess:
    """Probe that never answers until killed."""

    def __init__(self):
        self.returncode = None
        self.killed = False
        self._done = asyncio.Event()

    async def wait(self):
        await self._done.wait()
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9
        self._done.set()


def spawner(outcomes: dict):
    """create_subprocess_exec stand-in keyed by argv[0]."""

    async def create(*argv, **kwargs):
        outcome = outcomes[argv[0]]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return create


class TestInvocationCandidate:
    def test_probe_argv_ends_with_version(self):
        candidate = InvocationCandidate(("python", "-m", "aider"))
        argv = candidate.probe_argv(AIDER_CHAT_FLAGS)
        assert argv[:3] == ["python", "-m", "aider"]
        assert argv[-1] == "--version"
        assert "--no-pretty" in argv

    def test_str(self):
        assert str(InvocationCandidate(("python", "-m", "aider"))) == "python -m aider"

    def test_default_order(self):
        """Module invocations shadow a bare aider script."""
        assert [str(c) for c in DEFAULT_CANDIDATES] == [
            "python -m aider",
            "python3 -m aider",
            "aider",
        ]


class TestResolve:
    """Tests for ExecutableResolver.resolve."""

    @pytest.mark.asyncio
    async def test_first_working_candidate_wins(self):
        outcomes = {
            "python": FileNotFoundError(2, "No such file"),
            "python3": finished_process(0),
            "aider": finished_process(0),
        }
        with patch(
            "creator.driver.resolver.asyncio.create_subprocess_exec",
            side_effect=spawner(outcomes),
        ):
            invocation = await ExecutableResolver().resolve()

        assert str(invocation.candidate) == "python3 -m aider"
        assert invocation.argv[:3] == ("python3", "-m", "aider")
        assert "--version" not in invocation.argv
        assert "--yes-always" in invocation.argv

    @pytest.mark.asyncio
    async def test_all_candidates_fail(self):
        outcomes = {
            "python": finished_process(1),
            "python3": FileNotFoundError(2, "No such file"),
            "aider": PermissionError(13, "Permission denied"),
        }
        with patch(
            "creator.driver.resolver.asyncio.create_subprocess_exec",
            side_effect=spawner(outcomes),
        ):
            with pytest.raises(ResolutionError) as exc_info:
                await ExecutableResolver().resolve()

        assert exc_info.value.tried == ["python -m aider", "python3 -m aider", "aider"]

    @pytest.mark.asyncio
    async def test_probe_output_discarded(self):
        create = AsyncMock(return_value=finished_process(0))
        with patch("creator.driver.resolver.asyncio.create_subprocess_exec", create):
            await ExecutableResolver().resolve(env={"PATH": "/opt/bin"})

        kwargs = create.call_args.kwargs
        assert kwargs["stdout"] == asyncio.subprocess.DEVNULL
        assert kwargs["stderr"] == asyncio.subprocess.DEVNULL
        assert kwargs["env"] == {"PATH": "/opt/bin"}


class TestProbe:
    """Tests for a single probe."""

    @pytest.mark.asyncio
    async def test_timeout_kills_probe(self):
        hanging = HangingProcess()
        resolver = ExecutableResolver(probe_timeout=0.05)
        with patch(
            "creator.driver.resolver.asyncio.create_subprocess_exec",
            AsyncMock(return_value=hanging),
        ):
            assert await resolver.probe(DEFAULT_CANDIDATES[0]) is False
        assert hanging.killed

    @pytest.mark.asyncio
    async def test_oserror_is_not_working(self):
        with patch(
            "creator.driver.resolver.asyncio.create_subprocess_exec",
            AsyncMock(side_effect=OSError("exec format error")),
        ):
            assert await ExecutableResolver().probe(DEFAULT_CANDIDATES[2]) is False

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_not_working(self):
        with patch(
            "creator.driver.resolver.asyncio.create_subprocess_exec",
            AsyncMock(return_value=finished_process(2)),
        ):
            assert await ExecutableResolver().probe(DEFAULT_CANDIDATES[0]) is False
