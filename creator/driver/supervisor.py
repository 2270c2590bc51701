"""
Aider Process Supervisor

Owns the aider child process: resolves how to launch it, injects
credentials and environment, spawns it with three pipes, pumps stdout into
the session transcript, watches for unexpected exits, and kills or
restarts it on request.

State transitions:
    IDLE -> STARTING (start requested)
    STARTING -> RUNNING (spawned) | ERRORED (resolution/auth/spawn failed)
                | KILLED (kill during start)
    RUNNING -> KILLED (kill) | EXITED (clean exit) | ERRORED (non-zero exit)
    KILLED | EXITED | ERRORED -> STARTING (restart)
"""

import asyncio
import inspect
import logging
import os
import re
import uuid
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto

from creator.config import DriverConfig
from creator.driver.credentials import CredentialProvider
from creator.driver.environment import EnvironmentBuilder
from creator.driver.models import CredentialSource, ModelFamily, family_for
from creator.driver.resolver import ExecutableResolver
from creator.driver.transcript import TranscriptBuffer, strip_ansi
from creator.exceptions import (
    AuthError,
    DriverError,
    SpawnError,
    StateTransitionError,
    UnexpectedExitError,
)
from creator.logging import ProcessLogEntry, now_iso, process_logger, set_session_id

logger = logging.getLogger(__name__)

# aider treats a newline as "submit", so embedded line breaks are flattened
_NEWLINES_RE = re.compile(r"[\r\n]+")

CTRL_C = "\x03"
READ_CHUNK_BYTES = 4096
# How long the exit watcher waits for the pipes to drain
READER_DRAIN_TIMEOUT = 1.0
STDERR_TAIL_LINES = 20


class SupervisorState(Enum):
    """Lifecycle of the supervised child process."""

    IDLE = auto()  # Nothing started yet
    STARTING = auto()  # Resolving, authenticating, spawning
    RUNNING = auto()  # Child alive and accepting input
    KILLED = auto()  # Terminated on request
    EXITED = auto()  # Child exited cleanly on its own
    ERRORED = auto()  # Start failed or child crashed


VALID_TRANSITIONS: dict[SupervisorState, set[SupervisorState]] = {
    SupervisorState.IDLE: {SupervisorState.STARTING},
    SupervisorState.STARTING: {
        SupervisorState.RUNNING,
        SupervisorState.ERRORED,
        SupervisorState.KILLED,
    },
    SupervisorState.RUNNING: {
        SupervisorState.KILLED,
        SupervisorState.EXITED,
        SupervisorState.ERRORED,
    },
    SupervisorState.KILLED: {SupervisorState.STARTING},
    SupervisorState.EXITED: {SupervisorState.STARTING},
    SupervisorState.ERRORED: {SupervisorState.STARTING},
}


def format_input(text: str) -> str:
    """Flatten ``text`` to one line and terminate it with a single newline."""
    return _NEWLINES_RE.sub(" ", text) + "\n"


@dataclass
class Session:
    """One child process lifecycle. Only the supervisor mutates it."""

    model: str
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    process: asyncio.subprocess.Process | None = None
    pid: int | None = None
    transcript: TranscriptBuffer = field(default_factory=TranscriptBuffer)
    killed: bool = False
    exit_error: UnexpectedExitError | None = None
    stderr_tail: deque[str] = field(default_factory=lambda: deque(maxlen=STDERR_TAIL_LINES))
    readers: list[asyncio.Task] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)


DirectoryProvider = Callable[[], str | None | Awaitable[str | None]]


class ProcessSupervisor:
    """
    Sole owner of the aider process handle and sole writer of its stdin.

    Other components get read-only views: ``is_running``, ``is_killed``,
    ``exit_error`` and ``transcript``.
    """

    def __init__(
        self,
        config: DriverConfig | None = None,
        resolver: ExecutableResolver | None = None,
        env_builder: EnvironmentBuilder | None = None,
        credentials: CredentialProvider | None = None,
        get_current_directory: DirectoryProvider | None = None,
    ):
        """
        Initialize supervisor.

        Args:
            config: Driver settings (defaults to DriverConfig())
            resolver: Invocation resolver
            env_builder: Platform environment builder
            credentials: Token source for the managed model
            get_current_directory: Returns the workspace directory for the child
        """
        self.config = config or DriverConfig()
        self.resolver = resolver or ExecutableResolver(probe_timeout=self.config.probe_timeout)
        self.env_builder = env_builder or EnvironmentBuilder()
        self.credentials = credentials or CredentialProvider(
            server_url=self.config.server_url,
            refresh_margin=self.config.refresh_margin,
        )
        self._get_current_directory = get_current_directory

        self._state = SupervisorState.IDLE
        self._session: Session | None = None
        self._idle_transcript = TranscriptBuffer()
        self._tasks: set[asyncio.Task] = set()
        self._start_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._state is SupervisorState.RUNNING

    @property
    def is_killed(self) -> bool:
        return self._state is SupervisorState.KILLED

    @property
    def exit_error(self) -> UnexpectedExitError | None:
        return self._session.exit_error if self._session else None

    @property
    def transcript(self) -> TranscriptBuffer:
        """Transcript of the current session."""
        return self._session.transcript if self._session else self._idle_transcript

    def _transition(self, new_state: SupervisorState) -> None:
        if new_state not in VALID_TRANSITIONS[self._state]:
            raise StateTransitionError(
                f"Cannot go from {self._state.name} to {new_state.name}",
                from_state=self._state.name,
                to_state=new_state.name,
            )
        logger.debug(f"Supervisor {self._state.name} -> {new_state.name}")
        self._state = new_state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, model: str, api_key: str | None = None) -> None:
        """
        Start aider for ``model`` unless it is already running.

        Overlapping calls are serialized; a call that finds aider running
        returns at once. ``kill()`` while starting cancels the start.

        Args:
            model: Model identifier (selects family, flags and secret)
            api_key: API key for api-key families; ignored for the managed model

        Raises:
            ResolutionError: No working aider invocation
            AuthError: No usable token or API key
            SpawnError: The OS could not create the process
            UnexpectedExitError: The child crashed during the start grace period
        """
        async with self._start_lock:
            if self.is_running:
                logger.info("Aider process already running")
                return
            await self._start(model, api_key)

    async def _start(self, model: str, api_key: str | None) -> None:
        self._transition(SupervisorState.STARTING)
        session = Session(model=model)
        self._session = session
        set_session_id(session.session_id)
        logger.info(f"Starting Aider with model {model}...")

        try:
            command, env, cwd = await self._prepare(model, api_key)
        except DriverError as e:
            if session.killed:
                logger.info("Aider start cancelled")
                return
            self._fail(session, e, "start_failed")
            raise

        if session.killed:
            logger.info("Aider start cancelled before spawn")
            return

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
            )
        except OSError as e:
            if session.killed:
                logger.info("Aider start cancelled")
                return
            error = SpawnError(
                f"Error starting Aider: {e.strerror or e}",
                errno=e.errno,
                command=command[0],
            )
            self._fail(session, error, "spawn_failed", command=command, cwd=cwd)
            raise error from e

        session.pid = process.pid
        if session.killed:
            logger.info("Aider start cancelled after spawn")
            self._terminate(process)
            return

        session.process = process
        self._transition(SupervisorState.RUNNING)
        process_logger.info(
            ProcessLogEntry(
                timestamp=now_iso(),
                event="start",
                session_id=session.session_id,
                model=model,
                command=command,
                cwd=cwd or "",
                pid=process.pid,
            ).to_json()
        )

        if process.stdout is not None:
            session.readers.append(self._spawn_task(self._pump_stdout(session, process.stdout)))
        if process.stderr is not None:
            session.readers.append(self._spawn_task(self._pump_stderr(session, process.stderr)))
        exit_task = self._spawn_task(self._watch_exit(session, process))

        # Catch a child that dies straight away (bad flags, bad key, ...)
        if self.config.start_grace > 0:
            await asyncio.wait({exit_task}, timeout=self.config.start_grace)
            if session.exit_error is not None:
                raise session.exit_error

    def kill(self) -> None:
        """
        Terminate the child if it is running. Idempotent and non-blocking.
        """
        session = self._session
        if session is None or session.killed:
            logger.debug("No Aider process to kill")
            return

        # Cancel an in-flight start; it checks the flag around the spawn
        if self._state is SupervisorState.STARTING:
            logger.info("Cancelling Aider start...")
            session.killed = True
            self._transition(SupervisorState.KILLED)
            self._log_event("kill")
            return

        if session.process is None:
            logger.debug("No Aider process to kill")
            return

        logger.info("Killing Aider process...")
        session.killed = True
        process = session.process
        session.process = None
        self._terminate(process)

        if self.is_running:
            self._transition(SupervisorState.KILLED)

        self._log_event("kill")

    def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            logger.debug("Aider process already gone")

    async def reset(self, model: str, api_key: str | None = None) -> None:
        """Kill the current child and start a fresh session."""
        logger.info("Resetting Aider process...")
        self._log_event("reset", model=model)
        self.kill()
        try:
            await self.start(model, api_key)
        except DriverError as e:
            logger.error(f"Error resetting Aider process: {e}")
            raise
        logger.info("Aider process reset successfully.")

    def close(self) -> None:
        """Release the child process. Safe to call multiple times."""
        self.kill()

    async def __aenter__(self) -> "ProcessSupervisor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def write(self, text: str) -> bool:
        """
        Submit ``text`` to aider as one line.

        Returns:
            False (and logs) if the process is not running
        """
        session = self._session
        process = session.process if session else None
        stdin = process.stdin if process else None
        if not self.is_running or stdin is None or stdin.is_closing():
            logger.error("Aider process is not running")
            return False

        try:
            stdin.write(format_input(text).encode("utf-8"))
        except (BrokenPipeError, ConnectionResetError, RuntimeError) as e:
            logger.error(f"Could not write to Aider: {e}")
            return False
        # Flow control for large pastes; write() itself stays synchronous
        self._spawn_task(self._drain(stdin))
        return True

    async def _drain(self, stdin: asyncio.StreamWriter) -> None:
        try:
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.error(f"Could not write to Aider: {e}")

    def interrupt(self) -> bool:
        """Send Ctrl+C to aider without terminating it."""
        if not self.is_running:
            logger.warning("No active Aider process to send Ctrl+C to.")
            return False
        logger.info("Sending Ctrl+C signal to Aider process...")
        self._log_event("interrupt")
        return self.write(CTRL_C)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _prepare(
        self, model: str, api_key: str | None
    ) -> tuple[list[str], dict[str, str], str | None]:
        """Resolve invocation, secret, environment and working directory."""
        family = family_for(model)

        # Login shells can be slow; keep the event loop free
        user_path = await asyncio.to_thread(self.env_builder.resolve_user_path)
        invocation = await self.resolver.resolve(env={**os.environ, "PATH": user_path})

        secret = await self._secret_for(family, model, api_key)
        env = self.env_builder.build_env(model, secret, user_path=user_path)
        await self.env_builder.apply_platform_env(model, secret)

        argv = [*invocation.argv, *family.aider_args(model, self.config.managed_api_base)]
        command = self.env_builder.spawn_command(argv, model, secret)
        return command, env, await self._working_directory()

    async def _secret_for(self, family: ModelFamily, model: str, api_key: str | None) -> str:
        if family.credential_source is CredentialSource.MANAGED:
            await self.credentials.check_and_update_credentials()
            token = self.credentials.get_access_token()
            if not token:
                raise AuthError("User not logged in. Token invalid or missing.")
            return token

        if not api_key:
            raise AuthError(
                f"No API key provided for model '{model}'",
                {"env_var": family.env_var},
            )
        return api_key

    async def _working_directory(self) -> str | None:
        if self._get_current_directory is None:
            return self.config.working_dir
        result = self._get_current_directory()
        if inspect.isawaitable(result):
            result = await result
        return result or None

    def _fail(
        self,
        session: Session,
        error: DriverError,
        event: str,
        command: list[str] | None = None,
        cwd: str | None = None,
    ) -> None:
        self._transition(SupervisorState.ERRORED)
        logger.error(f"Aider failed to start: {error.message}")
        process_logger.error(
            ProcessLogEntry(
                timestamp=now_iso(),
                event=event,
                session_id=session.session_id,
                model=session.model,
                command=command or [],
                cwd=cwd or "",
                error=error.message,
                error_type=type(error).__name__,
            ).to_json()
        )

    def _log_event(self, event: str, model: str | None = None) -> None:
        session = self._session
        process_logger.info(
            ProcessLogEntry(
                timestamp=now_iso(),
                event=event,
                session_id=session.session_id if session else "",
                model=model or (session.model if session else ""),
                pid=session.pid if session else None,
            ).to_json()
        )

    def _spawn_task(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Aider background task failed: {task.exception()!r}")

    async def _pump_stdout(self, session: Session, stream: asyncio.StreamReader) -> None:
        """Only writer of the session transcript."""
        while True:
            data = await stream.read(READ_CHUNK_BYTES)
            if not data:
                break
            session.transcript.feed(data)

    async def _pump_stderr(self, session: Session, stream: asyncio.StreamReader) -> None:
        while True:
            line = await stream.readline()
            if not line:
                break
            text = strip_ansi(line.decode("utf-8", errors="replace")).rstrip()
            if text:
                session.stderr_tail.append(text)
                logger.warning(f"Aider error: {text}")

    async def _watch_exit(self, session: Session, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if session.readers:
            await asyncio.wait(session.readers, timeout=READER_DRAIN_TIMEOUT)

        logger.info(f"Aider process exited with code {returncode}")
        process_logger.info(
            ProcessLogEntry(
                timestamp=now_iso(),
                event="exit",
                session_id=session.session_id,
                model=session.model,
                pid=session.pid,
                returncode=returncode,
            ).to_json()
        )

        # Intentional kills and replaced sessions are not failures
        if session.killed or session is not self._session or not self.is_running:
            return

        session.process = None
        if returncode != 0:
            session.exit_error = UnexpectedExitError(
                f"Aider process exited with code {returncode}",
                returncode=returncode,
                stderr_tail="\n".join(session.stderr_tail),
            )
            self._transition(SupervisorState.ERRORED)
        else:
            self._transition(SupervisorState.EXITED)
