"""
Aider chat provider.

Exposes the aider driver through the same surface the host's other LLM
providers offer: streamed chat, streamed completion, a fixed model list,
and no fill-in-the-middle support. Session control (start, reset, kill,
Ctrl+C) and token setters are passed through to the driver.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Any

from creator.config import DriverConfig
from creator.driver.credentials import CredentialProvider, CredentialsGetter, CredentialsSetter
from creator.driver.environment import EnvironmentBuilder
from creator.driver.models import SUPPORTED_MODELS
from creator.driver.streaming import ChatMessage, StreamingAdapter
from creator.driver.supervisor import DirectoryProvider, ProcessSupervisor

logger = logging.getLogger(__name__)

MessageLike = ChatMessage | dict[str, Any]


def message_text(message: MessageLike) -> str:
    """
    Plain text of a chat message.

    Multi-part content keeps its text parts and drops images; aider only
    reads text from stdin.
    """
    content = message.content if isinstance(message, ChatMessage) else message.get("content", "")
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "\n".join(parts)


class CreatorLLM:
    """
    Chat provider backed by an interactive aider process.

    One instance drives at most one aider process.
    """

    provider_name = "aider"
    context_length = 8192
    max_tokens = 2048

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        config: DriverConfig | None = None,
        get_credentials: CredentialsGetter | None = None,
        set_credentials: CredentialsSetter | None = None,
        get_current_directory: DirectoryProvider | None = None,
        platform: str | None = None,
        supervisor: ProcessSupervisor | None = None,
    ):
        """
        Initialize provider.

        Args:
            model: Model identifier (default from config, "pearai_model")
            api_key: API key for api-key model families
            config: Driver settings
            get_credentials: Loads stored managed-model tokens
            set_credentials: Persists managed-model tokens
            get_current_directory: Workspace directory for aider
            platform: Platform tag override (defaults to sys.platform)
            supervisor: Pre-built supervisor (tests)
        """
        self.config = config or DriverConfig()
        self.model = model or self.config.model
        self.api_key = api_key or self.config.api_key or None

        if supervisor is None:
            supervisor = ProcessSupervisor(
                config=self.config,
                env_builder=EnvironmentBuilder(platform),
                credentials=CredentialProvider(
                    get_credentials=get_credentials,
                    set_credentials=set_credentials,
                    server_url=self.config.server_url,
                    refresh_margin=self.config.refresh_margin,
                ),
                get_current_directory=get_current_directory,
            )
        self.supervisor = supervisor
        self.adapter = StreamingAdapter(
            supervisor,
            poll_interval=self.config.poll_interval,
            platform=platform or supervisor.env_builder.platform,
        )

    # Session control

    async def start(self) -> None:
        """Start aider for the current model (no-op if running)."""
        if self.supervisor.is_running:
            return
        await self.supervisor.start(self.model, self.api_key)
        await self._await_ready()

    async def reset_session(self, model: str | None = None, api_key: str | None = None) -> None:
        """Restart aider, optionally switching model or key."""
        if model:
            self.model = model
        if api_key:
            self.api_key = api_key
        await self.supervisor.reset(self.model, self.api_key)
        await self._await_ready()

    async def _await_ready(self) -> None:
        # Banner and first prompt must not leak into the first turn
        if self.supervisor.is_running:
            await self.adapter.wait_for_prompt(self.config.ready_timeout)

    def kill(self) -> None:
        self.supervisor.kill()

    def interrupt(self) -> bool:
        """Send Ctrl+C to aider."""
        return self.supervisor.interrupt()

    def set_access_token(self, value: str | None) -> None:
        self.supervisor.credentials.set_access_token(value)

    def set_refresh_token(self, value: str | None) -> None:
        self.supervisor.credentials.set_refresh_token(value)

    def close(self) -> None:
        self.supervisor.close()

    async def __aenter__(self) -> "CreatorLLM":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Provider surface

    async def stream_chat(self, messages: Sequence[MessageLike]) -> AsyncIterator[ChatMessage]:
        """
        Send the last message to aider and stream the reply.

        aider keeps its own conversation history, so earlier messages are
        not replayed. Starts aider first if it is not running.
        """
        if not messages:
            raise ValueError("stream_chat needs at least one message")

        if not self.supervisor.is_running:
            await self.start()

        async with aclosing(self.adapter.send(message_text(messages[-1]))) as stream:
            async for chunk in stream:
                yield chunk

    async def stream_complete(self, prompt: str) -> AsyncIterator[str]:
        """Stream a reply to a single prompt as plain strings."""
        async with aclosing(self.stream_chat([ChatMessage(role="user", content=prompt)])) as stream:
            async for chunk in stream:
                yield chunk.content

    async def list_models(self) -> list[str]:
        return list(SUPPORTED_MODELS)

    def supports_fim(self) -> bool:
        return False
