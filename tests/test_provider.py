"""
End-to-end tests for the aider chat provider.

A real supervisor and streaming adapter run against a fake aider process
that answers every submitted line.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from creator.config import DriverConfig
from creator.driver.credentials import CredentialProvider, Credentials
from creator.driver.resolver import AIDER_CHAT_FLAGS, DEFAULT_CANDIDATES, Invocation
from creator.driver.streaming import ChatMessage
from creator.driver.supervisor import ProcessSupervisor
from creator.exceptions import UnexpectedExitError
from creator.provider import CreatorLLM, message_text
from fakes import BANNER, FakeProcess, StaticPathEnvironment, reply_with

SPAWN = "creator.driver.supervisor.asyncio.create_subprocess_exec"


@pytest.fixture
def llm(monkeypatch):
    monkeypatch.setenv("SHELL", "/bin/sh")
    candidate = DEFAULT_CANDIDATES[0]
    resolver = MagicMock()
    resolver.resolve = AsyncMock(
        return_value=Invocation(candidate, tuple(candidate.chat_argv(AIDER_CHAT_FLAGS)))
    )
    config = DriverConfig(
        server_url="https://server.test", poll_interval=0.005, start_grace=0, ready_timeout=1.0
    )
    supervisor = ProcessSupervisor(
        config=config,
        resolver=resolver,
        env_builder=StaticPathEnvironment("linux"),
        credentials=CredentialProvider(get_credentials=lambda: Credentials("opaque-token", "r")),
    )
    return CreatorLLM(config=config, supervisor=supervisor, platform="linux")


class TestMessageText:
    def test_plain_message(self):
        assert message_text(ChatMessage(role="user", content="hi")) == "hi"

    def test_multipart_drops_images(self):
        message = {
            "role": "user",
            "content": [
                {"type": "text", "text": "look at"},
                {"type": "image_url", "image_url": {"url": "data:..."}},
                {"type": "text", "text": "this"},
            ],
        }
        assert message_text(message) == "look at\nthis"


class TestCreatorLLM:
    """Tests for the provider surface."""

    @pytest.mark.asyncio
    async def test_stream_chat_end_to_end(self, llm):
        process = FakeProcess(
            on_write=reply_with(b"Editing main.py\nFixed the bug.\n> "), banner=BANNER
        )
        with patch(SPAWN, AsyncMock(return_value=process)) as spawn:
            chunks = [
                chunk
                async for chunk in llm.stream_chat([{"role": "user", "content": "fix this bug"}])
            ]

        spawn.assert_awaited_once()
        assert process.stdin.writes == [b"fix this bug\n"]
        assert "".join(c.content for c in chunks) == "Editing main.py\nFixed the bug.\n> "
        assert all(c.role == "assistant" for c in chunks)
        assert llm.adapter.last_turn.complete
        llm.close()

    @pytest.mark.asyncio
    async def test_only_last_message_sent(self, llm):
        process = FakeProcess(on_write=reply_with(b"ok\n> "), banner=BANNER)
        history = [
            ChatMessage(role="user", content="earlier question"),
            ChatMessage(role="assistant", content="earlier answer"),
            ChatMessage(role="user", content="new question"),
        ]
        with patch(SPAWN, AsyncMock(return_value=process)):
            async for _ in llm.stream_chat(history):
                pass

        assert process.stdin.writes == [b"new question\n"]
        llm.close()

    @pytest.mark.asyncio
    async def test_stream_complete_yields_strings(self, llm):
        process = FakeProcess(on_write=reply_with(b"42\n> "), banner=BANNER)
        with patch(SPAWN, AsyncMock(return_value=process)):
            parts = [part async for part in llm.stream_complete("answer?")]

        assert "".join(parts) == "42\n> "
        llm.close()

    @pytest.mark.asyncio
    async def test_empty_messages_rejected(self, llm):
        with pytest.raises(ValueError):
            async for _ in llm.stream_chat([]):
                pass

    @pytest.mark.asyncio
    async def test_reset_session_switches_model(self, llm):
        first, second = FakeProcess(pid=1, banner=BANNER), FakeProcess(pid=2, banner=BANNER)
        with patch(SPAWN, AsyncMock(side_effect=[first, second])) as spawn:
            await llm.start()
            await llm.reset_session(model="gpt-4o", api_key="sk-openai")

        assert first.terminated
        assert llm.model == "gpt-4o"
        assert "--model gpt-4o" in spawn.call_args.args[2]
        llm.close()

    @pytest.mark.asyncio
    async def test_interrupt_and_kill(self, llm):
        process = FakeProcess(banner=BANNER)
        with patch(SPAWN, AsyncMock(return_value=process)):
            await llm.start()

        assert llm.interrupt() is True
        assert process.stdin.writes == [b"\x03\n"]
        llm.kill()
        assert process.terminated
        assert llm.interrupt() is False

    @pytest.mark.asyncio
    async def test_list_models(self, llm):
        assert await llm.list_models() == ["claude-3-5-sonnet-20240620", "pearai_model", "gpt-4o"]

    def test_no_fim(self, llm):
        assert llm.supports_fim() is False

    def test_token_setters_pass_through(self, llm):
        llm.set_access_token("new-access")
        llm.set_refresh_token("new-refresh")
        credentials = llm.supervisor.credentials
        assert credentials.get_access_token() == "new-access"
        assert credentials.get_refresh_token() == "new-refresh"


class TestStartupBanner:
    """The banner aider prints while starting never reaches the first turn."""

    @pytest.mark.asyncio
    async def test_banner_after_start_is_discarded(self, llm):
        process = FakeProcess(on_write=reply_with(b"Fixed the bug.\n> "))
        asyncio.get_running_loop().call_later(0.05, process.emit, BANNER)
        with patch(SPAWN, AsyncMock(return_value=process)):
            chunks = [
                chunk
                async for chunk in llm.stream_chat([{"role": "user", "content": "fix this bug"}])
            ]

        text = "".join(c.content for c in chunks)
        assert text == "Fixed the bug.\n> "
        assert "Aider v0.50.1" not in text
        assert process.stdin.writes == [b"fix this bug\n"]
        llm.close()

    @pytest.mark.asyncio
    async def test_start_waits_for_prompt(self, llm):
        process = FakeProcess()
        asyncio.get_running_loop().call_later(0.05, process.emit, BANNER)
        with patch(SPAWN, AsyncMock(return_value=process)):
            await llm.start()

        assert llm.supervisor.transcript.text == ""
        llm.close()

    @pytest.mark.asyncio
    async def test_silent_start_continues_after_timeout(self, llm, caplog):
        llm.config.ready_timeout = 0.05
        process = FakeProcess(on_write=reply_with(b"ok\n> "))
        with patch(SPAWN, AsyncMock(return_value=process)):
            with caplog.at_level(logging.WARNING, logger="creator.driver.streaming"):
                chunks = [chunk async for chunk in llm.stream_chat([ChatMessage("user", "hi")])]

        assert "did not show its prompt" in caplog.text
        assert "".join(c.content for c in chunks) == "ok\n> "
        llm.close()

    @pytest.mark.asyncio
    async def test_crash_before_prompt_raises(self, llm):
        process = FakeProcess()
        asyncio.get_running_loop().call_later(0.02, process.exit, 2)
        with patch(SPAWN, AsyncMock(return_value=process)):
            with pytest.raises(UnexpectedExitError):
                await llm.start()
