"""Tests for ChatSessionManager."""

import json
from collections.abc import AsyncIterator

import httpx
import pytest

from tutor.config import Settings
from tutor.llm.chat.backend import ChatBackend, create_backend
from tutor.llm.chat.manager import ChatSessionManager, get_session_manager
from tutor.llm.chat.models import ChatSessionConfig, TurnInput
from tutor.llm.chat.session import ChatSession
from tutor.llm.errors import ConfigMissingError, ErrorKind, UsageError, error_message
from tutor.llm.gemini_client import GeminiChatBackend
from tutor.llm.openrouter_client import OpenRouterChatBackend


class ScriptedBackend(ChatBackend):
    """Backend that replays canned replies and records what it was sent."""

    name = "scripted"

    def __init__(self, replies: list[list[str]] | None = None, stateless_images: bool = False):
        self.replies = list(replies or [])
        self.sent: list[tuple[ChatSession | None, TurnInput]] = []
        self.started: list[ChatSessionConfig] = []
        self.supports_stateless_images = stateless_images  # type: ignore[misc]

    def start_chat(self, config, persona_id=None):
        self.started.append(config)
        return ChatSession.with_history(config, self.name, persona_id=persona_id)

    async def send_message_stream(self, session, turn) -> AsyncIterator[str]:
        self.sent.append((session, turn))
        for delta in self.replies.pop(0):
            yield delta


class ExplodingBackend(ScriptedBackend):
    async def send_message_stream(self, session, turn) -> AsyncIterator[str]:
        yield "meio"
        raise RuntimeError("backend broke its contract")


async def collect(stream) -> list[str]:
    return [delta async for delta in stream]


def sse_response(text: str) -> httpx.Response:
    body = "data: " + json.dumps({"choices": [{"delta": {"content": text}}]}) + "\ndata: [DONE]\n"
    return httpx.Response(200, content=body.encode())


class TestBackendSelection:
    """The credential's shape picks the backend once."""

    def test_openrouter_prefix(self, openrouter_settings):
        assert isinstance(create_backend(openrouter_settings), OpenRouterChatBackend)

    def test_other_keys_use_gemini(self, gemini_settings):
        assert isinstance(create_backend(gemini_settings), GeminiChatBackend)

    def test_missing_key(self):
        with pytest.raises(ConfigMissingError):
            create_backend(Settings(api_key=""))

    def test_backend_fixed_across_start_chat(self, openrouter_settings):
        """Test that restarting chats never re-selects the backend."""
        manager = ChatSessionManager(openrouter_settings)
        manager.start_chat("A")
        first = manager.backend
        manager.start_chat("B", 4096)
        manager.start_chat("C")

        assert manager.backend is first
        assert manager.backend_name == "openrouter"

    def test_selection_is_lazy(self, gemini_settings):
        """Test that nothing is built until the backend is needed."""
        manager = ChatSessionManager(gemini_settings)
        assert manager._backend is None


class TestStartChat:
    """Tests for session replacement."""

    def test_replaces_session(self):
        backend = ScriptedBackend()
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)

        first = manager.start_chat("A")
        second = manager.start_chat("B", 8192, persona_id="math")

        assert first is not second
        assert manager.active_session is second
        assert second.system_instruction == "B"
        assert second.thinking_budget == 8192

    @pytest.mark.asyncio
    async def test_no_history_survives_restart(self, openrouter_settings, mock_http):
        """Test that an assistant turn from one session is not in the next."""
        backend = OpenRouterChatBackend(
            openrouter_settings, http_client=mock_http(sse_response("4"))
        )
        manager = ChatSessionManager(openrouter_settings, backend=backend)

        manager.start_chat("Matemática")
        await collect(manager.send_message_stream("2+2?"))
        assert len(manager.active_session.history) == 3

        manager.start_chat("História")
        assert manager.active_session.messages() == [
            {"role": "system", "content": "História"},
        ]

    def test_without_credential(self):
        """Test that starting a chat without a key leaves no session."""
        manager = ChatSessionManager(Settings(api_key=""))
        assert manager.start_chat("A") is None
        assert manager.active_session is None
        assert manager.backend_name is None

    def test_reset_keeps_persona(self):
        """Test that reset restarts the same persona with a fresh session."""
        backend = ScriptedBackend()
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)
        first = manager.start_chat("Tutor", 4096, persona_id="science")

        second = manager.reset()

        assert second is not first
        assert second.persona_id == "science"
        assert second.thinking_budget == 4096

    def test_reset_without_chat(self):
        manager = ChatSessionManager(Settings(api_key="k"), backend=ScriptedBackend())
        with pytest.raises(UsageError):
            manager.reset()


class TestSendMessageStream:
    """Tests for the streaming entry point."""

    @pytest.mark.asyncio
    async def test_config_missing(self):
        """Test that a missing key yields exactly one configuration message."""
        manager = ChatSessionManager(Settings(api_key=""))

        deltas = await collect(manager.send_message_stream("2+2?"))

        assert deltas == [error_message(ErrorKind.CONFIG_MISSING)]

    def test_text_without_chat_raises(self):
        """Test that a text turn before start_chat raises immediately."""
        manager = ChatSessionManager(Settings(api_key="k"), backend=ScriptedBackend())
        with pytest.raises(UsageError):
            manager.send_message_stream("2+2?")

    def test_image_without_chat_needs_stateless_backend(self):
        """Test that an image-only first turn is refused by a stateful backend."""
        manager = ChatSessionManager(Settings(api_key="k"), backend=ScriptedBackend())
        with pytest.raises(UsageError):
            manager.send_message_stream("", "AAAA", "image/png")

    @pytest.mark.asyncio
    async def test_image_without_chat_on_stateless_backend(self):
        """Test the implicit stateless first turn."""
        backend = ScriptedBackend([["Um gato."]], stateless_images=True)
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)

        deltas = await collect(manager.send_message_stream("", "AAAA", "image/png"))

        assert deltas == ["Um gato."]
        session, turn = backend.sent[0]
        assert session is None
        assert turn.image.base64 == "AAAA"
        assert turn.image.mime_type == "image/png"

    @pytest.mark.asyncio
    async def test_deltas_pass_through(self):
        backend = ScriptedBackend([["Dois ", "mais ", "dois."]])
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)
        manager.start_chat("Tutor")

        deltas = await collect(manager.send_message_stream("2+2?"))

        assert "".join(deltas) == "Dois mais dois."
        assert manager.active_session.turn_count == 1
        assert not manager.active_session.is_processing

    @pytest.mark.asyncio
    async def test_escaped_backend_failure_becomes_message(self):
        """Test that anything escaping a backend ends as one message."""
        manager = ChatSessionManager(Settings(api_key="k"), backend=ExplodingBackend())
        manager.start_chat("Tutor")

        deltas = await collect(manager.send_message_stream("oi"))

        assert deltas == ["meio", error_message(ErrorKind.TRANSPORT_FAILURE)]
        assert not manager.active_session.is_processing

    @pytest.mark.asyncio
    async def test_overlapping_turn_refused(self):
        """Test that a second turn cannot start while one is streaming."""
        backend = ScriptedBackend([["a", "b"], ["c"]])
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)
        manager.start_chat("Tutor")

        stream = manager.send_message_stream("primeira")
        assert await stream.__anext__() == "a"

        with pytest.raises(UsageError):
            manager.send_message_stream("segunda")

        assert await collect(stream) == ["b"]
        assert await collect(manager.send_message_stream("segunda")) == ["c"]

    @pytest.mark.asyncio
    async def test_second_stream_refused_before_first_is_consumed(self):
        """Test that the turn is claimed when the stream is handed out."""
        backend = ScriptedBackend([["a", "b"], ["c"]])
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)
        session = manager.start_chat("Tutor")

        first = manager.send_message_stream("primeira")
        assert session.is_processing

        with pytest.raises(UsageError):
            manager.send_message_stream("segunda")

        assert await collect(first) == ["a", "b"]
        assert len(backend.sent) == 1
        assert not session.is_processing
        assert await collect(manager.send_message_stream("segunda")) == ["c"]

    @pytest.mark.asyncio
    async def test_closing_unstarted_stream_releases_session(self):
        """Test that a stream dropped with aclose() does not lock the session."""
        backend = ScriptedBackend([["a"], ["c"]])
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)
        session = manager.start_chat("Tutor")

        abandoned = manager.send_message_stream("primeira")
        await abandoned.aclose()

        assert not session.is_processing
        assert backend.sent == []
        assert await collect(manager.send_message_stream("segunda")) == ["a"]

    @pytest.mark.asyncio
    async def test_closing_half_read_stream_releases_session(self):
        backend = ScriptedBackend([["a", "b"], ["c"]])
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)
        session = manager.start_chat("Tutor")

        stream = manager.send_message_stream("primeira")
        assert await stream.__anext__() == "a"
        await stream.aclose()
        await stream.aclose()

        assert not session.is_processing
        assert await collect(manager.send_message_stream("segunda")) == ["c"]

    @pytest.mark.asyncio
    async def test_unauthorized_keeps_user_turn(self, openrouter_settings, mock_http):
        """Test the 401 scenario end to end through the manager."""
        backend = OpenRouterChatBackend(
            openrouter_settings, http_client=mock_http(httpx.Response(401))
        )
        manager = ChatSessionManager(openrouter_settings, backend=backend)
        manager.start_chat("Tutor")

        deltas = await collect(manager.send_message_stream("2+2?"))

        assert deltas == [error_message(ErrorKind.UNAUTHORIZED)]
        assert [m["role"] for m in manager.active_session.messages()] == ["system", "user"]


class TestSingleton:
    """Tests for the process-wide manager."""

    def test_same_instance(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "  sk-or-abc  ")
        manager = get_session_manager()

        assert get_session_manager() is manager
        assert manager.settings.api_key == "sk-or-abc"

    def test_stats(self):
        backend = ScriptedBackend()
        manager = ChatSessionManager(Settings(api_key="k"), backend=backend)
        manager.start_chat("Tutor")

        stats = manager.get_stats()

        assert stats["backend"] == "scripted"
        assert stats["history_length"] == 1
        assert stats["credential_configured"] is True
