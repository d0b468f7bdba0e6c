"""ChatSessionManager is the facade the rest of the app talks to."""

import logging
from collections.abc import AsyncGenerator
from typing import Any

from tutor.config import Settings, get_settings
from tutor.llm.chat.backend import ChatBackend, create_backend
from tutor.llm.chat.models import ChatSessionConfig, ChatSessionInfo, TurnInput
from tutor.llm.chat.session import ChatSession
from tutor.llm.errors import ErrorKind, UsageError, error_message

logger = logging.getLogger(__name__)

# Singleton manager instance
_manager: "ChatSessionManager | None" = None


class TurnStream:
    """Async iterator over one turn's reply deltas.

    The session is marked busy when the stream is handed out and released
    when iteration ends, fails, or the stream is closed, whichever comes
    first. Close a stream you will not drain with ``aclose()``.
    """

    def __init__(self, deltas: AsyncGenerator[str, None], session: ChatSession | None):
        self._deltas = deltas
        self._session = session
        self._released = session is None

    def __aiter__(self) -> "TurnStream":
        return self

    async def __anext__(self) -> str:
        try:
            return await self._deltas.__anext__()
        except BaseException:
            self._release()
            raise

    async def aclose(self) -> None:
        try:
            await self._deltas.aclose()
        finally:
            self._release()

    def _release(self) -> None:
        if not self._released:
            self._released = True
            self._session.end_turn()


class ChatSessionManager:
    """Owns the single active chat session and the backend that serves it.

    Responsibilities:
    - Pick the backend once, lazily, from the credential's shape
    - Replace the active session wholesale on every start_chat
    - Stream replies and turn every failure into one final message
    """

    def __init__(
        self,
        settings: Settings | None = None,
        backend: ChatBackend | None = None,
    ):
        """Initialize the manager.

        Args:
            settings: Settings to use; defaults to the process settings.
            backend: Pre-built backend (skips credential-based selection).
        """
        self.settings = settings or get_settings()
        self._backend = backend
        self._session: ChatSession | None = None

    @property
    def backend(self) -> ChatBackend:
        """The backend for this process, created on first use."""
        if self._backend is None:
            self._backend = create_backend(self.settings)
        return self._backend

    @property
    def backend_name(self) -> str | None:
        if not self.settings.has_credential and self._backend is None:
            return None
        return self.backend.name

    @property
    def active_session(self) -> ChatSession | None:
        return self._session

    def start_chat(
        self,
        system_instruction: str,
        thinking_budget: int | None = None,
        persona_id: str | None = None,
    ) -> ChatSession | None:
        """Start a brand-new conversation, discarding the current one.

        Returns None when no credential is configured; the next
        send_message_stream reports the configuration error.
        """
        config = ChatSessionConfig(
            system_instruction=system_instruction,
            thinking_budget=thinking_budget,
        )
        self._session = None

        if not self.settings.has_credential and self._backend is None:
            logger.error("API_KEY is missing; chat is unavailable until it is set")
            return None

        self._session = self.backend.start_chat(config, persona_id=persona_id)
        logger.info(
            f"Started chat session {self._session.session_id} "
            f"(backend={self._session.backend}, persona={persona_id})"
        )
        return self._session

    def reset(self) -> ChatSession | None:
        """Restart the active persona with a fresh history.

        Raises:
            UsageError: If no chat was ever started.
        """
        if self._session is None:
            raise UsageError("No active chat to reset. Call start_chat() first.")
        config = self._session.config
        return self.start_chat(
            config.system_instruction,
            config.thinking_budget,
            persona_id=self._session.persona_id,
        )

    def send_message_stream(
        self,
        text: str,
        image_base64: str | None = None,
        mime_type: str | None = None,
    ) -> TurnStream:
        """Send one user turn and return an async iterator of reply deltas.

        Contract checks run here, before iteration starts, so a misuse raises
        at the call site instead of in the consumer's loop. The session
        counts as busy from this call until the returned stream is drained
        or closed.

        Raises:
            UsageError: If a turn is sent without a started chat (text-only,
                or with an image on a backend that needs a session), or while
                the previous reply is still streaming.
        """
        if not self.settings.has_credential and self._backend is None:
            logger.error("Cannot send message: API_KEY is missing")
            return TurnStream(self._single_delta(error_message(ErrorKind.CONFIG_MISSING)), None)

        turn = TurnInput.build(text, image_base64, mime_type)
        session = self._session
        backend = self.backend

        if session is None:
            if turn.image is None or not backend.supports_stateless_images:
                raise UsageError("Chat not started. Call start_chat() first.")
        elif session.is_processing:
            raise UsageError("The previous message is still being answered.")

        if session is not None:
            session.begin_turn()
        return TurnStream(self._stream(backend, turn, session), session)

    async def _stream(
        self,
        backend: ChatBackend,
        turn: TurnInput,
        session: ChatSession | None,
    ) -> AsyncGenerator[str, None]:
        try:
            async for delta in backend.send_message_stream(session, turn):
                yield delta
        except Exception as e:
            logger.exception(f"Chat backend {backend.name} failed: {e}")
            yield error_message(e)

    @staticmethod
    async def _single_delta(message: str) -> AsyncGenerator[str, None]:
        yield message

    def get_session_info(self) -> ChatSessionInfo | None:
        if self._session is None:
            return None
        return ChatSessionInfo(**self._session.get_info())

    def get_stats(self) -> dict[str, Any]:
        """Get manager statistics."""
        session = self._session
        return {
            "credential_configured": self.settings.has_credential,
            "backend": self.backend_name,
            "active_session": session.session_id if session else None,
            "turn_count": session.turn_count if session else 0,
            "history_length": len(session.history) if session else 0,
        }

    async def shutdown(self) -> None:
        """Drop the session and close backend resources."""
        self._session = None
        if self._backend is not None:
            await self._backend.aclose()
        logger.info("Chat session manager shutdown complete")


def get_session_manager() -> ChatSessionManager:
    """Get the singleton session manager instance."""
    global _manager
    if _manager is None:
        _manager = ChatSessionManager()
    return _manager


async def shutdown_session_manager() -> None:
    """Shutdown the session manager."""
    global _manager
    if _manager:
        await _manager.shutdown()
        _manager = None
