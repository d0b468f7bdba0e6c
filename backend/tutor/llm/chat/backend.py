"""Shared interface for chat backends and backend selection."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import ClassVar

from tutor.config import Settings
from tutor.llm.chat.models import ChatSessionConfig, TurnInput
from tutor.llm.chat.session import ChatSession

logger = logging.getLogger(__name__)


class ChatBackend(ABC):
    """A language-model backend that can hold a conversation.

    Backends are stateless with respect to conversations: every piece of
    conversation state lives on the ChatSession passed in.

    Implementations must never let a backend failure escape
    ``send_message_stream``; a failure ends the stream with exactly one
    message from ``tutor.llm.errors.error_message``.
    """

    name: ClassVar[str]

    # Whether an image turn may be sent without a session
    supports_stateless_images: ClassVar[bool] = False

    @abstractmethod
    def start_chat(
        self,
        config: ChatSessionConfig,
        persona_id: str | None = None,
    ) -> ChatSession:
        """Create a fresh session for the given configuration."""
        ...

    @abstractmethod
    def send_message_stream(
        self,
        session: ChatSession | None,
        turn: TurnInput,
    ) -> AsyncIterator[str]:
        """Send one user turn and yield non-empty text deltas in order."""
        ...

    async def aclose(self) -> None:
        """Release any client resources."""
        return None


def create_backend(settings: Settings) -> ChatBackend:
    """Select the backend for the configured credential.

    Raises:
        ConfigMissingError: If no credential is configured.
    """
    from tutor.llm.errors import ConfigMissingError

    if not settings.has_credential:
        raise ConfigMissingError("API_KEY is not set")

    if settings.uses_openrouter:
        from tutor.llm.openrouter_client import OpenRouterChatBackend

        backend: ChatBackend = OpenRouterChatBackend(settings)
    else:
        from tutor.llm.gemini_client import GeminiChatBackend

        backend = GeminiChatBackend(settings)

    logger.info(f"Using {backend.name} chat backend")
    return backend
