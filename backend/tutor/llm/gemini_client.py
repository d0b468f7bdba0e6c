"""Gemini chat backend built on the Google GenAI SDK.

The SDK keeps multi-turn history inside its chat object, so a session only
stores that handle. Image turns bypass the handle and go out as one-shot
multimodal calls.
"""

import base64
import logging
from collections.abc import AsyncGenerator
from typing import Any

from google import genai
from google.genai import types

from tutor.config import Settings
from tutor.llm.chat.backend import ChatBackend
from tutor.llm.chat.models import ChatSessionConfig, TurnInput
from tutor.llm.chat.session import ChatSession
from tutor.llm.errors import ConfigMissingError, error_message

logger = logging.getLogger(__name__)

# Sampling temperature when no thinking budget is configured
DEFAULT_TEMPERATURE = 0.7

# Prompt used when an image arrives with no text
DEFAULT_IMAGE_PROMPT = "Analise esta imagem."

# Instruction for an image turn sent before any persona was chosen
FALLBACK_SYSTEM_INSTRUCTION = "Você é uma assistente útil."


def build_generate_config(config: ChatSessionConfig) -> types.GenerateContentConfig:
    """Build the SDK request config for a session.

    A thinking budget and a manual temperature are mutually exclusive: when
    the budget is set the model controls sampling itself.
    """
    if config.thinking_budget:
        thinking_config = types.ThinkingConfig(thinking_budget=config.thinking_budget)
        temperature = None
    else:
        thinking_config = None
        temperature = DEFAULT_TEMPERATURE

    return types.GenerateContentConfig(
        system_instruction=config.system_instruction,
        thinking_config=thinking_config,
        temperature=temperature,
        tools=[types.Tool(google_search=types.GoogleSearch())],
    )


def build_image_parts(turn: TurnInput) -> list[types.Part]:
    """Pack a multimodal turn as [text part, image part]."""
    if turn.image is None:
        raise ValueError("Turn has no image attached")
    return [
        types.Part.from_text(text=turn.text or DEFAULT_IMAGE_PROMPT),
        types.Part.from_bytes(
            data=base64.b64decode(turn.image.base64),
            mime_type=turn.image.mime_type,
        ),
    ]


class GeminiChatBackend(ChatBackend):
    """Chat backend that delegates history and streaming to the GenAI SDK."""

    name = "gemini"
    supports_stateless_images = True

    def __init__(self, settings: Settings, client: genai.Client | None = None):
        """Initialize the backend.

        Args:
            settings: Resolved settings; ``api_key`` must be set.
            client: Optional pre-built SDK client (used by tests).
        """
        if client is None and not settings.api_key:
            raise ConfigMissingError("Google API key required. Set API_KEY.")
        self.model = settings.gemini_model
        self._client = client or genai.Client(api_key=settings.api_key)

    def start_chat(
        self,
        config: ChatSessionConfig,
        persona_id: str | None = None,
    ) -> ChatSession:
        handle = self._client.aio.chats.create(
            model=self.model,
            config=build_generate_config(config),
        )
        logger.info(
            f"Started Gemini chat (model={self.model}, "
            f"thinking_budget={config.thinking_budget})"
        )
        return ChatSession(config, self.name, persona_id=persona_id, handle=handle)

    async def send_message_stream(
        self,
        session: ChatSession | None,
        turn: TurnInput,
    ) -> AsyncGenerator[str, None]:
        try:
            if turn.image is not None:
                stream = await self._stream_image_turn(session, turn)
            elif session is not None and session.handle is not None:
                stream = await session.handle.send_message_stream(turn.text)
            else:
                raise RuntimeError("Gemini text turn requires a started chat")

            async for chunk in stream:
                text = chunk.text
                if text:
                    yield text
                else:
                    self._log_grounding(chunk)

        except Exception as e:
            logger.error(f"Gemini API error: {e}")
            yield error_message(e)

    async def _stream_image_turn(
        self,
        session: ChatSession | None,
        turn: TurnInput,
    ) -> Any:
        """Issue a stateless multimodal call; the chat handle is not touched."""
        config = (
            session.config
            if session is not None
            else ChatSessionConfig(system_instruction=FALLBACK_SYSTEM_INSTRUCTION)
        )
        return await self._client.aio.models.generate_content_stream(
            model=self.model,
            contents=build_image_parts(turn),
            config=build_generate_config(config),
        )

    @staticmethod
    def _log_grounding(chunk: Any) -> None:
        """Search grounding metadata is not part of the reply; just note it."""
        candidates = getattr(chunk, "candidates", None) or []
        for candidate in candidates:
            metadata = getattr(candidate, "grounding_metadata", None)
            if metadata is not None:
                logger.debug("Dropping search grounding metadata from Gemini chunk")
