"""OpenRouter chat backend over the raw chat-completions HTTP API.

Unlike the SDK backend, conversation state is explicit here: the session's
History Log is sent in full on every request, and the reply (plus any
reasoning details) is appended to it once the response is complete.
"""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from tutor.config import Settings
from tutor.llm.chat.backend import ChatBackend
from tutor.llm.chat.models import ChatRole, ChatSessionConfig, HistoryEntry, TurnInput
from tutor.llm.chat.session import ChatSession
from tutor.llm.errors import (
    BackendResponseError,
    ChatError,
    ConfigMissingError,
    RateLimitedError,
    UnauthorizedError,
    error_message,
)
from tutor.llm.sse import iter_sse_events

logger = logging.getLogger(__name__)


def build_content_parts(turn: TurnInput) -> list[dict[str, Any]]:
    """Pack a turn as chat-completions content parts: text, then the image."""
    parts: list[dict[str, Any]] = [{"type": "text", "text": turn.text}]
    if turn.image is not None:
        parts.append({
            "type": "image_url",
            "image_url": {"url": turn.image.to_data_uri()},
        })
    return parts


def merge_reasoning(current: Any, fragment: Any) -> Any:
    """Fold a reasoning fragment into what has been captured so far.

    String fragments are concatenated; a structured fragment replaces
    whatever came before it.
    """
    if isinstance(fragment, str):
        if isinstance(current, str):
            return current + fragment
        return fragment
    return fragment


def status_error(status: int | None, message: str) -> ChatError:
    """Typed error for an HTTP status, whether from the response line or an error body."""
    if status in (401, 403):
        return UnauthorizedError(message, status)
    if status == 429:
        return RateLimitedError(message, status)
    return BackendResponseError(message, status)


def in_band_error(error: Any) -> ChatError:
    """Error for an ``{"error": {...}}`` object sent with a 200 response.

    The endpoint reports upstream provider failures this way once streaming
    has started, so the HTTP status no longer reflects them.
    """
    if not isinstance(error, dict):
        return BackendResponseError(f"OpenRouter error: {error}")
    code = error.get("code")
    status = code if isinstance(code, int) else None
    return status_error(status, f"OpenRouter error: {error.get('message', code)}")


def _first_choice(payload: dict[str, Any]) -> dict[str, Any]:
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return {}
    return choices[0]


class OpenRouterChatBackend(ChatBackend):
    """Chat backend speaking the OpenAI-compatible chat-completions protocol."""

    name = "openrouter"
    supports_stateless_images = False

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        stream: bool | None = None,
    ):
        """Initialize the backend.

        Args:
            settings: Resolved settings; ``api_key`` must be set.
            http_client: Optional client to send requests with (used by tests).
            stream: Override ``settings.openrouter_stream``.
        """
        if not settings.api_key:
            raise ConfigMissingError("OpenRouter API key required. Set API_KEY.")
        self.settings = settings
        self.stream = settings.openrouter_stream if stream is None else stream
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout, connect=10.0)
        )

    def start_chat(
        self,
        config: ChatSessionConfig,
        persona_id: str | None = None,
    ) -> ChatSession:
        logger.info(f"Started OpenRouter chat (thinking_budget={config.thinking_budget})")
        return ChatSession.with_history(config, self.name, persona_id=persona_id)

    def select_model(self, config: ChatSessionConfig) -> str:
        """Use the reasoning-capable model when a thinking budget is set."""
        if config.thinking_budget:
            return self.settings.openrouter_reasoning_model
        return self.settings.openrouter_model

    def build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.app_url,
            "X-Title": self.settings.app_title,
        }

    def build_payload(self, session: ChatSession) -> dict[str, Any]:
        reasoning: dict[str, Any] = {"enabled": True}
        if session.thinking_budget:
            reasoning["max_tokens"] = session.thinking_budget
        return {
            "model": self.select_model(session.config),
            "messages": session.messages(),
            "stream": self.stream,
            "reasoning": reasoning,
        }

    async def send_message_stream(
        self,
        session: ChatSession | None,
        turn: TurnInput,
    ) -> AsyncGenerator[str, None]:
        if session is None:
            raise RuntimeError("OpenRouter turns require a started chat")

        session.append(HistoryEntry(role=ChatRole.USER, content=build_content_parts(turn)))
        payload = self.build_payload(session)

        text = ""
        reasoning: Any = None
        try:
            async with self._client.stream(
                "POST",
                self.settings.openrouter_url,
                json=payload,
                headers=self.build_headers(),
            ) as response:
                await self._raise_for_status(response)

                if self.stream:
                    async for event in iter_sse_events(response.aiter_bytes()):
                        if event.get("error"):
                            raise in_band_error(event["error"])
                        delta = _first_choice(event).get("delta") or {}
                        content = delta.get("content")
                        if content:
                            text += content
                            yield content
                        if delta.get("reasoning_details") is not None:
                            reasoning = merge_reasoning(reasoning, delta["reasoning_details"])
                else:
                    body = await response.aread()
                    message = self._parse_completion(body)
                    text = message.get("content") or ""
                    reasoning = message.get("reasoning_details")
                    if text:
                        yield text

        except Exception as e:
            logger.error(f"OpenRouter request failed: {e}")
            yield error_message(e)
            return

        session.append(HistoryEntry(
            role=ChatRole.ASSISTANT,
            content=text,
            reasoning_details=reasoning,
        ))

    async def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return

        body = (await response.aread()).decode("utf-8", errors="replace")[:500]
        status = response.status_code
        logger.warning(f"OpenRouter returned {status}: {body}")

        raise status_error(status, f"OpenRouter returned {status}")

    @staticmethod
    def _parse_completion(body: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise BackendResponseError(f"Invalid JSON in response: {e}") from e
        if not isinstance(payload, dict):
            raise BackendResponseError("Unexpected response shape")
        if payload.get("error"):
            raise in_band_error(payload["error"])
        return _first_choice(payload).get("message") or {}

    async def aclose(self) -> None:
        await self._client.aclose()
