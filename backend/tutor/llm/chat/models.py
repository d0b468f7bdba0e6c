"""Pydantic models for chat sessions."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class ChatRole(str, Enum):
    """Role of a History Log entry."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ImageData(BaseModel):
    """An attached image, base64 without any ``data:`` URI prefix."""

    model_config = ConfigDict(frozen=True)

    base64: str
    mime_type: str

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


class TurnInput(BaseModel):
    """One user message as handed to a backend."""

    model_config = ConfigDict(frozen=True)

    text: str
    image: ImageData | None = None

    @classmethod
    def build(
        cls,
        text: str,
        image_base64: str | None = None,
        mime_type: str | None = None,
    ) -> "TurnInput":
        """Build a turn, attaching the image only when both parts are given."""
        image = None
        if image_base64 and mime_type:
            image = ImageData(base64=image_base64, mime_type=mime_type)
        return cls(text=text, image=image)


class HistoryEntry(BaseModel):
    """A single turn in an explicit History Log.

    ``reasoning_details`` is opaque backend data and is sent back as received.
    """

    model_config = ConfigDict(use_enum_values=True)

    role: ChatRole
    content: str | list[dict[str, Any]]
    reasoning_details: Any | None = None

    def to_message(self) -> dict[str, Any]:
        """Wire shape for a chat-completions ``messages`` item."""
        message: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.reasoning_details is not None:
            message["reasoning_details"] = self.reasoning_details
        return message


class ChatSessionConfig(BaseModel):
    """Persona-derived configuration for a session."""

    system_instruction: str
    thinking_budget: PositiveInt | None = None


class ChatSessionInfo(BaseModel):
    """Information about the active chat session."""

    session_id: str
    backend: str
    system_instruction: str
    thinking_budget: int | None = None
    persona_id: str | None = None
    created_at: datetime
    last_activity: datetime
    turn_count: int
    is_processing: bool = False


class StartChatRequest(BaseModel):
    """Request to start a new chat session.

    Either ``persona_id`` or ``system_instruction`` must be given.
    """

    persona_id: str | None = Field(
        default=None,
        description="Persona from the catalog; its prompt and thinking budget are used",
    )
    system_instruction: str | None = Field(
        default=None,
        description="Custom system instruction (ignored when persona_id is set)",
    )
    thinking_budget: PositiveInt | None = Field(
        default=None,
        description="Reasoning budget hint for the custom instruction",
    )


class SendMessageRequest(BaseModel):
    """A user turn posted to the active session."""

    text: str = ""
    image_base64: str | None = Field(
        default=None,
        description="Base64 image data without a data: URI prefix",
    )
    mime_type: str | None = None

