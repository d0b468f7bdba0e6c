"""ChatSession holds the state of the one live conversation."""

import uuid
from datetime import datetime
from typing import Any

from tutor.llm.chat.models import ChatRole, ChatSessionConfig, HistoryEntry


class ChatSession:
    """The live conversation state for one persona selection.

    Backend-specific state lives here rather than in the backend:
    - ``history``: the explicit History Log (HTTP-mode). Always starts with
      the system turn.
    - ``handle``: the SDK's own chat object (SDK-mode), which keeps its
      history internally.

    A session is never reused across persona switches; ``start_chat`` builds
    a new one.
    """

    def __init__(
        self,
        config: ChatSessionConfig,
        backend: str,
        persona_id: str | None = None,
        handle: Any = None,
        history: list[HistoryEntry] | None = None,
    ):
        self.session_id = str(uuid.uuid4())[:12]
        self.config = config
        self.backend = backend
        self.persona_id = persona_id
        self.handle = handle
        self.history: list[HistoryEntry] = history if history is not None else []
        self.created_at = datetime.now()
        self.last_activity = datetime.now()
        self.turn_count = 0
        self._is_processing = False

    @classmethod
    def with_history(
        cls,
        config: ChatSessionConfig,
        backend: str,
        persona_id: str | None = None,
    ) -> "ChatSession":
        """Create a session whose History Log holds only the system turn."""
        system_turn = HistoryEntry(role=ChatRole.SYSTEM, content=config.system_instruction)
        return cls(config, backend, persona_id=persona_id, history=[system_turn])

    @property
    def system_instruction(self) -> str:
        return self.config.system_instruction

    @property
    def thinking_budget(self) -> int | None:
        return self.config.thinking_budget

    @property
    def is_processing(self) -> bool:
        """Whether a turn's reply is still being streamed."""
        return self._is_processing

    def begin_turn(self) -> None:
        self._is_processing = True
        self.turn_count += 1
        self.last_activity = datetime.now()

    def end_turn(self) -> None:
        self._is_processing = False
        self.last_activity = datetime.now()

    def append(self, entry: HistoryEntry) -> None:
        self.history.append(entry)

    def messages(self) -> list[dict[str, Any]]:
        """The History Log in chat-completions wire shape."""
        return [entry.to_message() for entry in self.history]

    def get_info(self) -> dict[str, Any]:
        """Get session information."""
        return {
            "session_id": self.session_id,
            "backend": self.backend,
            "system_instruction": self.system_instruction,
            "thinking_budget": self.thinking_budget,
            "persona_id": self.persona_id,
            "created_at": self.created_at,
            "last_activity": self.last_activity,
            "turn_count": self.turn_count,
            "is_processing": self.is_processing,
        }
