"""Chat session infrastructure for multi-turn tutoring conversations.

This module provides the core abstractions for session-based chat:
- ChatSession: state of the one live conversation (SDK handle or History Log)
- ChatBackend: interface shared by the Gemini and OpenRouter backends
- ChatSessionManager: picks the backend and owns the active session
- TurnStream: one turn's reply deltas, holding the session busy until closed
"""

from tutor.llm.chat.backend import ChatBackend, create_backend
from tutor.llm.chat.manager import (
    ChatSessionManager,
    TurnStream,
    get_session_manager,
    shutdown_session_manager,
)
from tutor.llm.chat.models import (
    ChatRole,
    ChatSessionConfig,
    ChatSessionInfo,
    HistoryEntry,
    ImageData,
    TurnInput,
)
from tutor.llm.chat.session import ChatSession

__all__ = [
    "ChatBackend",
    "ChatRole",
    "ChatSession",
    "ChatSessionConfig",
    "ChatSessionInfo",
    "ChatSessionManager",
    "HistoryEntry",
    "ImageData",
    "TurnInput",
    "TurnStream",
    "create_backend",
    "get_session_manager",
    "shutdown_session_manager",
]
