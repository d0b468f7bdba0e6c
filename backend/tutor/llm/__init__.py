"""LLM integration for the tutoring chat."""

from tutor.llm.errors import (
    BackendResponseError,
    ChatError,
    ConfigMissingError,
    ErrorKind,
    RateLimitedError,
    UnauthorizedError,
    UsageError,
    classify_error,
    error_message,
)
from tutor.llm.gemini_client import GeminiChatBackend
from tutor.llm.openrouter_client import OpenRouterChatBackend
from tutor.llm.sse import iter_sse_events

__all__ = [
    # Backends
    "GeminiChatBackend",
    "OpenRouterChatBackend",
    # Transport
    "iter_sse_events",
    # Errors
    "BackendResponseError",
    "ChatError",
    "ConfigMissingError",
    "ErrorKind",
    "RateLimitedError",
    "UnauthorizedError",
    "UsageError",
    "classify_error",
    "error_message",
]
