"""Chat API endpoints for the tutoring conversation."""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from tutor.llm.chat.manager import get_session_manager
from tutor.llm.chat.models import (
    ChatSessionInfo,
    SendMessageRequest,
    StartChatRequest,
)
from tutor.llm.errors import UsageError
from tutor.personas import SUBJECTS, Persona, get_persona

logger = logging.getLogger(__name__)

router = APIRouter()


def _sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


@router.get("/personas")
async def list_personas() -> list[Persona]:
    """List the tutor personas the student can choose from."""
    return SUBJECTS


@router.post("/chat/start")
async def start_chat(request: StartChatRequest) -> ChatSessionInfo | None:
    """Start a new conversation, replacing any current one.

    Returns null when no API key is configured; sending a message then
    streams the configuration error.
    """
    manager = get_session_manager()

    if request.persona_id:
        persona = get_persona(request.persona_id)
        if not persona:
            raise HTTPException(status_code=404, detail="Persona not found")
        manager.start_chat(
            persona.system_prompt,
            persona.thinking_budget,
            persona_id=persona.id,
        )
    elif request.system_instruction:
        manager.start_chat(request.system_instruction, request.thinking_budget)
    else:
        raise HTTPException(
            status_code=400,
            detail="Either persona_id or system_instruction is required",
        )

    return manager.get_session_info()


@router.post("/chat/reset")
async def reset_chat() -> ChatSessionInfo | None:
    """Clear the conversation and restart the current persona."""
    manager = get_session_manager()
    try:
        manager.reset()
    except UsageError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return manager.get_session_info()


@router.get("/chat/session")
async def get_chat_session() -> ChatSessionInfo:
    """Get information about the active chat session."""
    info = get_session_manager().get_session_info()
    if info is None:
        raise HTTPException(status_code=404, detail="No active chat session")
    return info


@router.post("/chat/messages")
async def send_message(request: SendMessageRequest) -> StreamingResponse:
    """Send a user turn and stream the reply as server-sent events.

    Events:
    {"event": "delta", "text": "..."}
    {"event": "message_complete"}
    """
    manager = get_session_manager()
    try:
        deltas = manager.send_message_stream(
            request.text,
            request.image_base64,
            request.mime_type,
        )
    except UsageError as e:
        raise HTTPException(status_code=409, detail=str(e))

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            async for delta in deltas:
                yield _sse({"event": "delta", "text": delta})
            yield _sse({"event": "message_complete"})
        finally:
            await deltas.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


# Admin endpoint for monitoring
@router.get("/chat/stats")
async def get_chat_stats() -> dict[str, Any]:
    """Get chat session statistics."""
    return get_session_manager().get_stats()
