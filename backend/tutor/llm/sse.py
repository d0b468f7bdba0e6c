"""Decoder for ``text/event-stream`` bodies from chat-completions endpoints.

Only ``data:`` lines are meaningful. Each carries one JSON object, and the
literal payload ``[DONE]`` ends the stream. Comment lines (``: keep-alive``),
blank separators and other fields are ignored.
"""

import json
import logging
from collections.abc import AsyncGenerator, AsyncIterable
from typing import Any

logger = logging.getLogger(__name__)

DATA_PREFIX = b"data:"
DONE_SENTINEL = "[DONE]"


# Returned by _parse_line for the sentinel frame
END_OF_STREAM = object()


def _parse_line(raw: bytes) -> Any:
    """Parse one line.

    Returns the event dict, None for lines that carry no event, or
    END_OF_STREAM for the sentinel frame.
    """
    line = raw.rstrip(b"\r")
    if not line.startswith(DATA_PREFIX):
        return None

    payload = line[len(DATA_PREFIX):].decode("utf-8", errors="replace").strip()
    if not payload:
        return None
    if payload == DONE_SENTINEL:
        return END_OF_STREAM

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug(f"Dropping malformed SSE frame: {payload[:200]}")
        return None

    if not isinstance(event, dict):
        logger.debug(f"Dropping non-object SSE frame: {payload[:200]}")
        return None
    return event


async def iter_sse_events(
    chunks: AsyncIterable[bytes],
) -> AsyncGenerator[dict[str, Any], None]:
    """Yield parsed JSON events from a stream of raw byte chunks.

    Chunk boundaries are arbitrary: an incomplete trailing line is kept until
    the next chunk completes it. Decoding happens per line, so multi-byte
    characters split across chunks are reassembled before decoding.

    Args:
        chunks: The response body, e.g. ``response.aiter_bytes()``.

    Yields:
        One dict per well-formed ``data:`` frame, in stream order.
    """
    buffer = b""
    async for chunk in chunks:
        if not chunk:
            continue
        buffer += chunk
        *lines, buffer = buffer.split(b"\n")
        for line in lines:
            event = _parse_line(line)
            if event is END_OF_STREAM:
                return
            if event is not None:
                yield event

    # A last frame may arrive without a trailing newline before close
    if buffer:
        event = _parse_line(buffer)
        if event is not None and event is not END_OF_STREAM:
            yield event
