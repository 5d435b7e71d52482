"""
Server-Sent Events transport.

Each StreamFrame becomes exactly one SSE event, sent as soon as the
session yields it. sse-starlette handles chunked writes, keepalive pings
and client disconnects (it cancels the frame generator).
"""

import json
from typing import AsyncIterator, Optional

from sse_starlette.sse import EventSourceResponse, ServerSentEvent
from starlette.background import BackgroundTask

from .session import StreamFrame, StreamSession

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
    "X-Accel-Buffering": "no",
}


def encode_frame(frame: StreamFrame) -> ServerSentEvent:
    """Encode one frame as an SSE event with a JSON data line."""
    data = json.dumps(frame.data, ensure_ascii=False, separators=(",", ":"), default=str)
    return ServerSentEvent(data=data, event=frame.event)


async def _sse_events(session: StreamSession) -> AsyncIterator[ServerSentEvent]:
    async for frame in session.frames():
        yield encode_frame(frame)


def stream_response(session: StreamSession, ping_seconds: Optional[int] = None) -> EventSourceResponse:
    """
    Build the streaming response for a session.

    Args:
        session: Session whose frames are sent
        ping_seconds: Keepalive comment interval; None or 0 for the library default

    The session is also closed after the response finishes, which covers
    clients that disconnect before the first frame is pulled.
    """
    return EventSourceResponse(
        _sse_events(session),
        headers=dict(STREAM_HEADERS),
        ping=ping_seconds or None,
        background=BackgroundTask(session.aclose),
    )
