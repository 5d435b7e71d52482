"""
Watch Module - Black Box Interface

Purpose: Live Deployment change feed for one HTTP client
Interface: StreamSession, SessionContext, translate_notification(), stream_response()
Hidden: Two-way wait, state transitions, SSE framing

One session per connection; sessions share nothing.
"""

from .events import UNRECOGNIZED_PAYLOAD_ERROR, translate_notification
from .session import CLOSE_MESSAGE, SessionContext, SessionState, StreamFrame, StreamSession
from .transport import STREAM_HEADERS, encode_frame, stream_response

__all__ = [
    "CLOSE_MESSAGE",
    "STREAM_HEADERS",
    "UNRECOGNIZED_PAYLOAD_ERROR",
    "SessionContext",
    "SessionState",
    "StreamFrame",
    "StreamSession",
    "encode_frame",
    "stream_response",
    "translate_notification",
]
