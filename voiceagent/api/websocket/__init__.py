"""WebSocket handlers for real-time call audio.

This module provides the Twilio media stream endpoint:
- media_stream_endpoint: Main WebSocket handler
- TwilioAudioSender: Outbound media/mark writer
"""

from voiceagent.api.websocket.media_stream import (
    MediaStreamConnection,
    StreamEvent,
    TwilioAudioSender,
    media_stream_endpoint,
)

__all__ = [
    "media_stream_endpoint",
    "MediaStreamConnection",
    "StreamEvent",
    "TwilioAudioSender",
]
