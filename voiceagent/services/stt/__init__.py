"""Speech-to-Text services (Deepgram)."""

from voiceagent.services.stt.deepgram import DeepgramTranscriber
from voiceagent.services.stt.exceptions import (
    TranscriptionConnectionError,
    TranscriptionError,
)
from voiceagent.services.stt.protocol import TranscriptionMetadata, TranscriptionService

__all__ = [
    "DeepgramTranscriber",
    "TranscriptionConnectionError",
    "TranscriptionError",
    "TranscriptionMetadata",
    "TranscriptionService",
]
