"""Text-to-Speech services (ElevenLabs) and the shared synthesis cache."""

from voiceagent.services.tts.cache import SynthesisCache
from voiceagent.services.tts.elevenlabs import ElevenLabsSynthesizer
from voiceagent.services.tts.exceptions import (
    EmptySynthesisError,
    SynthesisConnectionError,
    SynthesisError,
)
from voiceagent.services.tts.protocol import SynthesisMetadata, SynthesisService

__all__ = [
    # Protocol and types
    "SynthesisService",
    "SynthesisMetadata",
    # Implementations
    "ElevenLabsSynthesizer",
    "SynthesisCache",
    # Exceptions
    "SynthesisError",
    "SynthesisConnectionError",
    "EmptySynthesisError",
]
