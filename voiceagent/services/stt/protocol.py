"""STT (Speech-to-Text) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class TranscriptionMetadata:
    """Metadata collected for a single window transcription."""

    model: str = ""
    audio_bytes: int = 0
    confidence: float = 0.0
    latency_ms: float | None = None
    detected_languages: list[str] = field(default_factory=list)


class TranscriptionService(Protocol):
    """Protocol for window transcription implementations.

    Implementations raise TranscriptionError on upstream failure and
    return an empty string when the window holds no speech.
    """

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe one accumulated audio window to text."""
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...
