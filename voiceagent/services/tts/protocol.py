"""TTS (Text-to-Speech) service protocol and data types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass
class SynthesisMetadata:
    """Metadata collected after synthesis."""

    model: str = ""
    voice: str = ""
    output_format: str = ""
    input_chars: int = 0
    output_bytes: int = 0
    total_synthesis_ms: float | None = None


class SynthesisService(Protocol):
    """Protocol for TTS implementations.

    Output is audio already encoded for the telephony stream, so it can be
    forwarded to the caller without conversion.
    """

    async def synthesize(self, text: str) -> bytes:
        """Synthesize text to a complete audio payload.

        Raises:
            SynthesisError: On any upstream failure
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...
