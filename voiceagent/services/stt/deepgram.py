"""Deepgram STT service implementation for windowed transcription."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from voiceagent.config import Settings, get_settings
from voiceagent.logging_config import get_logger, preview
from voiceagent.services.stt.exceptions import (
    TranscriptionConnectionError,
    TranscriptionError,
)
from voiceagent.services.stt.protocol import TranscriptionMetadata

if TYPE_CHECKING:
    from deepgram import DeepgramClient

logger: Any = get_logger(__name__)


class DeepgramTranscriber:
    """Deepgram pre-recorded transcription of accumulated audio windows.

    Each window is sent as a single raw buffer. Telephony audio arrives as
    8kHz mu-law, which Deepgram accepts directly, so no conversion is done.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.deepgram_model
        self._client: DeepgramClient | None = None
        self.last_metadata: TranscriptionMetadata | None = None

    @property
    def client(self) -> DeepgramClient:
        """Lazy initialization of Deepgram client."""
        if self._client is None:
            from deepgram import DeepgramClient

            self._client = DeepgramClient(
                api_key=self._settings.deepgram_api_key.get_secret_value(),
            )
        return self._client

    def _build_options(self) -> dict[str, Any]:
        return {
            "model": self._model,
            "language": self._settings.stt_language,
            "encoding": self._settings.stt_encoding,
            "sample_rate": self._settings.stt_sample_rate,
            "channels": 1,
            "punctuate": True,
            "smart_format": True,
        }

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe one audio window.

        Returns:
            Transcript text, or "" when no speech was recognised.

        Raises:
            TranscriptionConnectionError: When the API is unreachable
            TranscriptionError: For any other upstream failure
        """
        if not audio:
            return ""

        metadata = TranscriptionMetadata(model=self._model, audio_bytes=len(audio))
        start_time = time.perf_counter()

        try:
            response = await self.client.listen.asyncrest.v("1").transcribe_file(
                {"buffer": audio},
                self._build_options(),
            )
        except (ConnectionError, TimeoutError) as e:
            logger.error(f"Deepgram connection error: {e}")
            raise TranscriptionConnectionError("Failed to connect to Deepgram API") from e
        except Exception as e:
            logger.error(f"Deepgram transcription error: {e}")
            raise TranscriptionError(f"Deepgram transcription failed: {e}") from e

        metadata.latency_ms = (time.perf_counter() - start_time) * 1000
        transcript = self._extract_transcript(response, metadata)
        self.last_metadata = metadata

        logger.debug(
            f"Deepgram transcribed {metadata.audio_bytes} bytes in "
            f"{metadata.latency_ms:.1f}ms: {preview(transcript)!r}"
        )
        return transcript

    def _extract_transcript(self, response: Any, metadata: TranscriptionMetadata) -> str:
        """Join the top alternative of every channel into one transcript."""
        try:
            channels = response.results.channels
        except AttributeError as e:
            raise TranscriptionError("Malformed Deepgram response") from e

        parts: list[str] = []
        for channel in channels or []:
            alternatives = getattr(channel, "alternatives", None)
            if not alternatives:
                continue

            alternative = alternatives[0]
            text = (getattr(alternative, "transcript", "") or "").strip()
            if text:
                parts.append(text)
                metadata.confidence = getattr(alternative, "confidence", 0.0) or 0.0

            languages = getattr(alternative, "languages", None) or []
            for lang in languages:
                if lang not in metadata.detected_languages:
                    metadata.detected_languages.append(lang)

        return " ".join(parts).strip()

    async def close(self) -> None:
        """Release the client."""
        self._client = None

    async def health_check(self) -> bool:
        """Deepgram has no cheap ping; report whether a key is configured."""
        return bool(self._settings.deepgram_api_key.get_secret_value())
