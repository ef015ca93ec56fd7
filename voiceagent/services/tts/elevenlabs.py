"""ElevenLabs TTS service implementation producing telephony-ready audio."""

from __future__ import annotations

import asyncio
import io
import time
from typing import Any

from voiceagent.config import Settings, get_settings
from voiceagent.logging_config import get_logger
from voiceagent.services.tts.exceptions import (
    EmptySynthesisError,
    SynthesisConnectionError,
    SynthesisError,
)
from voiceagent.services.tts.protocol import SynthesisMetadata

logger: Any = get_logger(__name__)


class ElevenLabsSynthesizer:
    """ElevenLabs TTS requesting 8kHz mu-law so audio can go straight to the call."""

    def __init__(
        self,
        settings: Settings | None = None,
        voice_id: str | None = None,
        model_id: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._voice_id = voice_id or self._settings.elevenlabs_voice_id
        self._model_id = model_id or self._settings.elevenlabs_model_id
        self._output_format = self._settings.elevenlabs_output_format
        self._client = None
        self.last_metadata: SynthesisMetadata | None = None

    def _get_client(self):
        if self._client is None:
            api_key = self._settings.elevenlabs_api_key.get_secret_value()
            if not api_key:
                raise SynthesisConnectionError("ElevenLabs API key is not configured")
            from elevenlabs import ElevenLabs

            self._client = ElevenLabs(api_key=api_key)
        return self._client

    async def synthesize(self, text: str) -> bytes:
        """Synthesize text to a complete audio payload."""
        metadata = SynthesisMetadata(
            model=self._model_id,
            voice=self._voice_id,
            output_format=self._output_format,
            input_chars=len(text),
        )
        start_time = time.perf_counter()

        try:
            audio = await asyncio.to_thread(self._synthesize_sync, text)
        except SynthesisError:
            raise
        except Exception as e:
            logger.error(f"ElevenLabs synthesis error: {e}")
            raise SynthesisConnectionError(f"ElevenLabs connection failed: {e}") from e

        if not audio:
            raise EmptySynthesisError("No audio received from ElevenLabs")

        metadata.output_bytes = len(audio)
        metadata.total_synthesis_ms = (time.perf_counter() - start_time) * 1000
        self.last_metadata = metadata

        logger.debug(
            f"ElevenLabs synthesized {metadata.input_chars} chars -> "
            f"{metadata.output_bytes} bytes in {metadata.total_synthesis_ms:.1f}ms"
        )
        return audio

    def _synthesize_sync(self, text: str) -> bytes:
        client = self._get_client()

        audio_chunks = client.text_to_speech.convert(
            text=text,
            voice_id=self._voice_id,
            model_id=self._model_id,
            output_format=self._output_format,
        )

        buffer = io.BytesIO()
        for chunk in audio_chunks:
            buffer.write(chunk)
        return buffer.getvalue()

    async def close(self) -> None:
        self._client = None

    async def health_check(self) -> bool:
        return bool(self._settings.elevenlabs_api_key.get_secret_value())
