"""Tests for ElevenLabs TTS service."""

from types import SimpleNamespace

import pytest

from voiceagent.services.tts.elevenlabs import ElevenLabsSynthesizer
from voiceagent.services.tts.exceptions import (
    EmptySynthesisError,
    SynthesisConnectionError,
)


class FakeTextToSpeech:
    def __init__(self, chunks=None, error=None):
        self.chunks = chunks or []
        self.error = error
        self.calls: list[dict] = []

    def convert(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return iter(self.chunks)


def attach_client(synthesizer: ElevenLabsSynthesizer, tts: FakeTextToSpeech) -> None:
    synthesizer._client = SimpleNamespace(text_to_speech=tts)


@pytest.fixture
def elevenlabs(settings_factory) -> ElevenLabsSynthesizer:
    return ElevenLabsSynthesizer(settings=settings_factory())


class TestElevenLabsSynthesizer:
    """Tests for ElevenLabsSynthesizer."""

    @pytest.mark.asyncio
    async def test_synthesize_joins_chunks(self, elevenlabs) -> None:
        """Test streamed chunks are joined into one payload."""
        tts = FakeTextToSpeech(chunks=[b"\x7f\x7f", b"\xff"])
        attach_client(elevenlabs, tts)

        audio = await elevenlabs.synthesize("Hello there!")

        assert audio == b"\x7f\x7f\xff"
        assert tts.calls[0]["text"] == "Hello there!"
        assert tts.calls[0]["output_format"] == "ulaw_8000"
        assert tts.calls[0]["voice_id"] == "21m00Tcm4TlvDq8ikWAM"
        assert elevenlabs.last_metadata.output_bytes == 3

    @pytest.mark.asyncio
    async def test_empty_audio(self, elevenlabs) -> None:
        """Test an empty response raises EmptySynthesisError."""
        attach_client(elevenlabs, FakeTextToSpeech(chunks=[]))

        with pytest.raises(EmptySynthesisError):
            await elevenlabs.synthesize("Hello")

    @pytest.mark.asyncio
    async def test_upstream_error(self, elevenlabs) -> None:
        """Test client failures raise SynthesisConnectionError."""
        attach_client(elevenlabs, FakeTextToSpeech(error=RuntimeError("quota exceeded")))

        with pytest.raises(SynthesisConnectionError):
            await elevenlabs.synthesize("Hello")

    @pytest.mark.asyncio
    async def test_missing_key(self, settings_factory) -> None:
        """Test an empty API key fails before any request."""
        synthesizer = ElevenLabsSynthesizer(settings=settings_factory(elevenlabs_api_key=""))

        with pytest.raises(SynthesisConnectionError):
            await synthesizer.synthesize("Hello")
