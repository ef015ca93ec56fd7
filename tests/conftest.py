"""Shared pytest fixtures for voice agent tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any

import pytest

from voiceagent.api.deps import AgentServices, build_services
from voiceagent.config import Settings
from voiceagent.core.pipeline import PipelineConfig, TurnPipeline
from voiceagent.core.session import CallSession
from voiceagent.services.llm.protocol import ConversationTurn, ReasoningResult
from voiceagent.services.tools.registry import ToolRegistry
from voiceagent.services.tts.cache import SynthesisCache


def build_settings(**overrides) -> Settings:
    """Create a Settings object with safe test defaults."""
    base: dict[str, Any] = {
        "groq_api_key": "test-groq-key",
        "deepgram_api_key": "test-deepgram-key",
        "elevenlabs_api_key": "test-elevenlabs-key",
        "audio_window_frames": 4,
        "shutdown_grace_seconds": 1.0,
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    """Return a factory to build Settings with overrides."""
    return build_settings


@pytest.fixture
def settings(settings_factory: Callable[..., Settings]) -> Settings:
    """Default Settings fixture."""
    return settings_factory()


# =============================================================================
# Fake Ports
# =============================================================================


class FakeTranscriber:
    """Returns scripted transcripts in order, then the default."""

    def __init__(self) -> None:
        self.transcripts: list[str | Exception] = []
        self.default = ""
        self.calls: list[bytes] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def transcribe(self, audio: bytes) -> str:
        self.calls.append(audio)
        if self.gate is not None:
            await self.gate.wait()
        result = self.transcripts.pop(0) if self.transcripts else self.default
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True

    async def health_check(self) -> bool:
        return True


class FakeReasoner:
    """Returns scripted results in order and records every call."""

    def __init__(self) -> None:
        self.results: list[ReasoningResult | Exception] = []
        self.default = ReasoningResult(text="Sure, I can help with that.")
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def reason(
        self,
        message: str,
        history: list[ConversationTurn],
        *,
        is_tool_result: bool = False,
    ) -> ReasoningResult:
        self.calls.append({
            "message": message,
            "history": list(history),
            "is_tool_result": is_tool_result,
        })
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self) -> None:
        self.closed = True

    async def health_check(self) -> bool:
        return True


class FakeSynthesizer:
    """Derives audio bytes from the text so tests can match them."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.error: Exception | None = None
        self.closed = False

    async def synthesize(self, text: str) -> bytes:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return b"audio:" + text.encode("utf-8")

    async def close(self) -> None:
        self.closed = True

    async def health_check(self) -> bool:
        return True


class FakeSender:
    """Records outbound audio and marks in send order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self.error: Exception | None = None

    async def send_audio(self, audio: bytes) -> None:
        if self.error is not None:
            raise self.error
        self.events.append(("media", audio))

    async def send_mark(self, name: str) -> None:
        self.events.append(("mark", name))

    @property
    def audio(self) -> list[bytes]:
        return [payload for kind, payload in self.events if kind == "media"]


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def reasoner() -> FakeReasoner:
    return FakeReasoner()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def tools() -> ToolRegistry:
    return ToolRegistry(timeout=0.5)


@pytest.fixture
def synthesis_cache() -> SynthesisCache:
    return SynthesisCache(capacity=10)


@pytest.fixture
def pipeline(transcriber, reasoner, synthesizer, synthesis_cache, tools) -> TurnPipeline:
    """TurnPipeline wired to fake ports."""
    return TurnPipeline(
        transcriber,
        reasoner,
        synthesizer,
        synthesis_cache,
        tools=tools,
        config=PipelineConfig(),
    )


@pytest.fixture
def call_session() -> CallSession:
    return CallSession("CA-test-001", "MZ-test-001", window_frames=4)


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================


@pytest.fixture
def services(settings, transcriber, reasoner, synthesizer, tools) -> AgentServices:
    """Application services with fake upstream adapters."""
    return build_services(
        settings,
        transcriber=transcriber,
        reasoner=reasoner,
        synthesizer=synthesizer,
        tools=tools,
    )


@pytest.fixture
def test_client(services) -> Generator:
    """FastAPI TestClient backed by fake services."""
    from fastapi.testclient import TestClient

    from voiceagent.main import create_app

    app = create_app(services=services)

    with TestClient(app) as client:
        yield client
