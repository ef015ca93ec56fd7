"""Shared service container and FastAPI dependencies.

One AgentServices instance is built per application and stored on
``app.state.services``. Routes and the media stream handler receive it
through ``get_services`` instead of module-level globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request

from voiceagent.config import Settings, get_settings
from voiceagent.core.pipeline import PipelineConfig, TurnPipeline
from voiceagent.core.registry import SessionRegistry
from voiceagent.logging_config import get_logger
from voiceagent.services.llm.groq import GroqReasoner
from voiceagent.services.llm.protocol import ReasoningService
from voiceagent.services.stt.deepgram import DeepgramTranscriber
from voiceagent.services.stt.protocol import TranscriptionService
from voiceagent.services.tools.registry import ToolRegistry
from voiceagent.services.tts.cache import SynthesisCache
from voiceagent.services.tts.elevenlabs import ElevenLabsSynthesizer
from voiceagent.services.tts.protocol import SynthesisService

logger: Any = get_logger(__name__)


@dataclass
class AgentServices:
    """Everything a call needs, shared across connections."""

    settings: Settings
    registry: SessionRegistry
    cache: SynthesisCache
    tools: ToolRegistry
    transcriber: TranscriptionService
    reasoner: ReasoningService
    synthesizer: SynthesisService
    pipeline: TurnPipeline

    async def close(self) -> None:
        """Close sessions and upstream clients (for shutdown)."""
        self.registry.close_all()
        for name, service in (
            ("transcriber", self.transcriber),
            ("reasoner", self.reasoner),
            ("synthesizer", self.synthesizer),
        ):
            try:
                await service.close()
            except Exception as e:
                logger.error(f"Error closing {name}: {e}")


def build_services(
    settings: Settings | None = None,
    *,
    transcriber: TranscriptionService | None = None,
    reasoner: ReasoningService | None = None,
    synthesizer: SynthesisService | None = None,
    tools: ToolRegistry | None = None,
) -> AgentServices:
    """Wire the production adapters, allowing any port to be replaced."""
    settings = settings or get_settings()
    tools = tools if tools is not None else ToolRegistry(timeout=settings.tool_timeout_seconds)
    cache = SynthesisCache(capacity=settings.synthesis_cache_size)

    transcriber = transcriber or DeepgramTranscriber(settings)
    reasoner = reasoner or GroqReasoner(settings, tools=tools.definitions())
    synthesizer = synthesizer or ElevenLabsSynthesizer(settings)

    pipeline = TurnPipeline(
        transcriber,
        reasoner,
        synthesizer,
        cache,
        tools=tools,
        config=PipelineConfig.from_settings(settings),
    )

    return AgentServices(
        settings=settings,
        registry=SessionRegistry(),
        cache=cache,
        tools=tools,
        transcriber=transcriber,
        reasoner=reasoner,
        synthesizer=synthesizer,
        pipeline=pipeline,
    )


def get_services(request: Request) -> AgentServices:
    """FastAPI dependency returning the application's services."""
    return request.app.state.services
