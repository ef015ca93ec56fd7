"""Core call orchestration components.

This module provides the per-call machinery:
- AudioChunkAccumulator: Buffers inbound frames into processing windows
- ConversationMemory: Bounded per-call history
- CallSession / SessionRegistry: Per-call state and the process-wide index
- TurnPipeline: Orchestrates STT → reasoning → tools → TTS for one window
"""

from voiceagent.core.accumulator import AudioChunkAccumulator
from voiceagent.core.memory import ConversationMemory
from voiceagent.core.pipeline import (
    AUDIO_COMPLETE_MARK,
    FALLBACK_MESSAGE,
    TRANSFER_MESSAGE,
    TRANSFER_PHRASES,
    AudioSender,
    PipelineConfig,
    TurnOutcome,
    TurnPipeline,
    TurnResult,
    should_transfer,
)
from voiceagent.core.registry import SessionRegistry
from voiceagent.core.session import CallSession, SessionMetrics, SessionState

__all__ = [
    # Session management
    "CallSession",
    "SessionMetrics",
    "SessionRegistry",
    "SessionState",
    "ConversationMemory",
    "AudioChunkAccumulator",
    # Pipeline
    "TurnPipeline",
    "TurnOutcome",
    "TurnResult",
    "PipelineConfig",
    "AudioSender",
    "should_transfer",
    "TRANSFER_PHRASES",
    "TRANSFER_MESSAGE",
    "FALLBACK_MESSAGE",
    "AUDIO_COMPLETE_MARK",
]
