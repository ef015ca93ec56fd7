"""Turn pipeline orchestrator for real-time call handling.

Converts one accumulated audio window into one conversational exchange:
- Audio window → STT → transfer check → memory
- Reasoning → sequential tool loop → memory
- Cached TTS → media + completion mark back to the caller

Latency is measured from window-ready to emit-complete and only logged;
failures fall back to a fixed apology so the call always continues.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from voiceagent.config import Settings, get_settings
from voiceagent.core.session import CallSession, SessionState
from voiceagent.logging_config import get_logger, preview
from voiceagent.observability.metrics import record_turn_metrics
from voiceagent.prompts import TOOL_RESULT_TEMPLATE
from voiceagent.services.llm.exceptions import ReasoningError
from voiceagent.services.llm.protocol import ConversationTurn, ReasoningService, Role
from voiceagent.services.stt.protocol import TranscriptionService
from voiceagent.services.tools.protocol import ToolExecutor
from voiceagent.services.tools.registry import ToolRegistry
from voiceagent.services.tts.cache import SynthesisCache
from voiceagent.services.tts.protocol import SynthesisService

logger: Any = get_logger(__name__)

TRANSFER_PHRASES: tuple[str, ...] = (
    "speak to agent",
    "talk to human",
    "human agent",
    "real person",
    "speak to someone",
    "transfer me",
    "customer service",
)
TRANSFER_MESSAGE = "I'll transfer you to a human agent right away. Please hold."
FALLBACK_MESSAGE = "I'm having trouble processing that, could you repeat?"
AUDIO_COMPLETE_MARK = "audio_complete"
LATENCY_BUDGET_MS = 500.0


class TurnOutcome(str, Enum):
    """How a processed window ended."""

    REPLIED = "replied"
    SILENCE = "silence"
    TRANSFERRED = "transferred"
    FAILED = "failed"


class AudioSender(Protocol):
    """Protocol for sending audio back to the caller."""

    async def send_audio(self, audio: bytes) -> None:
        """Send synthesized audio to the caller."""
        ...

    async def send_mark(self, name: str) -> None:
        """Send a playback marker after the audio."""
        ...


@dataclass
class PipelineConfig:
    """Configuration for the turn pipeline."""

    latency_budget_ms: float = LATENCY_BUDGET_MS
    transfer_phrases: tuple[str, ...] = TRANSFER_PHRASES
    transfer_message: str = TRANSFER_MESSAGE
    fallback_message: str = FALLBACK_MESSAGE

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> PipelineConfig:
        """Create config from application settings."""
        s = settings or get_settings()
        return cls(latency_budget_ms=s.latency_budget_ms)


@dataclass
class TurnResult:
    """What happened to one audio window."""

    outcome: TurnOutcome
    transcript: str = ""
    reply: str = ""
    tool_calls: int = 0
    cache_hit: bool = False
    total_ms: float = 0.0
    stt_ms: float | None = None
    reasoning_ms: float | None = None
    tts_ms: float | None = None
    error: str | None = None


def should_transfer(transcript: str, phrases: tuple[str, ...] = TRANSFER_PHRASES) -> bool:
    """Case-insensitive check for a request to reach a human."""
    lowered = transcript.lower()
    return any(phrase in lowered for phrase in phrases)


class TurnPipeline:
    """Orchestrates STT → reasoning → tools → TTS for one window at a time.

    A single pipeline is shared by all calls; per-call state lives on the
    CallSession passed to each run. At most one run per session is in
    flight, enforced by ``CallSession.try_begin_turn``.
    """

    def __init__(
        self,
        transcriber: TranscriptionService,
        reasoner: ReasoningService,
        synthesizer: SynthesisService,
        cache: SynthesisCache,
        tools: ToolExecutor | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self._transcriber = transcriber
        self._reasoner = reasoner
        self._synthesizer = synthesizer
        self._cache = cache
        self._tools = tools if tools is not None else ToolRegistry()
        self._config = config or PipelineConfig()

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @property
    def cache(self) -> SynthesisCache:
        return self._cache

    def try_dispatch(self, session: CallSession, sender: AudioSender) -> asyncio.Task[TurnResult] | None:
        """Start a run if a window is ready and no run is in flight.

        The window is drained only after the session has been claimed, so
        frames arriving mid-run keep accumulating for the next window.
        """
        if session.state != SessionState.ACTIVE:
            return None
        if not session.accumulator.is_window_ready():
            return None
        if not session.try_begin_turn():
            return None

        window_ready_at = session.accumulator.ready_at
        if window_ready_at is None:
            window_ready_at = time.perf_counter()
        window = session.accumulator.drain()
        return asyncio.create_task(
            self._run_claimed(session, window, sender, window_ready_at),
            name=f"turn-{session.session_id}",
        )

    async def _run_claimed(
        self,
        session: CallSession,
        window: bytes,
        sender: AudioSender,
        window_ready_at: float,
    ) -> TurnResult:
        try:
            return await self.run(session, window, sender, window_ready_at=window_ready_at)
        finally:
            session.end_turn()

    async def run(
        self,
        session: CallSession,
        window: bytes,
        sender: AudioSender,
        *,
        window_ready_at: float | None = None,
    ) -> TurnResult:
        """Process one audio window end to end.

        Never raises for upstream failures: they are logged and answered
        with the fallback apology.
        """
        start = window_ready_at if window_ready_at is not None else time.perf_counter()
        result = TurnResult(outcome=TurnOutcome.FAILED)
        session.metrics.windows_processed += 1
        stage = "transcribe"

        try:
            # 1. Speech to text
            stt_start = time.perf_counter()
            transcript = await self._transcriber.transcribe(window)
            result.stt_ms = (time.perf_counter() - stt_start) * 1000

            if not transcript or not transcript.strip():
                session.metrics.silent_windows += 1
                result.outcome = TurnOutcome.SILENCE
                return self._finish(session, result, start, emitted=False)

            transcript = transcript.strip()
            result.transcript = transcript
            logger.info(f"Session {session.session_id} caller said: {preview(transcript)!r}")

            # 2. Transfer check, before any reasoning or memory change
            if should_transfer(transcript, self._config.transfer_phrases):
                stage = "transfer"
                logger.info(f"Transferring session {session.session_id} to a human agent")
                result.cache_hit = await self.speak(self._config.transfer_message, sender, session)
                session.mark_transferring()
                session.metrics.transfers += 1
                result.outcome = TurnOutcome.TRANSFERRED
                result.reply = self._config.transfer_message
                return self._finish(session, result, start)

            # 3. Record the caller's turn
            session.memory.add_user_message(transcript)

            # 4-5. Reasoning with sequential tool loop
            stage = "reason"
            reasoning_start = time.perf_counter()
            reply, tool_calls = await self._reason_with_tools(session, transcript)
            result.reasoning_ms = (time.perf_counter() - reasoning_start) * 1000
            result.tool_calls = tool_calls
            logger.info(f"Session {session.session_id} agent reply: {preview(reply)!r}")

            # 6. Record the reply
            session.memory.add_assistant_message(reply)
            result.reply = reply

            # 7-8. Synthesize through the cache and emit
            stage = "synthesize"
            tts_start = time.perf_counter()
            result.cache_hit = await self.speak(reply, sender, session)
            if not result.cache_hit:
                result.tts_ms = (time.perf_counter() - tts_start) * 1000

            session.metrics.turns_completed += 1
            result.outcome = TurnOutcome.REPLIED
            return self._finish(session, result, start)

        except Exception as e:
            logger.error(f"Turn failed for session {session.session_id} during {stage}: {e}")
            session.metrics.failures += 1
            result.outcome = TurnOutcome.FAILED
            result.error = f"{type(e).__name__}: {e}"
            await self._send_fallback(sender, session)
            return self._finish(session, result, start)

    async def _reason_with_tools(self, session: CallSession, transcript: str) -> tuple[str, int]:
        """Run reasoning and the tool loop; return final reply and tool count.

        Tool calls run one at a time in the order received. Each result is
        fed back as a synthetic tool message on top of the same history;
        only the last follow-up's text is kept as the reply.
        """
        history = session.memory.history()
        response = await self._reasoner.reason(transcript, history, is_tool_result=False)
        reply = response.text

        if response.tool_calls:
            logger.info(f"Executing {len(response.tool_calls)} tool call(s)")

        context: list[ConversationTurn] = list(history)
        for call in response.tool_calls:
            tool_result = await self._tools.execute(call.name, call.arguments)
            session.metrics.tool_calls += 1

            message = TOOL_RESULT_TEMPLATE.format(
                name=call.name,
                payload=json.dumps(tool_result.to_payload(), default=str),
            )
            follow_up = await self._reasoner.reason(message, list(context), is_tool_result=True)
            reply = follow_up.text

            context.append(ConversationTurn(role=Role.SYSTEM, content=message))
            if follow_up.text:
                context.append(ConversationTurn(role=Role.ASSISTANT, content=follow_up.text))

        reply = reply.strip()
        if not reply:
            raise ReasoningError("Reasoning returned an empty reply")

        return reply, len(response.tool_calls)

    async def speak(self, text: str, sender: AudioSender, session: CallSession | None = None) -> bool:
        """Synthesize text (cache first) and send it with a completion mark.

        Returns:
            True if the audio came from the cache.
        """
        audio = self._cache.get(text)
        cache_hit = audio is not None

        if audio is None:
            audio = await self._synthesizer.synthesize(text)
            self._cache.put(text, audio)
        elif session is not None:
            session.metrics.cache_hits += 1

        await sender.send_audio(audio)
        await sender.send_mark(AUDIO_COMPLETE_MARK)

        if session is not None:
            session.metrics.audio_bytes_sent += len(audio)
        return cache_hit

    async def _send_fallback(self, sender: AudioSender, session: CallSession) -> None:
        try:
            await self.speak(self._config.fallback_message, sender, session)
        except Exception as e:
            logger.error(f"Failed to send fallback audio for session {session.session_id}: {e}")

    def _finish(
        self,
        session: CallSession,
        result: TurnResult,
        start: float,
        *,
        emitted: bool = True,
    ) -> TurnResult:
        result.total_ms = (time.perf_counter() - start) * 1000
        over_budget = emitted and result.total_ms > self._config.latency_budget_ms

        if emitted:
            session.metrics.turn_latencies_ms.append(result.total_ms)
            logger.info(f"Total processing time: {result.total_ms:.0f}ms ({result.outcome.value})")

        if over_budget:
            session.metrics.over_budget_turns += 1
            logger.warning(
                f"Latency exceeds target ({self._config.latency_budget_ms:.0f}ms): "
                f"{result.total_ms:.0f}ms for session {session.session_id}"
            )

        record_turn_metrics(
            result.outcome.value,
            total_ms=result.total_ms if emitted else None,
            stt_ms=result.stt_ms,
            reasoning_ms=result.reasoning_ms,
            tts_ms=result.tts_ms,
            over_budget=over_budget,
        )
        return result
