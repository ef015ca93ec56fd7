"""Tests for TurnPipeline orchestrator."""

import asyncio
import json

import pytest

from voiceagent.core.pipeline import (
    AUDIO_COMPLETE_MARK,
    FALLBACK_MESSAGE,
    TRANSFER_MESSAGE,
    PipelineConfig,
    TurnOutcome,
    TurnPipeline,
    should_transfer,
)
from voiceagent.core.session import SessionState
from voiceagent.services.llm.exceptions import ReasoningError
from voiceagent.services.llm.protocol import ReasoningResult, Role, ToolCall
from voiceagent.services.stt.exceptions import TranscriptionError
from voiceagent.services.tts.exceptions import SynthesisError


class TestShouldTransfer:
    """Tests for transfer phrase detection."""

    @pytest.mark.parametrize(
        "transcript",
        [
            "I'd like to speak to a human agent",
            "Can I TALK TO HUMAN please",
            "is there a real person there?",
            "Transfer me now",
            "customer service",
        ],
    )
    def test_transfer_phrases(self, transcript: str) -> None:
        """Test transfer phrases match case-insensitively."""
        assert should_transfer(transcript) is True

    def test_regular_request(self) -> None:
        """Test ordinary requests do not transfer."""
        assert should_transfer("Where is my order?") is False


class TestPipelineConfig:
    """Tests for PipelineConfig dataclass."""

    def test_default_config(self) -> None:
        """Test default configuration values."""
        config = PipelineConfig()

        assert config.latency_budget_ms == 500.0
        assert config.transfer_message == TRANSFER_MESSAGE
        assert config.fallback_message == FALLBACK_MESSAGE

    def test_from_settings(self, settings_factory) -> None:
        """Test creating config from settings."""
        config = PipelineConfig.from_settings(settings_factory(latency_budget_ms=250))

        assert config.latency_budget_ms == 250.0


class TestTurnPipelineRun:
    """Tests for processing a single window."""

    @pytest.mark.asyncio
    async def test_silence_is_ignored(self, pipeline, call_session, transcriber, reasoner, sender) -> None:
        """Test empty transcript produces no reply and no memory change."""
        transcriber.default = "   "

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.SILENCE
        assert reasoner.calls == []
        assert sender.events == []
        assert call_session.memory.is_empty
        assert call_session.metrics.silent_windows == 1

    @pytest.mark.asyncio
    async def test_reply_flow(self, pipeline, call_session, transcriber, reasoner, synthesizer, sender) -> None:
        """Test transcript → reasoning → memory → audio + mark."""
        transcriber.default = "Where is my order?"
        reasoner.default = ReasoningResult(text="Could you give me your order number?")

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.REPLIED
        assert result.reply == "Could you give me your order number?"

        history = call_session.memory.history()
        assert [(turn.role, turn.content) for turn in history] == [
            (Role.USER, "Where is my order?"),
            (Role.ASSISTANT, "Could you give me your order number?"),
        ]

        assert reasoner.calls[0]["message"] == "Where is my order?"
        assert reasoner.calls[0]["is_tool_result"] is False
        assert synthesizer.calls == ["Could you give me your order number?"]
        assert sender.events == [
            ("media", b"audio:Could you give me your order number?"),
            ("mark", AUDIO_COMPLETE_MARK),
        ]
        assert call_session.metrics.turns_completed == 1

    @pytest.mark.asyncio
    async def test_transfer_skips_reasoning(self, pipeline, call_session, transcriber, reasoner, sender) -> None:
        """Test transfer request announces hand-off without reasoning."""
        transcriber.default = "I'd like to speak to a human agent"

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.TRANSFERRED
        assert reasoner.calls == []
        assert call_session.memory.is_empty
        assert call_session.state == SessionState.TRANSFERRING
        assert sender.events == [
            ("media", b"audio:" + TRANSFER_MESSAGE.encode()),
            ("mark", AUDIO_COMPLETE_MARK),
        ]

    @pytest.mark.asyncio
    async def test_single_tool_call(self, pipeline, call_session, transcriber, reasoner, tools, sender) -> None:
        """Test one tool call runs once and its follow-up becomes the reply."""
        executed: list[str] = []

        async def check_order_status(order_id: str) -> dict:
            executed.append(order_id)
            return {"order_id": order_id, "status": "shipped"}

        tools.register(
            "check_order_status",
            check_order_status,
            description="Look up an order",
            parameters={
                "type": "object",
                "properties": {"order_id": {"type": "string"}},
                "required": ["order_id"],
            },
        )
        transcriber.default = "What's the status of order 123?"
        reasoner.results = [
            ReasoningResult(
                text="",
                tool_calls=[ToolCall(name="check_order_status", arguments={"order_id": "123"})],
            ),
            ReasoningResult(text="Your order 123 has shipped."),
        ]

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.REPLIED
        assert executed == ["123"]
        assert len(reasoner.calls) == 2

        follow_up = reasoner.calls[1]
        assert follow_up["is_tool_result"] is True
        assert follow_up["history"] == reasoner.calls[0]["history"]
        assert follow_up["message"].startswith('Tool "check_order_status" returned: ')
        payload = json.loads(follow_up["message"].split("returned: ", 1)[1])
        assert payload == {"success": True, "data": {"order_id": "123", "status": "shipped"}}

        assert call_session.memory.last().content == "Your order 123 has shipped."
        assert call_session.metrics.tool_calls == 1

    @pytest.mark.asyncio
    async def test_tool_failure_is_reported_to_model(
        self, pipeline, call_session, transcriber, reasoner, sender
    ) -> None:
        """Test an unknown tool becomes a failed result, not an abort."""
        transcriber.default = "Book me in for Tuesday"
        reasoner.results = [
            ReasoningResult(tool_calls=[ToolCall(name="schedule_callback", arguments={})]),
            ReasoningResult(text="Sorry, I can't book that right now."),
        ]

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.REPLIED
        payload = json.loads(reasoner.calls[1]["message"].split("returned: ", 1)[1])
        assert payload["success"] is False
        assert "Unknown tool" in payload["error"]
        assert sender.audio == [b"audio:Sorry, I can't book that right now."]

    @pytest.mark.asyncio
    async def test_multiple_tool_calls_keep_last_reply(
        self, pipeline, call_session, transcriber, reasoner, tools, sender
    ) -> None:
        """Test tool calls run in order and only the last follow-up is spoken."""
        order: list[str] = []

        async def first() -> str:
            order.append("first")
            return "one"

        async def second() -> str:
            order.append("second")
            return "two"

        tools.register("first", first)
        tools.register("second", second)
        transcriber.default = "Do both things"
        reasoner.results = [
            ReasoningResult(tool_calls=[ToolCall(name="first"), ToolCall(name="second")]),
            ReasoningResult(text="First is done."),
            ReasoningResult(text="Both are done."),
        ]

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert order == ["first", "second"]
        assert len(reasoner.calls) == 3
        assert result.reply == "Both are done."
        assert sender.audio == [b"audio:Both are done."]

        second_history = reasoner.calls[2]["history"]
        assert second_history[-2].role == Role.SYSTEM
        assert second_history[-2].content.startswith('Tool "first" returned: ')
        assert second_history[-1].content == "First is done."

    @pytest.mark.asyncio
    async def test_transcription_failure_sends_fallback(
        self, pipeline, call_session, transcriber, reasoner, sender
    ) -> None:
        """Test STT failure apologises and leaves memory untouched."""
        transcriber.transcripts = [TranscriptionError("Deepgram unavailable")]

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.FAILED
        assert "Deepgram unavailable" in result.error
        assert reasoner.calls == []
        assert call_session.memory.is_empty
        assert sender.events == [
            ("media", b"audio:" + FALLBACK_MESSAGE.encode()),
            ("mark", AUDIO_COMPLETE_MARK),
        ]
        assert call_session.state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_reasoning_failure_sends_fallback(
        self, pipeline, call_session, transcriber, reasoner, sender
    ) -> None:
        """Test reasoning failure keeps the caller's turn and apologises."""
        transcriber.default = "Hello?"
        reasoner.results = [ReasoningError("Groq down")]

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.FAILED
        history = call_session.memory.history()
        assert len(history) == 1
        assert history[0].role == Role.USER
        assert sender.audio == [b"audio:" + FALLBACK_MESSAGE.encode()]
        assert call_session.metrics.failures == 1

    @pytest.mark.asyncio
    async def test_empty_reply_sends_fallback(self, pipeline, call_session, transcriber, reasoner, sender) -> None:
        """Test a blank model reply is treated as a failure."""
        transcriber.default = "Hello?"
        reasoner.default = ReasoningResult(text="  ")

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.FAILED
        assert sender.audio == [b"audio:" + FALLBACK_MESSAGE.encode()]

    @pytest.mark.asyncio
    async def test_fallback_failure_is_swallowed(
        self, pipeline, call_session, transcriber, synthesizer, sender
    ) -> None:
        """Test a failing fallback does not raise out of the run."""
        transcriber.default = "Hello?"
        synthesizer.error = SynthesisError("ElevenLabs down")

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.FAILED
        assert sender.events == []
        assert len(synthesizer.calls) == 2
        assert call_session.state == SessionState.ACTIVE

    @pytest.mark.asyncio
    async def test_cached_reply_skips_synthesis(
        self, pipeline, call_session, transcriber, reasoner, synthesizer, synthesis_cache, sender
    ) -> None:
        """Test a cached reply is sent without calling the synthesizer."""
        synthesis_cache.put("Great, see you then!", b"cached-audio")
        transcriber.default = "See you Tuesday"
        reasoner.default = ReasoningResult(text="Great, see you then!")

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.cache_hit is True
        assert synthesizer.calls == []
        assert sender.audio == [b"cached-audio"]
        assert call_session.metrics.cache_hits == 1

    @pytest.mark.asyncio
    async def test_synthesized_reply_is_cached(
        self, pipeline, call_session, transcriber, reasoner, synthesis_cache, sender
    ) -> None:
        """Test a cache miss stores the synthesized audio."""
        transcriber.default = "Hi"
        reasoner.default = ReasoningResult(text="Hi there!")

        await pipeline.run(call_session, b"\x00" * 640, sender)

        assert "Hi there!" in synthesis_cache

    @pytest.mark.asyncio
    async def test_memory_bounded_after_many_turns(
        self, pipeline, call_session, transcriber, reasoner, sender
    ) -> None:
        """Test completed turns leave alternating entries up to the cap."""
        for i in range(7):
            transcriber.transcripts = [f"question {i}"]
            reasoner.results = [ReasoningResult(text=f"answer {i}")]
            await pipeline.run(call_session, b"\x00" * 640, sender)

        history = call_session.memory.history()
        assert len(history) == call_session.memory.max_messages
        assert [turn.role for turn in history] == [Role.USER, Role.ASSISTANT] * call_session.memory.max_turns
        assert history[-1].content == "answer 6"

    @pytest.mark.asyncio
    async def test_over_budget_is_counted(
        self, transcriber, reasoner, synthesizer, synthesis_cache, tools, call_session, sender
    ) -> None:
        """Test turns over the latency budget are counted, not cut short."""
        pipeline = TurnPipeline(
            transcriber,
            reasoner,
            synthesizer,
            synthesis_cache,
            tools=tools,
            config=PipelineConfig(latency_budget_ms=0.0),
        )
        transcriber.default = "Hi"

        result = await pipeline.run(call_session, b"\x00" * 640, sender)

        assert result.outcome == TurnOutcome.REPLIED
        assert call_session.metrics.over_budget_turns == 1
        assert len(sender.audio) == 1


class TestTurnDispatch:
    """Tests for claiming and dispatching windows."""

    @pytest.mark.asyncio
    async def test_dispatch_requires_full_window(self, pipeline, call_session, sender) -> None:
        """Test no run starts before a window is ready."""
        call_session.accumulator.push(b"\x00")

        assert pipeline.try_dispatch(call_session, sender) is None
        assert call_session.is_processing is False

    @pytest.mark.asyncio
    async def test_at_most_one_run_in_flight(self, pipeline, call_session, transcriber, sender) -> None:
        """Test frames arriving mid-run wait for the next window."""
        transcriber.gate = asyncio.Event()
        transcriber.default = "Hi"

        for i in range(4):
            call_session.accumulator.push(bytes([i]))
        first = pipeline.try_dispatch(call_session, sender)
        assert first is not None
        assert call_session.is_processing is True

        for i in range(4, 8):
            call_session.accumulator.push(bytes([i]))
        assert pipeline.try_dispatch(call_session, sender) is None
        assert call_session.accumulator.frame_count == 4

        transcriber.gate.set()
        await first
        assert call_session.is_processing is False

        second = pipeline.try_dispatch(call_session, sender)
        assert second is not None
        await second

        assert transcriber.calls == [bytes([0, 1, 2, 3]), bytes([4, 5, 6, 7])]

    @pytest.mark.asyncio
    async def test_claim_released_after_failure(self, pipeline, call_session, transcriber, sender) -> None:
        """Test the session is released even when the turn fails."""
        transcriber.transcripts = [TranscriptionError("boom")]
        for _ in range(4):
            call_session.accumulator.push(b"\x00")

        task = pipeline.try_dispatch(call_session, sender)
        result = await task

        assert result.outcome == TurnOutcome.FAILED
        assert call_session.is_processing is False

    @pytest.mark.asyncio
    async def test_no_dispatch_while_transferring(self, pipeline, call_session, sender) -> None:
        """Test windows are not processed once a transfer is under way."""
        call_session.mark_transferring()
        for _ in range(4):
            call_session.accumulator.push(b"\x00")

        assert pipeline.try_dispatch(call_session, sender) is None

    @pytest.mark.asyncio
    async def test_latency_counts_from_full_window(self, pipeline, call_session, transcriber, sender) -> None:
        """Test time a full window spends waiting for dispatch counts toward latency."""
        transcriber.default = "Hi"
        for _ in range(4):
            call_session.accumulator.push(b"\x00")

        await asyncio.sleep(0.05)
        result = await pipeline.try_dispatch(call_session, sender)

        assert result.total_ms >= 50.0
