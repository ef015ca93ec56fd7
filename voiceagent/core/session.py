"""Call session state."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from voiceagent.core.accumulator import DEFAULT_WINDOW_FRAMES, AudioChunkAccumulator
from voiceagent.core.memory import DEFAULT_MAX_TURNS, ConversationMemory
from voiceagent.logging_config import get_logger

logger: Any = get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle of a call connection."""

    AWAITING_START = "awaiting_start"  # Connected, no start event yet
    ACTIVE = "active"  # Turns are being processed
    TRANSFERRING = "transferring"  # Hand-off to a human announced
    CLOSED = "closed"  # Stream stopped or connection gone


@dataclass
class SessionMetrics:
    """Counters collected across a session's turns."""

    windows_processed: int = 0
    turns_completed: int = 0
    silent_windows: int = 0
    transfers: int = 0
    failures: int = 0
    tool_calls: int = 0
    cache_hits: int = 0
    frames_received: int = 0
    audio_bytes_sent: int = 0
    over_budget_turns: int = 0
    turn_latencies_ms: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "windows_processed": self.windows_processed,
            "turns_completed": self.turns_completed,
            "silent_windows": self.silent_windows,
            "transfers": self.transfers,
            "failures": self.failures,
            "tool_calls": self.tool_calls,
            "cache_hits": self.cache_hits,
            "frames_received": self.frames_received,
            "audio_bytes_sent": self.audio_bytes_sent,
            "over_budget_turns": self.over_budget_turns,
            "avg_turn_latency_ms": self._avg(self.turn_latencies_ms),
        }

    def _avg(self, values: list[float]) -> float:
        return sum(values) / len(values) if values else 0.0


class CallSession:
    """State for one live call connection.

    Created on the stream start event and closed on stop or disconnect.
    Owns its conversation memory and audio accumulator exclusively.
    """

    def __init__(
        self,
        call_id: str,
        stream_id: str,
        *,
        session_id: str | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        window_frames: int = DEFAULT_WINDOW_FRAMES,
    ) -> None:
        self._session_id = session_id or str(uuid.uuid4())
        self._call_id = call_id
        self._stream_id = stream_id
        self.memory = ConversationMemory(self._session_id, max_turns=max_turns)
        self.accumulator = AudioChunkAccumulator(window_frames=window_frames)
        self.metrics = SessionMetrics()
        self.state = SessionState.ACTIVE
        self.started_at = datetime.now(UTC)
        self._started_monotonic = time.monotonic()
        self._turn_lock = threading.Lock()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def call_id(self) -> str:
        return self._call_id

    @property
    def stream_id(self) -> str:
        return self._stream_id

    @property
    def is_processing(self) -> bool:
        """True while a turn pipeline run is in flight."""
        return self._turn_lock.locked()

    @property
    def is_closed(self) -> bool:
        return self.state == SessionState.CLOSED

    @property
    def age_ms(self) -> float:
        return (time.monotonic() - self._started_monotonic) * 1000

    def try_begin_turn(self) -> bool:
        """Atomically claim the session for a pipeline run.

        Returns False if a run is already in flight.
        """
        return self._turn_lock.acquire(blocking=False)

    def end_turn(self) -> None:
        """Release the claim taken by try_begin_turn."""
        if self._turn_lock.locked():
            self._turn_lock.release()

    def mark_transferring(self) -> None:
        if self.state == SessionState.CLOSED:
            return
        logger.info(f"Session {self._session_id} state: {self.state.value} -> transferring")
        self.state = SessionState.TRANSFERRING

    def close(self) -> bool:
        """Mark the session closed. Returns False if it already was."""
        if self.state == SessionState.CLOSED:
            return False
        logger.info(f"Session {self._session_id} state: {self.state.value} -> closed")
        self.state = SessionState.CLOSED
        self.accumulator.clear()
        return True

    def summary(self) -> dict[str, Any]:
        """Monitoring view of the session."""
        return {
            "session_id": self._session_id,
            "call_id": self._call_id,
            "stream_id": self._stream_id,
            "state": self.state.value,
            "duration_ms": int(self.age_ms),
            "turn_count": self.metrics.turns_completed,
            "message_count": len(self.memory),
            "is_processing": self.is_processing,
            "started_at": self.started_at.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"CallSession(session_id={self._session_id!r}, call_id={self._call_id!r}, "
            f"state={self.state.value!r})"
        )
