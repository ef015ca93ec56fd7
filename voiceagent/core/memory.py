"""Per-call conversation memory with a sliding window of turns."""

from __future__ import annotations

import time
from collections import deque
from datetime import UTC, datetime
from typing import Any

from voiceagent.logging_config import get_logger, preview
from voiceagent.services.llm.protocol import ConversationTurn, Role

logger: Any = get_logger(__name__)

DEFAULT_MAX_TURNS = 5


class ConversationMemory:
    """Bounded history of one call.

    Holds at most ``max_turns * 2`` entries (a user and an assistant
    message per turn). When full, the oldest entry is evicted first.
    ``max_turns`` is fixed for the lifetime of the memory.
    """

    def __init__(self, session_id: str, max_turns: int = DEFAULT_MAX_TURNS) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")

        self._session_id = session_id
        self._max_turns = max_turns
        self._entries: deque[ConversationTurn] = deque(maxlen=max_turns * 2)
        self._created_at = datetime.now(UTC)
        self._created_monotonic = time.monotonic()

        logger.debug(f"Conversation memory initialized for session {session_id} (max {max_turns} turns)")

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def max_turns(self) -> int:
        return self._max_turns

    @property
    def max_messages(self) -> int:
        return self._max_turns * 2

    @property
    def created_at(self) -> datetime:
        return self._created_at

    def add(self, role: Role | str, content: str) -> ConversationTurn:
        """Append a message, evicting the oldest when over capacity."""
        role = Role(role)
        if role not in (Role.USER, Role.ASSISTANT):
            raise ValueError(f"Memory only holds user and assistant messages, got {role.value!r}")
        turn = ConversationTurn(role=role, content=content)

        if len(self._entries) == self.max_messages:
            evicted = self._entries[0]
            logger.debug(f"Removed oldest message from memory: {preview(evicted.content)!r}")

        self._entries.append(turn)
        logger.debug(f"Added {turn.role.value} message to memory. Total messages: {len(self._entries)}")
        return turn

    def add_user_message(self, content: str) -> ConversationTurn:
        return self.add(Role.USER, content)

    def add_assistant_message(self, content: str) -> ConversationTurn:
        return self.add(Role.ASSISTANT, content)

    def history(self) -> list[ConversationTurn]:
        """Ordered snapshot; mutating it does not affect the memory."""
        return list(self._entries)

    def recent(self, count: int) -> list[ConversationTurn]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def last(self) -> ConversationTurn | None:
        return self._entries[-1] if self._entries else None

    def search(self, text: str) -> list[ConversationTurn]:
        """Case-insensitive substring search over message content."""
        needle = text.lower()
        return [turn for turn in self._entries if needle in turn.content.lower()]

    def stats(self) -> dict[str, Any]:
        user_messages = sum(1 for turn in self._entries if turn.role == Role.USER)
        assistant_messages = sum(1 for turn in self._entries if turn.role == Role.ASSISTANT)

        return {
            "session_id": self._session_id,
            "total_messages": len(self._entries),
            "user_messages": user_messages,
            "assistant_messages": assistant_messages,
            "turns": min(user_messages, assistant_messages),
            "max_turns": self._max_turns,
            "duration_ms": int((time.monotonic() - self._created_monotonic) * 1000),
            "created_at": self._created_at.isoformat(),
        }

    def formatted(self) -> str:
        """Numbered transcript for logs and the status API."""
        lines = []
        for index, turn in enumerate(self._entries, 1):
            speaker = "Caller" if turn.role == Role.USER else "Agent"
            lines.append(f"[{index}] {speaker}: {turn.content}")
        return "\n".join(lines)

    def export(self) -> dict[str, Any]:
        return {
            "session_id": self._session_id,
            "history": [turn.to_dict() for turn in self._entries],
            "stats": self.stats(),
        }

    def clear(self) -> None:
        previous = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared {previous} messages from session {self._session_id}")

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)
