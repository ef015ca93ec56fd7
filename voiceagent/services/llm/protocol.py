"""Reasoning service protocol and data types."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol


class Role(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class ConversationTurn:
    """A single entry in conversation memory."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, str]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass
class ReasoningResult:
    """Reply text and requested tool calls from one reasoning call."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    model: str = ""
    latency_ms: float | None = None
    total_tokens: int | None = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class ReasoningService(Protocol):
    """Protocol for reasoning (chat completion) implementations."""

    async def reason(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        *,
        is_tool_result: bool = False,
    ) -> ReasoningResult:
        """Get a reply for the message given the conversation history.

        Args:
            message: Caller transcript, or a tool result when is_tool_result
            history: Snapshot of conversation memory
            is_tool_result: Whether message carries a tool result

        Raises:
            ReasoningError: On any upstream failure
        """
        ...

    async def close(self) -> None:
        """Close any open connections and clean up resources."""
        ...

    async def health_check(self) -> bool:
        """Check if the service is operational."""
        ...
