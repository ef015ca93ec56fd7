"""Tool execution protocol and data types."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

ToolHandler = Callable[..., Awaitable[Any]]


@dataclass
class ToolResult:
    """Outcome of a single tool invocation.

    Failures are data: they are handed back to the model, never raised.
    """

    success: bool
    data: Any = None
    error: str | None = None
    duration_ms: float = 0.0

    @classmethod
    def ok(cls, data: Any, duration_ms: float = 0.0) -> ToolResult:
        return cls(success=True, data=data, duration_ms=duration_ms)

    @classmethod
    def failure(cls, error: str, duration_ms: float = 0.0) -> ToolResult:
        return cls(success=False, error=error, duration_ms=duration_ms)

    def to_payload(self) -> dict[str, Any]:
        """JSON-serialisable view passed to the reasoning service."""
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}


@dataclass(frozen=True)
class ToolSpec:
    """A registered tool: schema plus the coroutine that runs it."""

    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_schema(self) -> dict[str, Any]:
        """Tool definition in OpenAI function format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolExecutor(Protocol):
    """Protocol for tool execution. Implementations never raise."""

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Run a tool and report its outcome."""
        ...

    def definitions(self) -> list[dict[str, Any]]:
        """Tool definitions exposed to the reasoning service."""
        ...
