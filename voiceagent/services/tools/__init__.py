"""Tool execution for mid-turn model tool calls."""

from voiceagent.services.tools.protocol import ToolExecutor, ToolHandler, ToolResult, ToolSpec
from voiceagent.services.tools.registry import DEFAULT_TOOL_TIMEOUT, ToolRegistry

__all__ = [
    "DEFAULT_TOOL_TIMEOUT",
    "ToolExecutor",
    "ToolHandler",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
]
