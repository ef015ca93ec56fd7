"""Tool registry with validation and per-call timeouts."""

from __future__ import annotations

import asyncio
import time
from typing import Any

from voiceagent.logging_config import get_logger
from voiceagent.observability.metrics import record_tool_call
from voiceagent.services.tools.protocol import ToolHandler, ToolResult, ToolSpec

logger: Any = get_logger(__name__)

DEFAULT_TOOL_TIMEOUT = 3.0


class ToolRegistry:
    """Registry of callable tools.

    Every failure mode (unknown tool, missing parameters, exception,
    timeout) comes back as a failed ToolResult so a single turn never
    aborts because of a tool.
    """

    def __init__(self, timeout: float = DEFAULT_TOOL_TIMEOUT) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    def register(
        self,
        name: str,
        handler: ToolHandler,
        *,
        description: str = "",
        parameters: dict[str, Any] | None = None,
    ) -> ToolSpec:
        """Register a coroutine function as a tool."""
        spec = ToolSpec(
            name=name,
            description=description,
            handler=handler,
            parameters=parameters or {"type": "object", "properties": {}},
        )
        self._tools[name] = spec
        logger.debug(f"Registered tool {name}")
        return spec

    def unregister(self, name: str) -> None:
        """Unregister a tool by name."""
        self._tools.pop(name, None)

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def definitions(self) -> list[dict[str, Any]]:
        """All tool definitions in OpenAI function format."""
        return [spec.to_schema() for spec in self._tools.values()]

    def validate(self, name: str, arguments: Any) -> str | None:
        """Check required parameters before execution.

        Returns:
            An error message, or None when the call is valid.
        """
        spec = self._tools.get(name)
        if spec is None:
            return f"Unknown tool: {name}"

        if not isinstance(arguments, dict):
            return f"Invalid arguments for tool '{name}'"

        required = spec.parameters.get("required")
        if not isinstance(required, list):
            return None

        missing = []
        for key in required:
            value = arguments.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(key)

        if missing:
            return f"Missing required parameter(s) for '{name}': {', '.join(sorted(missing))}"
        return None

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name, bounded by the registry timeout."""
        logger.info(f"Executing tool: {name}")

        validation_error = self.validate(name, arguments)
        if validation_error:
            logger.warning(f"Tool {name} rejected: {validation_error}")
            record_tool_call(name, "invalid")
            return ToolResult.failure(validation_error)

        spec = self._tools[name]
        start_time = time.perf_counter()

        try:
            data = await asyncio.wait_for(spec.handler(**arguments), timeout=self._timeout)

        except TimeoutError:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(f"Tool {name} timed out after {self._timeout}s")
            record_tool_call(name, "timeout")
            return ToolResult.failure(
                f"Tool '{name}' timed out after {self._timeout:g}s",
                duration_ms=duration_ms,
            )

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(f"Tool {name} failed: {e}")
            record_tool_call(name, "error")
            return ToolResult.failure(str(e) or type(e).__name__, duration_ms=duration_ms)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(f"Tool {name} completed in {duration_ms:.1f}ms")
        record_tool_call(name, "success")
        return ToolResult.ok(data, duration_ms=duration_ms)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
