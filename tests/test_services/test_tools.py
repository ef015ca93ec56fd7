"""Tests for the tool registry."""

import asyncio

import pytest

from voiceagent.services.tools.protocol import ToolResult
from voiceagent.services.tools.registry import ToolRegistry

ORDER_PARAMETERS = {
    "type": "object",
    "properties": {"order_id": {"type": "string"}},
    "required": ["order_id"],
}


async def check_order_status(order_id: str) -> dict:
    return {"order_id": order_id, "status": "shipped"}


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry(timeout=0.1)
    registry.register(
        "check_order_status",
        check_order_status,
        description="Look up an order",
        parameters=ORDER_PARAMETERS,
    )
    return registry


class TestToolResult:
    """Tests for ToolResult payloads."""

    def test_success_payload(self) -> None:
        """Test successful results expose data."""
        assert ToolResult.ok({"a": 1}).to_payload() == {"success": True, "data": {"a": 1}}

    def test_failure_payload(self) -> None:
        """Test failed results expose the error."""
        assert ToolResult.failure("nope").to_payload() == {"success": False, "error": "nope"}


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_definitions(self, registry: ToolRegistry) -> None:
        """Test definitions use the OpenAI function format."""
        definitions = registry.definitions()

        assert definitions == [
            {
                "type": "function",
                "function": {
                    "name": "check_order_status",
                    "description": "Look up an order",
                    "parameters": ORDER_PARAMETERS,
                },
            }
        ]

    def test_register_and_unregister(self, registry: ToolRegistry) -> None:
        """Test registry membership."""
        assert "check_order_status" in registry
        assert len(registry) == 1

        registry.unregister("check_order_status")

        assert "check_order_status" not in registry
        assert registry.tool_names == []

    def test_validate_missing_parameter(self, registry: ToolRegistry) -> None:
        """Test required parameters are enforced."""
        error = registry.validate("check_order_status", {"order_id": "  "})

        assert error is not None
        assert "order_id" in error

    @pytest.mark.asyncio
    async def test_execute_success(self, registry: ToolRegistry) -> None:
        """Test a valid call returns the handler's data."""
        result = await registry.execute("check_order_status", {"order_id": "42"})

        assert result.success is True
        assert result.data == {"order_id": "42", "status": "shipped"}
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_execute_unknown_tool(self, registry: ToolRegistry) -> None:
        """Test unknown tools fail without raising."""
        result = await registry.execute("cancel_order", {})

        assert result.success is False
        assert result.error == "Unknown tool: cancel_order"

    @pytest.mark.asyncio
    async def test_execute_missing_parameter(self, registry: ToolRegistry) -> None:
        """Test missing parameters fail without calling the handler."""
        result = await registry.execute("check_order_status", {})

        assert result.success is False
        assert "order_id" in result.error

    @pytest.mark.asyncio
    async def test_execute_handler_exception(self, registry: ToolRegistry) -> None:
        """Test handler exceptions become failed results."""

        async def broken() -> None:
            raise RuntimeError("backend unavailable")

        registry.register("broken", broken)

        result = await registry.execute("broken", {})

        assert result.success is False
        assert result.error == "backend unavailable"

    @pytest.mark.asyncio
    async def test_execute_timeout(self, registry: ToolRegistry) -> None:
        """Test slow tools time out."""

        async def slow() -> str:
            await asyncio.sleep(1.0)
            return "late"

        registry.register("slow", slow)

        result = await registry.execute("slow", {})

        assert result.success is False
        assert "timed out" in result.error
