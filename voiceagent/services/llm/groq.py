"""Groq reasoning service implementation with tool calling."""

from __future__ import annotations

import json
import time
from collections.abc import Sequence
from typing import Any

import groq
from groq import AsyncGroq

from voiceagent.config import Settings, get_settings
from voiceagent.logging_config import get_logger
from voiceagent.prompts import build_system_prompt
from voiceagent.services.llm.exceptions import (
    ReasoningAuthenticationError,
    ReasoningConnectionError,
    ReasoningError,
    ReasoningRateLimitError,
)
from voiceagent.services.llm.protocol import (
    ConversationTurn,
    ReasoningResult,
    Role,
    ToolCall,
)

logger: Any = get_logger(__name__)


class GroqReasoner:
    """Groq chat completion service exposing tool definitions to the model."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model or self._settings.groq_model
        self._tools = tools or []
        self._system_prompt = build_system_prompt(self._settings.system_prompt)
        self._client: AsyncGroq | None = None

    @property
    def client(self) -> AsyncGroq:
        """Lazy initialization of AsyncGroq client."""
        if self._client is None:
            self._client = AsyncGroq(
                api_key=self._settings.groq_api_key.get_secret_value(),
                timeout=30.0,
                max_retries=0,
            )
        return self._client

    async def reason(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        *,
        is_tool_result: bool = False,
    ) -> ReasoningResult:
        """Run one chat completion.

        Tools stay available for caller messages. Follow-up calls carrying a
        tool result are asked for plain text, since only their text is used.

        Raises:
            ReasoningRateLimitError: When rate limit exceeded
            ReasoningConnectionError: When API unreachable
            ReasoningAuthenticationError: When API key invalid
            ReasoningError: For other API errors
        """
        api_messages = self._format_messages(message, history, is_tool_result)

        request: dict[str, Any] = {
            "messages": api_messages,
            "model": self._model,
            "temperature": self._settings.reasoning_temperature,
            "max_tokens": self._settings.reasoning_max_tokens,
        }
        if self._tools:
            request["tools"] = self._tools
            request["tool_choice"] = "none" if is_tool_result else "auto"

        start_time = time.perf_counter()

        try:
            completion = await self.client.chat.completions.create(**request)

        except groq.RateLimitError as e:
            logger.warning(f"Groq rate limit hit: {e}")
            raise ReasoningRateLimitError(
                "Rate limit exceeded",
                retry_after=self._extract_retry_after(e),
            ) from e

        except groq.APIConnectionError as e:
            logger.error(f"Groq connection error: {e.__cause__}")
            raise ReasoningConnectionError("Failed to connect to Groq API") from e

        except groq.AuthenticationError as e:
            logger.error("Groq authentication failed")
            raise ReasoningAuthenticationError("Invalid Groq API key") from e

        except groq.APIStatusError as e:
            logger.error(f"Groq API error: {e.status_code} - {e.message}")
            raise ReasoningError(f"Groq API error: {e.status_code}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Groq API latency: {latency_ms:.1f}ms")

        return self._parse_completion(completion, latency_ms)

    def _format_messages(
        self,
        message: str,
        history: Sequence[ConversationTurn],
        is_tool_result: bool,
    ) -> list[dict[str, Any]]:
        """Format system prompt, history and the current message for Groq."""
        api_messages: list[dict[str, Any]] = [
            {"role": "system", "content": self._system_prompt}
        ]

        for turn in history:
            api_messages.append({
                "role": turn.role.value,
                "content": turn.content,
            })

        if is_tool_result:
            api_messages.append({"role": Role.SYSTEM.value, "content": message})
        elif not (
            history
            and history[-1].role == Role.USER
            and history[-1].content == message
        ):
            # Memory already holds the transcript when the pipeline recorded it first
            api_messages.append({"role": Role.USER.value, "content": message})

        return api_messages

    def _parse_completion(self, completion: Any, latency_ms: float) -> ReasoningResult:
        if not completion.choices:
            raise ReasoningError("Empty response from Groq")

        choice = completion.choices[0]
        api_message = choice.message

        tool_calls: list[ToolCall] = []
        for tc in api_message.tool_calls or []:
            tool_calls.append(
                ToolCall(
                    name=tc.function.name,
                    arguments=self._parse_arguments(tc.function.name, tc.function.arguments),
                    id=getattr(tc, "id", None),
                )
            )

        usage = getattr(completion, "usage", None)
        return ReasoningResult(
            text=api_message.content or "",
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            model=self._model,
            latency_ms=latency_ms,
            total_tokens=usage.total_tokens if usage else None,
        )

    def _parse_arguments(self, name: str, raw: str | None) -> dict[str, Any]:
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON arguments for tool {name}: {raw[:100]}")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def _extract_retry_after(self, error: groq.RateLimitError) -> float:
        """Extract retry-after from rate limit error."""
        if hasattr(error, "response") and error.response:
            retry_after = error.response.headers.get("retry-after")
            if retry_after:
                try:
                    return float(retry_after)
                except ValueError:
                    pass
        return 60.0

    async def health_check(self) -> bool:
        """Check if Groq API is reachable."""
        try:
            response = await self.client.chat.completions.create(
                messages=[{"role": "user", "content": "hi"}],
                model=self._model,
                max_tokens=1,
            )
            return bool(response.choices)
        except Exception as e:
            logger.warning(f"Groq health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close the client connection."""
        if self._client:
            await self._client.close()
            self._client = None
