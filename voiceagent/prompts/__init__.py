"""Prompt templates for reasoning calls."""

from voiceagent.prompts.agent import SYSTEM_PROMPT, TOOL_RESULT_TEMPLATE, build_system_prompt

__all__ = [
    "SYSTEM_PROMPT",
    "TOOL_RESULT_TEMPLATE",
    "build_system_prompt",
]
