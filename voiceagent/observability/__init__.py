"""Observability module for metrics."""

from voiceagent.observability.metrics import (
    ACTIVE_SESSIONS,
    CALL_DURATION,
    LATENCY_BUDGET_EXCEEDED,
    TOOL_CALL_TOTAL,
    TURN_LATENCY,
    TURN_TOTAL,
    record_call_ended,
    record_turn_metrics,
)

__all__ = [
    "TURN_TOTAL",
    "TURN_LATENCY",
    "TOOL_CALL_TOTAL",
    "LATENCY_BUDGET_EXCEEDED",
    "ACTIVE_SESSIONS",
    "CALL_DURATION",
    "record_turn_metrics",
    "record_call_ended",
]
