"""Prometheus metrics for the voice agent.

Provides metrics for monitoring turn outcomes, latency, and cache use.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

# =============================================================================
# Counters
# =============================================================================

TURN_TOTAL = Counter(
    "voiceagent_turn_total",
    "Processed audio windows by outcome",
    ["outcome"],
)

TOOL_CALL_TOTAL = Counter(
    "voiceagent_tool_call_total",
    "Tool invocations by tool and result",
    ["tool", "result"],
)

SYNTHESIS_CACHE_LOOKUPS = Counter(
    "voiceagent_synthesis_cache_lookups_total",
    "Synthesis cache lookups",
    ["result"],
)

LATENCY_BUDGET_EXCEEDED = Counter(
    "voiceagent_latency_budget_exceeded_total",
    "Turns that finished after the latency budget",
)

PROTOCOL_ANOMALIES = Counter(
    "voiceagent_protocol_anomalies_total",
    "Malformed or out-of-order stream events that were dropped",
    ["reason"],
)

# =============================================================================
# Gauges
# =============================================================================

ACTIVE_SESSIONS = Gauge(
    "voiceagent_active_sessions",
    "Currently registered call sessions",
)

# =============================================================================
# Histograms
# =============================================================================

TURN_LATENCY = Histogram(
    "voiceagent_turn_latency_seconds",
    "Window-ready to emit-complete latency",
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0, 10.0],
)

STT_LATENCY = Histogram(
    "voiceagent_stt_latency_seconds",
    "Window transcription latency",
    buckets=[0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0],
)

REASONING_LATENCY = Histogram(
    "voiceagent_reasoning_latency_seconds",
    "Reasoning call latency (including tool follow-ups)",
    buckets=[0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0, 3.0, 5.0],
)

TTS_LATENCY = Histogram(
    "voiceagent_tts_latency_seconds",
    "Synthesis latency for cache misses",
    buckets=[0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 1.5, 2.0],
)

CALL_DURATION = Histogram(
    "voiceagent_call_duration_seconds",
    "Call duration in seconds",
    buckets=[10, 30, 60, 120, 300, 600, 900, 1800],
)

# =============================================================================
# Helper Functions
# =============================================================================


def record_turn_metrics(
    outcome: str,
    *,
    total_ms: float | None = None,
    stt_ms: float | None = None,
    reasoning_ms: float | None = None,
    tts_ms: float | None = None,
    over_budget: bool = False,
) -> None:
    """Record metrics for one processed window.

    Args:
        outcome: Turn outcome (replied, silence, transferred, failed)
        total_ms: Window-ready to emit-complete latency in milliseconds
        stt_ms: Transcription latency in milliseconds
        reasoning_ms: Combined reasoning latency in milliseconds
        tts_ms: Synthesis latency in milliseconds (cache misses only)
        over_budget: Whether the turn exceeded the latency budget
    """
    TURN_TOTAL.labels(outcome=outcome).inc()

    if total_ms is not None and total_ms > 0:
        TURN_LATENCY.observe(total_ms / 1000)

    if stt_ms is not None and stt_ms > 0:
        STT_LATENCY.observe(stt_ms / 1000)

    if reasoning_ms is not None and reasoning_ms > 0:
        REASONING_LATENCY.observe(reasoning_ms / 1000)

    if tts_ms is not None and tts_ms > 0:
        TTS_LATENCY.observe(tts_ms / 1000)

    if over_budget:
        LATENCY_BUDGET_EXCEEDED.inc()


def record_tool_call(tool: str, result: str) -> None:
    """Record a tool invocation (success, error, timeout, invalid)."""
    TOOL_CALL_TOTAL.labels(tool=tool, result=result).inc()


def record_cache_lookup(*, hit: bool) -> None:
    """Record a synthesis cache lookup."""
    SYNTHESIS_CACHE_LOOKUPS.labels(result="hit" if hit else "miss").inc()


def record_protocol_anomaly(reason: str) -> None:
    """Record a dropped stream event."""
    PROTOCOL_ANOMALIES.labels(reason=reason).inc()


def record_call_ended(duration_seconds: float) -> None:
    """Record the duration of a finished call."""
    CALL_DURATION.observe(duration_seconds)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output.

    Returns:
        Metrics in Prometheus text exposition format.
    """
    return generate_latest()


def get_content_type() -> str:
    """Get the content type for Prometheus metrics.

    Returns:
        Content-Type header value for Prometheus metrics.
    """
    return CONTENT_TYPE_LATEST
