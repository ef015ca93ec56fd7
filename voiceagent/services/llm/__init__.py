"""Reasoning services (Groq)."""

from voiceagent.services.llm.exceptions import (
    ReasoningAuthenticationError,
    ReasoningConnectionError,
    ReasoningError,
    ReasoningRateLimitError,
)
from voiceagent.services.llm.groq import GroqReasoner
from voiceagent.services.llm.protocol import (
    ConversationTurn,
    ReasoningResult,
    ReasoningService,
    Role,
    ToolCall,
)

__all__ = [
    # Protocol and types
    "ReasoningService",
    "ReasoningResult",
    "ConversationTurn",
    "Role",
    "ToolCall",
    # Implementation
    "GroqReasoner",
    # Exceptions
    "ReasoningError",
    "ReasoningRateLimitError",
    "ReasoningConnectionError",
    "ReasoningAuthenticationError",
]
