"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
See .env.example for required variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    groq_api_key: SecretStr = Field(description="Groq API key for reasoning")
    deepgram_api_key: SecretStr = Field(description="Deepgram API key for STT")
    elevenlabs_api_key: SecretStr = Field(description="ElevenLabs API key for TTS")

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # ==========================================================================
    # Speech-to-Text
    # ==========================================================================
    deepgram_model: str = Field(
        default="nova-2-phonecall",
        description="Deepgram model used for window transcription",
    )
    stt_language: str = Field(default="en-US", description="Transcription language code")
    stt_sample_rate: int = Field(
        default=8000,
        description="Sample rate of inbound telephony audio",
    )
    stt_encoding: str = Field(
        default="mulaw",
        description="Encoding of inbound telephony audio",
    )

    # ==========================================================================
    # Reasoning
    # ==========================================================================
    groq_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq chat model with tool calling support",
    )
    reasoning_max_tokens: int = Field(
        default=150,
        description="Maximum reply tokens (kept short for voice)",
    )
    reasoning_temperature: float = Field(default=0.7, description="Reply temperature")
    system_prompt: str | None = Field(
        default=None,
        description="Override for the agent persona prompt",
    )

    # ==========================================================================
    # Text-to-Speech
    # ==========================================================================
    elevenlabs_voice_id: str = Field(
        default="21m00Tcm4TlvDq8ikWAM",
        description="ElevenLabs voice ID",
    )
    elevenlabs_model_id: str = Field(
        default="eleven_turbo_v2_5",
        description="ElevenLabs model ID",
    )
    elevenlabs_output_format: str = Field(
        default="ulaw_8000",
        description="Output format matching the telephony media stream",
    )
    synthesis_cache_size: int = Field(
        default=100,
        ge=0,
        description="Maximum number of cached synthesized replies",
    )

    # ==========================================================================
    # Conversation
    # ==========================================================================
    conversation_history_turns: int = Field(
        default=5,
        ge=1,
        description="Turns (user + assistant pairs) kept in memory per call",
    )
    audio_window_frames: int = Field(
        default=20,
        ge=1,
        description="Inbound frames per processing window (20 x 20ms = 400ms)",
    )
    latency_budget_ms: float = Field(
        default=500.0,
        description="Turn latency above which a warning is logged",
    )
    session_max_age_ms: int = Field(
        default=3_600_000,
        description="Default age for sweeping leaked sessions",
    )
    shutdown_grace_seconds: float = Field(
        default=5.0,
        description="Time an in-flight turn may finish after the caller hangs up",
    )

    # ==========================================================================
    # Tools
    # ==========================================================================
    tool_timeout_seconds: float = Field(
        default=3.0,
        description="Per-call timeout for tool execution",
    )

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use dependency injection in FastAPI:
        settings: Settings = Depends(get_settings)
    """
    return Settings()  # type: ignore[call-arg]  # loads from env
