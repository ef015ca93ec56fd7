"""Tests for settings and logging helpers."""

import pytest
from pydantic import ValidationError

from voiceagent import logging_config
from voiceagent.logging_config import mask_phone, preview, sanitize_for_log, setup_logging


class TestSettings:
    """Tests for Settings defaults and validation."""

    def test_defaults(self, settings_factory) -> None:
        """Test call-handling defaults."""
        settings = settings_factory(audio_window_frames=20)

        assert settings.audio_window_frames == 20
        assert settings.conversation_history_turns == 5
        assert settings.latency_budget_ms == 500.0
        assert settings.synthesis_cache_size == 100
        assert settings.tool_timeout_seconds == 3.0
        assert settings.session_max_age_ms == 3_600_000
        assert settings.elevenlabs_output_format == "ulaw_8000"
        assert settings.is_production is False

    def test_api_keys_are_secret(self, settings) -> None:
        """Test API keys are not exposed in repr."""
        assert "test-groq-key" not in repr(settings)
        assert settings.groq_api_key.get_secret_value() == "test-groq-key"

    def test_invalid_window(self, settings_factory) -> None:
        """Test window size must be positive."""
        with pytest.raises(ValidationError):
            settings_factory(audio_window_frames=0)

    def test_production(self, settings_factory) -> None:
        """Test production flag follows the environment."""
        assert settings_factory(environment="production").is_production is True


class TestLogHelpers:
    """Tests for log sanitising helpers."""

    def test_mask_phone(self) -> None:
        """Test caller numbers are masked."""
        assert mask_phone("+15551234567") == "+1XXXX4567"
        assert mask_phone("123") == "XXXX"

    def test_sanitize_nested(self) -> None:
        """Test nested caller fields are masked."""
        data = {"from": "+15551234567", "params": {"caller_phone": "+15559876543"}, "to": "support"}

        result = sanitize_for_log(data)

        assert result["from"] == "+1XXXX4567"
        assert result["params"]["caller_phone"] == "+1XXXX6543"
        assert result["to"] == "support"

    def test_preview(self) -> None:
        """Test long text is shortened."""
        assert preview("short") == "short"
        assert preview("x" * 60) == "x" * 50 + "..."


class TestSetupLogging:
    """Tests for sink configuration."""

    @pytest.mark.parametrize(("level", "diagnose"), [("DEBUG", True), ("INFO", False), ("warning", False)])
    def test_console_diagnose_only_when_debugging(self, monkeypatch, level: str, diagnose: bool) -> None:
        """Test variable values are shown in console tracebacks only at DEBUG."""
        calls: list[dict] = []
        monkeypatch.setattr(logging_config.logger, "remove", lambda *args: None)
        monkeypatch.setattr(logging_config.logger, "add", lambda sink, **kwargs: calls.append(kwargs))

        setup_logging(level=level, enable_file=False)

        assert len(calls) == 1
        assert calls[0]["diagnose"] is diagnose
