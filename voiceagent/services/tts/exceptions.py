"""Custom exceptions for TTS services."""


class SynthesisError(Exception):
    """Base exception for TTS service errors."""

    pass


class SynthesisConnectionError(SynthesisError):
    """Raised when unable to connect to the TTS service."""

    pass


class EmptySynthesisError(SynthesisError):
    """Raised when the TTS service returns no audio."""

    pass
