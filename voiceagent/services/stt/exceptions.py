"""Custom exceptions for STT services."""


class TranscriptionError(Exception):
    """Raised when an audio window cannot be transcribed."""

    pass


class TranscriptionConnectionError(TranscriptionError):
    """Raised when unable to reach the transcription API."""

    pass
