"""Custom exceptions for reasoning services."""


class ReasoningError(Exception):
    """Base exception for reasoning service errors."""

    pass


class ReasoningRateLimitError(ReasoningError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, retry_after: float = 60.0):
        super().__init__(message)
        self.retry_after = retry_after


class ReasoningConnectionError(ReasoningError):
    """Raised when unable to connect to the reasoning API."""

    pass


class ReasoningAuthenticationError(ReasoningError):
    """Raised when API key is invalid."""

    pass
