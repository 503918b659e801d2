"""Provider error taxonomy.

Error classes for the provider abstraction layer. Adapters map SDK
exceptions onto these so callers can tell retryable failures apart.
"""


__all__ = [
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ContentFilterError",
    "ContextLengthError",
    "TransientError",
]


class ProviderError(Exception):
    """Base class for all provider errors.

    All provider-specific exceptions should inherit from this class,
    allowing callers to catch all provider errors with a single handler.
    """

    pass


class RateLimitError(ProviderError):
    """Rate limit exceeded.

    May carry a retry_after_seconds hint from the provider.
    """

    def __init__(self, message: str, retry_after_seconds: float | None = None):
        """Initialize RateLimitError.

        Args:
            message: Error description from the provider.
            retry_after_seconds: Optional hint from provider on when to retry.
        """
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(ProviderError):
    """Invalid or expired API key. Not retryable."""

    pass


class ContentFilterError(ProviderError):
    """Content blocked by provider's safety filter."""

    pass


class ContextLengthError(ProviderError):
    """Input exceeded model's context window."""

    pass


class TransientError(ProviderError):
    """Temporary failure (network, server overload, timeout).

    Safe to retry with exponential backoff.
    """

    pass
