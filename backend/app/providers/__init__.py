"""Provider abstraction layer.

Exports:
    Error classes for provider error handling
    ProviderConfig for configuration
    Factory functions for provider instances
"""

from app.providers.config import ProviderConfig
from app.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from app.providers.factory import (
    get_free_provider,
    get_premium_provider,
    reset_providers,
)

__all__ = [
    # Config
    "ProviderConfig",
    # Errors
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ContentFilterError",
    "ContextLengthError",
    "TransientError",
    # Factory
    "get_premium_provider",
    "get_free_provider",
    "reset_providers",
]
