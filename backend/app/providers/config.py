"""Provider configuration management.

Centralized configuration for the premium and free LLM providers.
"""

from dataclasses import dataclass

from app.core.config import settings


@dataclass
class ProviderConfig:
    """Centralized provider configuration.

    Attributes:
        premium_api_key: OpenRouter API key. Empty disables the premium tier.
        premium_base_url: OpenRouter OpenAI-compatible endpoint.
        premium_model: Vision-capable model billed in credits.
        premium_model_routing: Per-operation model overrides for the premium tier.
        free_base_url: Free text-only endpoint (OpenAI-compatible).
        free_model: Model served by the free endpoint.
        site_url: Sent to OpenRouter as HTTP-Referer.
        site_title: Sent to OpenRouter as X-Title.
        default_max_tokens: Default max output tokens.
        default_temperature: Default sampling temperature.
        max_retries: Max retry attempts for transient errors (free tier only).
        retry_base_delay_ms: Base delay for exponential backoff.
        retry_max_delay_ms: Max delay cap for exponential backoff.
        request_timeout_seconds: HTTP timeout for provider calls.
    """

    premium_api_key: str | None = None
    premium_base_url: str = "https://openrouter.ai/api/v1"
    premium_model: str = "google/gemini-3-pro-image-preview"
    premium_model_routing: dict[str, str] | None = None

    free_base_url: str = "https://ai.hackclub.com"
    free_model: str = "google/gemini-2.5-flash"

    site_url: str = "http://localhost:3000"
    site_title: str = "Agora AI Tutor"

    # Defaults
    default_max_tokens: int = 2048
    default_temperature: float = 0.7

    # Retry policy
    max_retries: int = 2
    retry_base_delay_ms: int = 500
    retry_max_delay_ms: int = 8000

    request_timeout_seconds: float = 60.0

    @property
    def premium_enabled(self) -> bool:
        """True when an OpenRouter key is configured."""
        return bool(self.premium_api_key)

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Load configuration from the environment-backed application settings.

        Returns:
            ProviderConfig instance with values from environment.
        """
        return cls(
            premium_api_key=settings.openrouter_api_key.get_secret_value() or None,
            premium_base_url=settings.openrouter_base_url,
            premium_model=settings.openrouter_model,
            free_base_url=settings.free_ai_base_url,
            free_model=settings.free_ai_model,
            site_url=settings.site_url,
            site_title=settings.site_title,
        )
