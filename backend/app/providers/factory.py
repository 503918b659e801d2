"""Provider factory functions.

Singleton instances for the premium and free AI tiers.
"""

from app.providers.config import ProviderConfig
from app.providers.llm.base import LLMProvider
from app.providers.llm.openai_compatible_adapter import OpenAICompatibleAdapter

# The free endpoint is unauthenticated; the OpenAI SDK refuses an empty key.
_FREE_PROVIDER_API_KEY = "unused"  # nosec B105

_premium_provider: LLMProvider | None = None
_free_provider: LLMProvider | None = None


def get_premium_provider(config: ProviderConfig | None = None) -> LLMProvider | None:
    """Get or create the premium (OpenRouter) provider singleton.

    Without an OpenRouter key every request is served by the free tier
    and no credits are deducted.

    Args:
        config: Optional provider configuration. If None and no provider
            exists, loads from environment.

    Returns:
        LLMProvider instance, or None if the premium tier is not configured.
    """
    global _premium_provider

    if _premium_provider is None:
        if config is None:
            config = ProviderConfig.from_env()
        if not config.premium_enabled:
            return None

        _premium_provider = OpenAICompatibleAdapter(
            config,
            name="openrouter",
            base_url=config.premium_base_url,
            api_key=config.premium_api_key or "",
            default_model=config.premium_model,
            vision=True,
            model_routing=config.premium_model_routing,
            default_headers={
                "HTTP-Referer": config.site_url,
                "X-Title": config.site_title,
            },
        )

    return _premium_provider


def get_free_provider(config: ProviderConfig | None = None) -> LLMProvider:
    """Get or create the free (Hack Club AI) provider singleton.

    Args:
        config: Optional provider configuration. If None and no provider
            exists, loads from environment.

    Returns:
        Text-only LLMProvider instance.
    """
    global _free_provider

    if _free_provider is None:
        if config is None:
            config = ProviderConfig.from_env()

        _free_provider = OpenAICompatibleAdapter(
            config,
            name="hackclub",
            base_url=config.free_base_url,
            api_key=_FREE_PROVIDER_API_KEY,
            default_model=config.free_model,
            vision=False,
        )

    return _free_provider


def reset_providers() -> None:
    """Reset provider singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _premium_provider, _free_provider
    _premium_provider = None
    _free_provider = None
