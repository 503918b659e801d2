"""LLM provider module.

LLM provider interface, the OpenAI-compatible adapter used by both AI
tiers, and the text-only transformation for the free tier.
"""

from app.providers.llm.base import (
    AIOperation,
    LLMMessage,
    LLMProvider,
    LLMResponse,
)
from app.providers.llm.mock_adapter import MockLLMProvider
from app.providers.llm.openai_compatible_adapter import OpenAICompatibleAdapter
from app.providers.llm.text_only import text_only_system_prompt, to_text_only

__all__ = [
    # Base types
    "AIOperation",
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    # Adapters
    "MockLLMProvider",
    "OpenAICompatibleAdapter",
    # Free tier helpers
    "text_only_system_prompt",
    "to_text_only",
]
