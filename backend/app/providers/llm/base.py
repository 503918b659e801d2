"""Abstract base class and types for LLM providers.

LLMProvider abstract interface with the AIOperation enum, provider-agnostic
message types and image (vision) support.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.providers.config import ProviderConfig


class AIOperation(Enum):
    """Costed AI operation kinds.

    The credit cost table and the model routing table are both keyed by
    these values.
    """

    CHAT = "chat"
    OCR = "ocr"
    SOLVE_MATH = "solve-math"
    GENERATE_SOLUTION = "generate-solution"
    VOICE_ANALYZE = "voice-analyze"
    TEACHER_FEEDBACK = "teacher-feedback"


@dataclass
class LLMMessage:
    """Provider-agnostic message format.

    Attributes:
            role: Message role ("system", "user", "assistant").
            content: Text content.
            images: Image data URLs (data:image/...) attached to the message.
                Only vision-capable providers receive them.
    """

    role: str
    content: str | None = None
    images: list[str] | None = None


@dataclass
class LLMResponse:
    """Provider-agnostic response format.

    Attributes:
            content: Text response.
            model: Actual model used (for logging).
            input_tokens: Number of input tokens used.
            output_tokens: Number of output tokens generated.
            finish_reason: Why generation stopped ("stop", "length", ...).
            latency_ms: Response time in milliseconds.
    """

    content: str | None
    model: str
    input_tokens: int
    output_tokens: int
    finish_reason: str
    latency_ms: float


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: "ProviderConfig") -> None:
        """Initialize with provider configuration.

        Args:
                config: Provider configuration including API keys and defaults.
        """
        self.config = config

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g., 'openrouter', 'hackclub')."""
        ...

    @property
    @abstractmethod
    def supports_vision(self) -> bool:
        """Whether the provider accepts image content."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        operation: AIOperation,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate a completion.

        Args:
                messages: Conversation history as list of LLMMessage.
                operation: Operation kind for model routing.
                max_tokens: Override default max tokens.
                temperature: Override default temperature.

        Returns:
                LLMResponse with content.

        Raises:
                ProviderError: On API failure.
                RateLimitError: If rate limited.
        """
        ...

    @abstractmethod
    def get_model_for_operation(self, operation: AIOperation) -> str:
        """Return the model identifier used for a given operation."""
        ...
