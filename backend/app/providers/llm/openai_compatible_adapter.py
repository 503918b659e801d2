"""OpenAI-compatible chat-completions adapter.

Both AI tiers speak the OpenAI chat-completions protocol:
- premium: OpenRouter, vision-capable, billed in credits
- free: Hack Club AI, text-only, no credits

One adapter class serves both; the factory builds one instance per tier.
"""

import contextlib
import time
from typing import TYPE_CHECKING

import openai
import structlog
from openai import AsyncOpenAI

from app.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from app.providers.llm.base import (
    AIOperation,
    LLMMessage,
    LLMProvider,
    LLMResponse,
)

if TYPE_CHECKING:
    from app.providers.config import ProviderConfig

logger = structlog.get_logger()


def _classify_openai_error(error: Exception) -> ProviderError:
    """Map OpenAI SDK exceptions to internal error taxonomy.

    Returns a ProviderError subclass instance (does not raise).
    The caller is responsible for raising via ``raise _classify_openai_error(e) from e``.
    """
    if isinstance(error, openai.RateLimitError):
        retry_after = None
        if getattr(error, "response", None) is not None:
            retry_header = error.response.headers.get("retry-after")
            if retry_header is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(retry_header)
        return RateLimitError(str(error), retry_after_seconds=retry_after)

    if isinstance(error, openai.AuthenticationError | openai.PermissionDeniedError):
        return AuthenticationError(str(error))

    if isinstance(error, openai.BadRequestError):
        error_msg = str(error).lower()
        if "context_length" in error_msg:
            return ContextLengthError(str(error))
        if "content_policy" in error_msg or "moderation" in error_msg:
            return ContentFilterError(str(error))
        return ProviderError(str(error))

    # APITimeoutError is a subclass of APIConnectionError
    if isinstance(error, openai.APIConnectionError | openai.InternalServerError):
        return TransientError(str(error))

    return ProviderError(str(error))


def _convert_message(msg: LLMMessage, *, include_images: bool) -> dict:
    """Convert one LLMMessage to chat-completions format.

    Messages with images become multimodal content-part lists (images first,
    then the text) when the provider supports vision; otherwise images are
    not sent.
    """
    if include_images and msg.images:
        parts: list[dict] = [
            {"type": "image_url", "image_url": {"url": url}} for url in msg.images
        ]
        if msg.content:
            parts.append({"type": "text", "text": msg.content})
        return {"role": msg.role, "content": parts}
    return {"role": msg.role, "content": msg.content or ""}


def _convert_messages(
    messages: list[LLMMessage], *, include_images: bool
) -> list[dict]:
    return [_convert_message(m, include_images=include_images) for m in messages]


class OpenAICompatibleAdapter(LLMProvider):
    """Adapter for any OpenAI-compatible chat-completions endpoint.

    Args:
        config: Shared provider configuration (defaults, timeouts).
        name: Provider identifier reported in responses and logs.
        base_url: Endpoint root (the SDK appends /chat/completions).
        api_key: Bearer key. The free endpoint is unauthenticated but the
            SDK requires a non-empty value.
        default_model: Model used when an operation has no routing entry.
        vision: Whether image parts are forwarded.
        model_routing: Optional operation value -> model overrides.
        default_headers: Extra headers sent on every request.
    """

    def __init__(
        self,
        config: "ProviderConfig",
        *,
        name: str,
        base_url: str,
        api_key: str,
        default_model: str,
        vision: bool,
        model_routing: dict[str, str] | None = None,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(config)
        self._name = name
        self._vision = vision
        self.default_model = default_model
        self.model_routing = dict(model_routing) if model_routing else {}
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=default_headers,
            timeout=config.request_timeout_seconds,
            # Retries are decided by the caller (never for costed calls)
            max_retries=0,
        )

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def supports_vision(self) -> bool:
        return self._vision

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
            LLMResponse with the first choice's content.

        Raises:
            ProviderError: Classified SDK failure.
        """
        model = self.get_model_for_operation(operation)
        api_messages = _convert_messages(messages, include_images=self._vision)

        logger.info(
            "llm_request_start",
            provider=self._name,
            model=model,
            operation=operation.value,
            message_count=len(messages),
        )

        start_time = time.monotonic()

        try:
            response = await self.client.chat.completions.create(
                model=model,
                max_tokens=max_tokens
                if max_tokens is not None
                else self.config.default_max_tokens,
                temperature=temperature
                if temperature is not None
                else self.config.default_temperature,
                messages=api_messages,
            )
        except openai.APIError as e:
            logger.error(
                "llm_request_failed",
                provider=self._name,
                model=model,
                operation=operation.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise _classify_openai_error(e) from e

        latency_ms = (time.monotonic() - start_time) * 1000
        if not response.choices:
            raise ProviderError(f"{self._name} returned no choices")
        choice = response.choices[0]
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage is not None else 0
        output_tokens = usage.completion_tokens if usage is not None else 0

        logger.info(
            "llm_request_complete",
            provider=self._name,
            model=model,
            operation=operation.value,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
        )

        return LLMResponse(
            content=choice.message.content,
            model=response.model or model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            finish_reason=choice.finish_reason or "stop",
            latency_ms=latency_ms,
        )

    def get_model_for_operation(self, operation: AIOperation) -> str:
        """Get model for operation using the routing table."""
        return self.model_routing.get(operation.value, self.default_model)
