"""Tests for the OpenAI-compatible adapter used by both AI tiers.

The AsyncOpenAI client is patched; no network calls are made.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from app.providers.config import ProviderConfig
from app.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ContextLengthError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from app.providers.llm.base import AIOperation, LLMMessage
from app.providers.llm.openai_compatible_adapter import OpenAICompatibleAdapter

_CLIENT_PATH = "app.providers.llm.openai_compatible_adapter.AsyncOpenAI"
_IMAGE = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def config():
    return ProviderConfig(
        premium_api_key="sk-or-test",
        default_max_tokens=2048,
        default_temperature=0.7,
        request_timeout_seconds=30.0,
    )


@pytest.fixture
def mock_response():
    """A chat-completions response with one choice."""
    response = MagicMock()
    choice = MagicMock()
    choice.message.content = "2x = 4, so x = 2."
    choice.finish_reason = "stop"
    response.choices = [choice]
    response.model = "google/gemini-3-pro-image-preview"
    response.usage = MagicMock(prompt_tokens=12, completion_tokens=8)
    return response


def _adapter(config, *, vision=True, model_routing=None, headers=None):
    return OpenAICompatibleAdapter(
        config,
        name="openrouter" if vision else "hackclub",
        base_url="https://openrouter.ai/api/v1",
        api_key="sk-or-test",
        default_model="google/gemini-3-pro-image-preview",
        vision=vision,
        model_routing=model_routing,
        default_headers=headers,
    )


def _client_returning(mock_client_cls, response=None, error=None):
    mock_client = AsyncMock()
    if error is not None:
        mock_client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        mock_client.chat.completions.create = AsyncMock(return_value=response)
    mock_client_cls.return_value = mock_client
    return mock_client


class TestInit:
    def test_client_built_without_sdk_retries(self, config):
        """The SDK must not retry on its own; a costed call happens at most once."""
        headers = {"HTTP-Referer": "http://localhost:3000", "X-Title": "Agora"}
        with patch(_CLIENT_PATH) as mock_client_cls:
            _adapter(config, headers=headers)

        mock_client_cls.assert_called_once_with(
            api_key="sk-or-test",
            base_url="https://openrouter.ai/api/v1",
            default_headers=headers,
            timeout=30.0,
            max_retries=0,
        )

    def test_reports_name_and_vision(self, config):
        with patch(_CLIENT_PATH):
            premium = _adapter(config, vision=True)
            free = _adapter(config, vision=False)

        assert premium.provider_name == "openrouter"
        assert premium.supports_vision is True
        assert free.provider_name == "hackclub"
        assert free.supports_vision is False


class TestModelRouting:
    def test_default_model_without_routing(self, config):
        with patch(_CLIENT_PATH):
            adapter = _adapter(config)

        assert (
            adapter.get_model_for_operation(AIOperation.CHAT)
            == "google/gemini-3-pro-image-preview"
        )

    def test_routing_overrides_per_operation(self, config):
        with patch(_CLIENT_PATH):
            adapter = _adapter(config, model_routing={"ocr": "ocr-model"})

        assert adapter.get_model_for_operation(AIOperation.OCR) == "ocr-model"
        assert (
            adapter.get_model_for_operation(AIOperation.CHAT)
            == "google/gemini-3-pro-image-preview"
        )


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_first_choice(self, config, mock_response):
        with patch(_CLIENT_PATH) as mock_client_cls:
            _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config)

            response = await adapter.complete(
                [LLMMessage(role="user", content="Solve 2x = 4")], AIOperation.SOLVE_MATH
            )

        assert response.content == "2x = 4, so x = 2."
        assert response.model == "google/gemini-3-pro-image-preview"
        assert response.input_tokens == 12
        assert response.output_tokens == 8
        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_uses_config_defaults(self, config, mock_response):
        with patch(_CLIENT_PATH) as mock_client_cls:
            client = _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config)

            await adapter.complete([LLMMessage(role="user", content="Hi")], AIOperation.CHAT)

        call_kwargs = client.chat.completions.create.call_args.kwargs
        assert call_kwargs["max_tokens"] == 2048
        assert call_kwargs["temperature"] == 0.7
        assert call_kwargs["model"] == "google/gemini-3-pro-image-preview"

    @pytest.mark.asyncio
    async def test_overrides_max_tokens_and_temperature(self, config, mock_response):
        with patch(_CLIENT_PATH) as mock_client_cls:
            client = _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config)

            await adapter.complete(
                [LLMMessage(role="user", content="Hi")],
                AIOperation.CHAT,
                max_tokens=100,
                temperature=0.0,
            )

        call_kwargs = client.chat.completions.create.call_args.kwargs
        assert call_kwargs["max_tokens"] == 100
        assert call_kwargs["temperature"] == 0.0

    @pytest.mark.asyncio
    async def test_missing_usage_counts_zero_tokens(self, config, mock_response):
        mock_response.usage = None
        with patch(_CLIENT_PATH) as mock_client_cls:
            _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config)

            response = await adapter.complete(
                [LLMMessage(role="user", content="Hi")], AIOperation.CHAT
            )

        assert response.input_tokens == 0
        assert response.output_tokens == 0

    @pytest.mark.asyncio
    async def test_no_choices_raises_provider_error(self, config, mock_response):
        mock_response.choices = []
        with patch(_CLIENT_PATH) as mock_client_cls:
            _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config)

            with pytest.raises(ProviderError, match="no choices"):
                await adapter.complete(
                    [LLMMessage(role="user", content="Hi")], AIOperation.CHAT
                )


class TestMessageConversion:
    @pytest.mark.asyncio
    async def test_vision_provider_sends_image_parts(self, config, mock_response):
        with patch(_CLIENT_PATH) as mock_client_cls:
            client = _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config, vision=True)

            await adapter.complete(
                [
                    LLMMessage(role="system", content="You are a tutor."),
                    LLMMessage(role="user", content="Read this", images=[_IMAGE]),
                ],
                AIOperation.OCR,
            )

        sent = client.chat.completions.create.call_args.kwargs["messages"]
        assert sent[0] == {"role": "system", "content": "You are a tutor."}
        assert sent[1] == {
            "role": "user",
            "content": [
                {"type": "image_url", "image_url": {"url": _IMAGE}},
                {"type": "text", "text": "Read this"},
            ],
        }

    @pytest.mark.asyncio
    async def test_image_without_text_sends_only_image(self, config, mock_response):
        with patch(_CLIENT_PATH) as mock_client_cls:
            client = _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config, vision=True)

            await adapter.complete(
                [LLMMessage(role="user", content=None, images=[_IMAGE])],
                AIOperation.OCR,
            )

        sent = client.chat.completions.create.call_args.kwargs["messages"]
        assert sent[0]["content"] == [
            {"type": "image_url", "image_url": {"url": _IMAGE}}
        ]

    @pytest.mark.asyncio
    async def test_text_only_provider_never_sends_images(self, config, mock_response):
        with patch(_CLIENT_PATH) as mock_client_cls:
            client = _client_returning(mock_client_cls, mock_response)
            adapter = _adapter(config, vision=False)

            await adapter.complete(
                [LLMMessage(role="user", content="Read this", images=[_IMAGE])],
                AIOperation.CHAT,
            )

        sent = client.chat.completions.create.call_args.kwargs["messages"]
        assert sent == [{"role": "user", "content": "Read this"}]


class TestErrorMapping:
    """SDK exceptions map onto the provider error taxonomy."""

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self, config):
        error = openai.RateLimitError(
            message="Rate limit exceeded",
            response=MagicMock(status_code=429, headers={"retry-after": "7"}),
            body={"error": {"message": "Rate limit exceeded"}},
        )
        with patch(_CLIENT_PATH) as mock_client_cls:
            _client_returning(mock_client_cls, error=error)
            adapter = _adapter(config)

            with pytest.raises(RateLimitError) as exc_info:
                await adapter.complete(
                    [LLMMessage(role="user", content="Hi")], AIOperation.CHAT
                )

        assert exc_info.value.retry_after_seconds == 7.0

    @pytest.mark.asyncio
    async def test_authentication_error(self, config):
        error = openai.AuthenticationError(
            message="Invalid API key",
            response=MagicMock(status_code=401),
            body={"error": {"message": "Invalid API key"}},
        )
        with patch(_CLIENT_PATH) as mock_client_cls:
            _client_returning(mock_client_cls, error=error)
            adapter = _adapter(config)

            with pytest.raises(AuthenticationError, match="Invalid API key"):
                await adapter.complete(
                    [LLMMessage(role="user", content="Hi")], AIOperation.CHAT
                )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("Request exceeds context_length limit", ContextLengthError),
            ("Blocked due to content_policy violation", ContentFilterError),
            ("Flagged by moderation", ContentFilterError),
            ("Invalid request parameters", ProviderError),
        ],
    )
    async def test_bad_request_classification(self, config, message, expected):
        error = openai.BadRequestError(
            message=message,
            response=MagicMock(status_code=400),
            body={"error": {"message": message}},
        )
        with patch(_CLIENT_PATH) as mock_client_cls:
            _client_returning(mock_client_cls, error=error)
            adapter = _adapter(config)

            with pytest.raises(expected):
                await adapter.complete(
                    [LLMMessage(role="user", content="Hi")], AIOperation.CHAT
                )

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, config):
        error = openai.APIConnectionError(message="Connection failed", request=MagicMock())
        with patch(_CLIENT_PATH) as mock_client_cls:
            _client_returning(mock_client_cls, error=error)
            adapter = _adapter(config)

            with pytest.raises(TransientError, match="Connection failed"):
                await adapter.complete(
                    [LLMMessage(role="user", content="Hi")], AIOperation.CHAT
                )
