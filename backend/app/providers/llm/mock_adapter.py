"""Mock LLM provider for testing.

MockLLMProvider enables unit testing without hitting real LLM APIs.
"""

from typing import Any

from app.providers.llm.base import (
    AIOperation,
    LLMMessage,
    LLMProvider,
    LLMResponse,
)


class MockLLMProvider(LLMProvider):
    """Mock provider for testing.

    Attributes:
        responses: Pre-configured responses keyed by AIOperation.
        calls: Record of all method invocations for test assertions.
        fail_with: When set, complete() raises this exception.
    """

    def __init__(
        self,
        responses: dict[AIOperation, str] | None = None,
        *,
        name: str = "mock",
        vision: bool = True,
        fail_with: Exception | None = None,
    ) -> None:
        """Initialize mock provider with optional pre-configured responses.

        Args:
            responses: Dict mapping AIOperation to response content. If not
                provided for an operation, returns "Mock response for {op}".
            name: provider_name to report.
            vision: supports_vision to report.
            fail_with: Exception to raise on every call.
        """
        # Don't call super().__init__() - we don't need a config for mock
        self.responses: dict[AIOperation, str] = dict(responses) if responses else {}
        self.calls: list[dict[str, Any]] = []
        self.fail_with = fail_with
        self._name = name
        self._vision = vision

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
        """Record the call and return a configured or default response."""
        self.calls.append(
            {
                "method": "complete",
                "messages": messages,
                "operation": operation,
                "kwargs": {"max_tokens": max_tokens, "temperature": temperature},
            }
        )
        if self.fail_with is not None:
            raise self.fail_with

        content = self.responses.get(
            operation, f"Mock response for {operation.value}"
        )
        return LLMResponse(
            content=content,
            model=f"{self._name}-model",
            input_tokens=100,
            output_tokens=50,
            finish_reason="stop",
            latency_ms=10,
        )

    def get_model_for_operation(self, _operation: AIOperation) -> str:
        return f"{self._name}-model"
