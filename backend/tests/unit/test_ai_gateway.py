"""Tests for TieredAIService premium/free routing.

The ledger is mocked; providers are MockLLMProvider instances so calls
can be counted per tier.
"""

import uuid
from collections.abc import Iterator
from unittest.mock import AsyncMock, patch

import pytest

from app.core.errors import (
    CreditsUnavailableError,
    InsufficientCreditsError,
    ProviderUnavailableError,
    UnknownOperationError,
)
from app.models.credit import CreditTransactionType
from app.providers.config import ProviderConfig
from app.providers.errors import AuthenticationError, TransientError
from app.providers.llm.base import AIOperation, LLMMessage
from app.providers.llm.mock_adapter import MockLLMProvider
from app.providers.llm.text_only import IMAGE_DROPPED_NOTE
from app.services.ai_gateway import TieredAIService
from app.services.credit_ledger import (
    CreditDeductionResult,
    CreditGrantResult,
    GateDecision,
    LedgerReason,
)

_USER_ID = uuid.uuid4()
_IMAGE = "data:image/png;base64,iVBORw0KGgo="


def _messages(*, with_image: bool = False) -> list[LLMMessage]:
    return [
        LLMMessage(role="system", content="You are a math tutor."),
        LLMMessage(
            role="user",
            content="Is this right?",
            images=[_IMAGE] if with_image else None,
        ),
    ]


def _granted(balance: int) -> GateDecision:
    return GateDecision(
        use_premium=True,
        credit_balance=balance,
        deduction_result=CreditDeductionResult(success=True, new_balance=balance),
    )


def _denied(balance: int, reason: LedgerReason) -> GateDecision:
    return GateDecision(use_premium=False, credit_balance=balance, reason=reason)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def no_sleep() -> Iterator[AsyncMock]:
    """Skip backoff delays in the free-tier retry loop."""
    with patch("app.providers.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


@pytest.fixture
def config() -> ProviderConfig:
    return ProviderConfig(max_retries=2, retry_base_delay_ms=1)


@pytest.fixture
def ledger() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def premium() -> MockLLMProvider:
    return MockLLMProvider(
        {AIOperation.CHAT: "Premium answer", AIOperation.OCR: "x = 2"},
        name="openrouter",
    )


@pytest.fixture
def free() -> MockLLMProvider:
    return MockLLMProvider(
        {AIOperation.CHAT: "Free answer"}, name="hackclub", vision=False
    )


@pytest.fixture
def service(ledger, premium, free, config) -> TieredAIService:
    return TieredAIService(ledger, premium, free, config)


# =============================================================================
# Premium path
# =============================================================================


class TestPremiumTier:
    @pytest.mark.asyncio
    async def test_credits_route_to_premium(self, service, ledger, premium, free):
        ledger.check_and_deduct_credits.return_value = _granted(4)

        result = await service.complete(_USER_ID, "chat", _messages())

        assert result.tier == "premium"
        assert result.content == "Premium answer"
        assert result.provider == "openrouter"
        assert result.model == "openrouter-model"
        assert result.credit_balance == 4
        assert len(premium.calls) == 1
        assert free.calls == []
        ledger.check_and_deduct_credits.assert_awaited_once_with(
            _USER_ID, AIOperation.CHAT, None
        )

    @pytest.mark.asyncio
    async def test_premium_receives_images(self, service, ledger, premium):
        ledger.check_and_deduct_credits.return_value = _granted(4)

        await service.complete(
            _USER_ID, AIOperation.OCR, _messages(with_image=True), requires_vision=True
        )

        sent = premium.calls[0]["messages"]
        assert sent[1].images == [_IMAGE]

    @pytest.mark.asyncio
    async def test_premium_called_once_without_retry(self, service, ledger, premium):
        """A costed call is never retried."""
        ledger.check_and_deduct_credits.return_value = _granted(4)
        ledger.grant_credits.return_value = CreditGrantResult(
            success=True, new_balance=5
        )
        premium.fail_with = TransientError("upstream 502")

        await service.complete(_USER_ID, "chat", _messages())

        assert len(premium.calls) == 1


# =============================================================================
# Refund on premium failure
# =============================================================================


class TestPremiumFailure:
    @pytest.mark.asyncio
    async def test_refund_then_free_fallback(self, service, ledger, premium, free):
        ledger.check_and_deduct_credits.return_value = _granted(4)
        ledger.grant_credits.return_value = CreditGrantResult(
            success=True, new_balance=5
        )
        premium.fail_with = AuthenticationError("bad key")

        result = await service.complete(_USER_ID, "chat", _messages())

        assert result.tier == "free"
        assert result.content == "Free answer"
        assert result.credit_balance == 5
        ledger.grant_credits.assert_awaited_once_with(
            _USER_ID,
            1,
            CreditTransactionType.REFUND,
            description="Refund for failed AI chat request",
            metadata={"operation": "chat", "reason": "provider_error"},
        )
        assert len(free.calls) == 1

    @pytest.mark.asyncio
    async def test_refund_uses_operation_cost(self, service, ledger, premium):
        ledger.check_and_deduct_credits.return_value = _granted(3)
        ledger.grant_credits.return_value = CreditGrantResult(
            success=True, new_balance=5
        )
        premium.fail_with = TransientError("timeout")

        await service.complete(_USER_ID, "generate-solution", _messages())

        assert ledger.grant_credits.await_args.args[1] == 2

    @pytest.mark.asyncio
    async def test_failed_refund_keeps_post_deduction_balance(
        self, service, ledger, premium
    ):
        ledger.check_and_deduct_credits.return_value = _granted(4)
        ledger.grant_credits.return_value = CreditGrantResult(
            success=False,
            new_balance=0,
            error="Failed to grant credits",
            reason=LedgerReason.STORAGE_ERROR,
        )
        premium.fail_with = TransientError("timeout")

        result = await service.complete(_USER_ID, "chat", _messages())

        assert result.tier == "free"
        assert result.credit_balance == 4

    @pytest.mark.asyncio
    async def test_vision_failure_refunds_and_raises_503(
        self, service, ledger, premium, free
    ):
        ledger.check_and_deduct_credits.return_value = _granted(4)
        ledger.grant_credits.return_value = CreditGrantResult(
            success=True, new_balance=5
        )
        premium.fail_with = TransientError("timeout")

        with pytest.raises(ProviderUnavailableError):
            await service.complete(
                _USER_ID, "ocr", _messages(with_image=True), requires_vision=True
            )

        ledger.grant_credits.assert_awaited_once()
        assert free.calls == []


# =============================================================================
# Free path
# =============================================================================


class TestFreeTier:
    @pytest.mark.asyncio
    async def test_no_credits_routes_to_free(self, service, ledger, premium, free):
        ledger.check_and_deduct_credits.return_value = _denied(
            0, LedgerReason.INSUFFICIENT_FUNDS
        )

        result = await service.complete(_USER_ID, "chat", _messages())

        assert result.tier == "free"
        assert result.provider == "hackclub"
        assert result.credit_balance == 0
        assert premium.calls == []
        ledger.grant_credits.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_free_tier_receives_text_only(self, service, ledger, free):
        ledger.check_and_deduct_credits.return_value = _denied(
            0, LedgerReason.INSUFFICIENT_FUNDS
        )

        await service.complete(_USER_ID, "chat", _messages(with_image=True))

        sent = free.calls[0]["messages"]
        assert all(not m.images for m in sent)
        assert sent[0].content.startswith("You are a math tutor.")
        assert "text-only mode" in sent[0].content
        assert sent[1].content.endswith(IMAGE_DROPPED_NOTE)

    @pytest.mark.asyncio
    async def test_storage_error_falls_back_to_free(self, service, ledger, free):
        ledger.check_and_deduct_credits.return_value = _denied(
            0, LedgerReason.STORAGE_ERROR
        )

        result = await service.complete(_USER_ID, "chat", _messages())

        assert result.tier == "free"

    @pytest.mark.asyncio
    async def test_free_tier_retries_transient_errors(
        self, service, ledger, free, no_sleep
    ):
        ledger.check_and_deduct_credits.return_value = _denied(
            0, LedgerReason.INSUFFICIENT_FUNDS
        )
        free.fail_with = TransientError("overloaded")

        with pytest.raises(ProviderUnavailableError):
            await service.complete(_USER_ID, "chat", _messages())

        assert len(free.calls) == 3
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_premium_not_configured_serves_free_without_charge(
        self, ledger, free, config
    ):
        ledger.get_credit_balance.return_value = 7
        service = TieredAIService(ledger, None, free, config)

        result = await service.complete(_USER_ID, "chat", _messages())

        assert result.tier == "free"
        assert result.credit_balance == 7
        ledger.check_and_deduct_credits.assert_not_awaited()


# =============================================================================
# Vision-only operations without premium
# =============================================================================


class TestVisionGating:
    @pytest.mark.asyncio
    async def test_no_credits_raises_402(self, service, ledger, free):
        ledger.check_and_deduct_credits.return_value = _denied(
            0, LedgerReason.INSUFFICIENT_FUNDS
        )

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await service.complete(
                _USER_ID, "ocr", _messages(with_image=True), requires_vision=True
            )

        assert exc_info.value.status_code == 402
        assert exc_info.value.details == [{"credit_balance": 0, "operation": "ocr"}]
        assert free.calls == []

    @pytest.mark.asyncio
    async def test_ledger_down_raises_503(self, service, ledger):
        ledger.check_and_deduct_credits.return_value = _denied(
            0, LedgerReason.STORAGE_ERROR
        )

        with pytest.raises(CreditsUnavailableError):
            await service.complete(
                _USER_ID, "ocr", _messages(with_image=True), requires_vision=True
            )

    @pytest.mark.asyncio
    async def test_premium_not_configured_raises_503(self, ledger, free, config):
        service = TieredAIService(ledger, None, free, config)

        with pytest.raises(ProviderUnavailableError):
            await service.complete(
                _USER_ID, "ocr", _messages(with_image=True), requires_vision=True
            )

        ledger.check_and_deduct_credits.assert_not_awaited()


class TestUnknownOperation:
    @pytest.mark.asyncio
    async def test_rejected_before_gate(self, service, ledger):
        with pytest.raises(UnknownOperationError):
            await service.complete(_USER_ID, "translate", _messages())

        ledger.check_and_deduct_credits.assert_not_awaited()
