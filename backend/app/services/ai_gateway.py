"""Tiered AI service - routes a request to the premium or free provider.

Every AI route goes through TieredAIService.complete(), which calls the
credit gate exactly once and branches on its decision:

1. No premium provider configured: free tier, nothing is charged.
2. Gate grants premium: one call to the premium provider. If it fails,
   the cost is refunded and the request falls through to the free tier.
3. Free tier: text-only messages, retried with backoff. Operations that
   need vision cannot be served here and raise an API error instead.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Literal

from app.core.errors import (
    CreditsUnavailableError,
    InsufficientCreditsError,
    ProviderUnavailableError,
)
from app.models.credit import CreditTransactionType
from app.providers.config import ProviderConfig
from app.providers.errors import ProviderError
from app.providers.llm.base import AIOperation, LLMMessage, LLMProvider
from app.providers.llm.text_only import to_text_only
from app.providers.retry import with_retries
from app.services.credit_costs import resolve_cost, resolve_operation
from app.services.credit_ledger import CreditLedger, GateDecision, LedgerReason

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TieredCompletion:
    """Result of a tiered completion.

    Attributes:
        content: Model output text.
        provider: provider_name of the provider that answered.
        model: Model that answered.
        tier: "premium" (billed) or "free".
        credit_balance: Latest known balance, so the UI needs no second read.
    """

    content: str
    provider: str
    model: str
    tier: Literal["premium", "free"]
    credit_balance: int


class TieredAIService:
    """Premium/free routing around the credit gate.

    Args:
        ledger: Credit ledger bound to the request's session.
        premium: Vision-capable costed provider, or None when not configured.
        free: Text-only free provider.
        config: Provider configuration (retry policy).
    """

    def __init__(
        self,
        ledger: CreditLedger,
        premium: LLMProvider | None,
        free: LLMProvider,
        config: ProviderConfig,
    ) -> None:
        self._ledger = ledger
        self._premium = premium
        self._free = free
        self._config = config

    async def complete(
        self,
        user_id: uuid.UUID,
        operation: AIOperation | str,
        messages: list[LLMMessage],
        *,
        description: str | None = None,
        requires_vision: bool = False,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> TieredCompletion:
        """Run one AI request on the tier the user's credits allow.

        Args:
            user_id: Authenticated user.
            operation: Operation kind (billed from the cost table).
            messages: Conversation, possibly with images.
            description: Optional usage description for the ledger.
            requires_vision: True when the free tier cannot serve the request.
            max_tokens: Override default max tokens.
            temperature: Override default temperature.

        Returns:
            TieredCompletion.

        Raises:
            UnknownOperationError: Operation not in the cost table.
            InsufficientCreditsError: Vision request without credits.
            CreditsUnavailableError: Vision request while the ledger is down.
            ProviderUnavailableError: No provider could serve the request.
        """
        op = resolve_operation(operation)
        cost = resolve_cost(op)

        if self._premium is None:
            if requires_vision:
                raise ProviderUnavailableError("Image analysis is not available")
            credit_balance = await self._ledger.get_credit_balance(user_id)
            return await self._complete_free(
                op, messages, credit_balance, max_tokens, temperature
            )

        gate = await self._ledger.check_and_deduct_credits(user_id, op, description)
        credit_balance = gate.credit_balance
        premium_failed = False

        if gate.use_premium:
            try:
                response = await self._premium.complete(
                    messages, op, max_tokens=max_tokens, temperature=temperature
                )
            except ProviderError as e:
                premium_failed = True
                logger.warning(
                    "Premium provider failed for user %s (%s): %s",
                    user_id,
                    op.value,
                    e,
                )
                credit_balance = await self._refund(user_id, op, cost, gate)
            else:
                return TieredCompletion(
                    content=response.content or "",
                    provider=self._premium.provider_name,
                    model=response.model,
                    tier="premium",
                    credit_balance=credit_balance,
                )

        if requires_vision:
            if premium_failed:
                raise ProviderUnavailableError()
            if gate.reason is LedgerReason.STORAGE_ERROR:
                raise CreditsUnavailableError()
            raise InsufficientCreditsError(balance=credit_balance, operation=op.value)

        return await self._complete_free(
            op, messages, credit_balance, max_tokens, temperature
        )

    async def _refund(
        self,
        user_id: uuid.UUID,
        op: AIOperation,
        cost: int,
        gate: GateDecision,
    ) -> int:
        """Return the cost of a failed premium call. Returns the new balance."""
        refund = await self._ledger.grant_credits(
            user_id,
            cost,
            CreditTransactionType.REFUND,
            description=f"Refund for failed AI {op.value} request",
            metadata={"operation": op.value, "reason": "provider_error"},
        )
        if not refund.success:
            logger.error(
                "Failed to refund %d credits to user %s (%s): %s",
                cost,
                user_id,
                op.value,
                refund.error,
            )
            return gate.credit_balance
        return refund.new_balance

    async def _complete_free(
        self,
        op: AIOperation,
        messages: list[LLMMessage],
        credit_balance: int,
        max_tokens: int | None,
        temperature: float | None,
    ) -> TieredCompletion:
        text_messages = to_text_only(messages)
        try:
            response = await with_retries(
                lambda: self._free.complete(
                    text_messages, op, max_tokens=max_tokens, temperature=temperature
                ),
                self._config,
                provider_name=self._free.provider_name,
            )
        except ProviderError as e:
            logger.error("Free provider failed (%s): %s", op.value, e)
            raise ProviderUnavailableError() from e

        return TieredCompletion(
            content=response.content or "",
            provider=self._free.provider_name,
            model=response.model,
            tier="free",
            credit_balance=credit_balance,
        )
