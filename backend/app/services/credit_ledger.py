"""Credit ledger service - balance inspection, mutation and the premium gate.

Stateless façade over CreditRepository. Every mutation is one database
transaction: the conditional balance UPDATE and the transaction-record
INSERT commit together or roll back together, so SUM(amount) per user
always equals profiles.credits.

Failure handling:
- Storage errors and timeouts are recovered into structured results and
  never reported as success (fail-closed).
- Insufficient balance is a normal result, not an exception.
- An operation outside the cost table raises UnknownOperationError before
  any storage call.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ConflictError
from app.models.credit import CreditTransaction, CreditTransactionType
from app.providers.llm.base import AIOperation
from app.repositories.credit_repository import CreditRepository
from app.repositories.profile_repository import ProfileRepository
from app.services.credit_costs import resolve_cost, resolve_operation

logger = logging.getLogger(__name__)

# TimeoutError (asyncpg command timeout) is an OSError subclass
_STORAGE_ERRORS = (SQLAlchemyError, OSError)

_DEDUCT_FAILED_MESSAGE = "Failed to deduct credits"
_GRANT_FAILED_MESSAGE = "Failed to grant credits"
_ACCOUNT_NOT_FOUND_MESSAGE = "Account not found"

STARTER_CREDITS_DESCRIPTION = "Starter credits"


class LedgerReason(str, Enum):
    """Why a ledger operation did not succeed (or reported no credits).

    Separates a genuine zero balance from a lookup miss or a storage
    failure, which all report a balance of 0.
    """

    INSUFFICIENT_FUNDS = "insufficient_funds"
    STORAGE_ERROR = "storage_error"
    LOOKUP_MISS = "lookup_miss"
    DUPLICATE_REFERENCE = "duplicate_reference"


@dataclass(frozen=True)
class CreditCheckResult:
    """Read-only balance inspection.

    Attributes:
        has_credits: True iff the stored balance is > 0.
        current_balance: Stored balance, 0 on lookup miss or storage error.
        should_use_premium: Policy signal; mirrors has_credits.
        reason: Set whenever has_credits is False.
    """

    has_credits: bool
    current_balance: int
    should_use_premium: bool
    reason: LedgerReason | None = None


@dataclass(frozen=True)
class CreditDeductionResult:
    """Outcome of deduct_credits.

    Attributes:
        success: Whether the cost was deducted and recorded.
        new_balance: Balance after success; the unchanged balance on
            insufficient funds; 0 on lookup miss or storage error.
        error: Opaque error text for storage failures.
        reason: Set whenever success is False.
    """

    success: bool
    new_balance: int
    error: str | None = None
    reason: LedgerReason | None = None


@dataclass(frozen=True)
class CreditGrantResult:
    """Outcome of grant_credits and open_account.

    Attributes:
        success: Whether the grant was applied and recorded.
        new_balance: Balance after the grant, or the current balance for a
            duplicate reference, or 0 on lookup miss or storage error.
        error: Opaque error text for failures.
        reason: Set whenever success is False.
        transaction_id: Recorded transaction (the existing one for a
            duplicate reference).
    """

    success: bool
    new_balance: int
    error: str | None = None
    reason: LedgerReason | None = None
    transaction_id: int | None = None


@dataclass(frozen=True)
class GateDecision:
    """Outcome of check_and_deduct_credits.

    Attributes:
        use_premium: True only when the deduction succeeded.
        credit_balance: Latest known balance.
        deduction_result: Present when a deduction was attempted.
        reason: Why premium was not granted.
    """

    use_premium: bool
    credit_balance: int
    deduction_result: CreditDeductionResult | None = None
    reason: LedgerReason | None = None


class CreditLedger:
    """Credit ledger operations for one request.

    Holds no state between calls other than the session. Concurrency is
    handled entirely by the storage layer's conditional UPDATE; there are
    no in-process locks.

    Args:
        db: Async database session. Mutations commit on it.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _rollback(self) -> None:
        try:
            await self._db.rollback()
        except _STORAGE_ERRORS:
            logger.exception("Rollback failed after credit ledger error")

    # =========================================================================
    # Balance inspection
    # =========================================================================

    async def check_user_credits(self, user_id: uuid.UUID) -> CreditCheckResult:
        """Inspect a user's balance without changing it.

        Never raises for storage problems: a lookup miss or storage error
        reports no credits so a failed lookup can never unlock premium.

        Args:
            user_id: User to inspect.

        Returns:
            CreditCheckResult.
        """
        try:
            balance = await CreditRepository.read_balance(self._db, user_id)
        except _STORAGE_ERRORS:
            logger.exception("Failed to read credit balance for user %s", user_id)
            await self._rollback()
            return CreditCheckResult(
                has_credits=False,
                current_balance=0,
                should_use_premium=False,
                reason=LedgerReason.STORAGE_ERROR,
            )

        if balance is None:
            return CreditCheckResult(
                has_credits=False,
                current_balance=0,
                should_use_premium=False,
                reason=LedgerReason.LOOKUP_MISS,
            )

        has_credits = balance > 0
        return CreditCheckResult(
            has_credits=has_credits,
            current_balance=balance,
            should_use_premium=has_credits,
            reason=None if has_credits else LedgerReason.INSUFFICIENT_FUNDS,
        )

    async def get_credit_balance(self, user_id: uuid.UUID) -> int:
        """Return the current balance, 0 on lookup miss or storage error."""
        check = await self.check_user_credits(user_id)
        return check.current_balance

    async def get_credit_history(
        self,
        user_id: uuid.UUID,
        limit: int | None = None,
    ) -> list[CreditTransaction]:
        """Return the user's most recent transactions, newest first.

        Args:
            user_id: User to query.
            limit: Number of records. Defaults to the configured default and
                is clamped to the configured maximum.

        Returns:
            Transactions ordered newest first, ties in insertion order.
            Empty on storage error.

        Raises:
            ValueError: If limit is less than 1.
        """
        if limit is None:
            limit = settings.credit_history_default_limit
        if limit < 1:
            raise ValueError("limit must be a positive integer")
        limit = min(limit, settings.credit_history_max_limit)

        try:
            return await CreditRepository.list_recent(self._db, user_id, limit=limit)
        except _STORAGE_ERRORS:
            logger.exception("Failed to read credit history for user %s", user_id)
            await self._rollback()
            return []

    # =========================================================================
    # Mutations
    # =========================================================================

    async def deduct_credits(
        self,
        user_id: uuid.UUID,
        operation: AIOperation | str,
        description: str | None = None,
    ) -> CreditDeductionResult:
        """Atomically deduct the cost of an operation and record it.

        Args:
            user_id: User to charge.
            operation: Operation kind; its cost comes from the cost table.
            description: Optional description. Defaults to "AI <op> usage".

        Returns:
            CreditDeductionResult. Insufficient balance writes no record.

        Raises:
            UnknownOperationError: If the operation is not in the cost table.
        """
        op = resolve_operation(operation)
        cost = resolve_cost(op)

        try:
            new_balance = await CreditRepository.atomic_deduct(
                self._db, user_id=user_id, amount=cost
            )
            if new_balance is None:
                current = await CreditRepository.read_balance(self._db, user_id)
                if current is None:
                    logger.warning(
                        "Credit deduction for unknown user %s (%s)", user_id, op.value
                    )
                    return CreditDeductionResult(
                        success=False,
                        new_balance=0,
                        error=_ACCOUNT_NOT_FOUND_MESSAGE,
                        reason=LedgerReason.LOOKUP_MISS,
                    )
                logger.info(
                    "Insufficient credits for user %s: %s costs %d, balance %d",
                    user_id,
                    op.value,
                    cost,
                    current,
                )
                return CreditDeductionResult(
                    success=False,
                    new_balance=current,
                    reason=LedgerReason.INSUFFICIENT_FUNDS,
                )

            await CreditRepository.append_transaction(
                self._db,
                user_id=user_id,
                amount=-cost,
                transaction_type=CreditTransactionType.USAGE,
                balance_after=new_balance,
                description=description or f"AI {op.value} usage",
                ai_route=op.value,
            )
            await self._db.commit()
        except _STORAGE_ERRORS:
            logger.exception(
                "Failed to deduct %d credits for user %s (%s)",
                cost,
                user_id,
                op.value,
            )
            await self._rollback()
            return CreditDeductionResult(
                success=False,
                new_balance=0,
                error=_DEDUCT_FAILED_MESSAGE,
                reason=LedgerReason.STORAGE_ERROR,
            )

        return CreditDeductionResult(success=True, new_balance=new_balance)

    async def grant_credits(
        self,
        user_id: uuid.UUID,
        amount: int,
        transaction_type: CreditTransactionType | str,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
        external_reference: str | None = None,
    ) -> CreditGrantResult:
        """Atomically add credits and record the grant.

        The ledger does not look for earlier grants. When external_reference
        is supplied, the unique constraint on it rejects a replay, reported
        as DUPLICATE_REFERENCE with the current balance.

        Args:
            user_id: User to credit.
            amount: Positive number of credits.
            transaction_type: Any type except usage.
            description: Optional description.
            metadata: Opaque metadata, stored verbatim.
            external_reference: Optional idempotency key (e.g. payment event id).

        Returns:
            CreditGrantResult.

        Raises:
            ValueError: If amount is not a positive int or the type is
                unknown or usage.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise ValueError("amount must be a positive integer")
        txn_type = CreditTransactionType(transaction_type)
        if txn_type is CreditTransactionType.USAGE:
            raise ValueError("usage is a deduction type; use deduct_credits")

        try:
            new_balance = await CreditRepository.atomic_grant(
                self._db, user_id=user_id, amount=amount
            )
            if new_balance is None:
                logger.warning("Credit grant for unknown user %s", user_id)
                return CreditGrantResult(
                    success=False,
                    new_balance=0,
                    error=_ACCOUNT_NOT_FOUND_MESSAGE,
                    reason=LedgerReason.LOOKUP_MISS,
                )

            txn = await CreditRepository.append_transaction(
                self._db,
                user_id=user_id,
                amount=amount,
                transaction_type=txn_type,
                balance_after=new_balance,
                description=description,
                metadata=metadata,
                external_reference=external_reference,
            )
            await self._db.commit()
        except IntegrityError:
            await self._rollback()
            if external_reference is None:
                logger.exception("Failed to grant %d credits to user %s", amount, user_id)
                return self._grant_storage_failure()
            logger.warning(
                "Duplicate credit grant reference %s for user %s",
                external_reference,
                user_id,
            )
            return await self._duplicate_grant(user_id, external_reference)
        except _STORAGE_ERRORS:
            logger.exception("Failed to grant %d credits to user %s", amount, user_id)
            await self._rollback()
            return self._grant_storage_failure()

        logger.info(
            "Granted %d credits to user %s (%s), balance %d",
            amount,
            user_id,
            txn_type.value,
            new_balance,
        )
        return CreditGrantResult(
            success=True, new_balance=new_balance, transaction_id=txn.id
        )

    @staticmethod
    def _grant_storage_failure() -> CreditGrantResult:
        return CreditGrantResult(
            success=False,
            new_balance=0,
            error=_GRANT_FAILED_MESSAGE,
            reason=LedgerReason.STORAGE_ERROR,
        )

    async def _duplicate_grant(
        self, user_id: uuid.UUID, external_reference: str
    ) -> CreditGrantResult:
        """Build the result for a grant whose reference was already recorded."""
        try:
            existing = await CreditRepository.find_by_reference(
                self._db, external_reference
            )
            balance = await CreditRepository.read_balance(self._db, user_id)
        except _STORAGE_ERRORS:
            logger.exception(
                "Failed to read existing grant for reference %s", external_reference
            )
            await self._rollback()
            return self._grant_storage_failure()

        return CreditGrantResult(
            success=False,
            new_balance=balance or 0,
            error=f"Reference '{external_reference}' was already granted",
            reason=LedgerReason.DUPLICATE_REFERENCE,
            transaction_id=existing.id if existing is not None else None,
        )

    async def open_account(
        self,
        user_id: uuid.UUID,
        email: str,
        *,
        role: str = "student",
        full_name: str | None = None,
    ) -> CreditGrantResult:
        """Create a profile and record its starter grant in one transaction.

        The profile starts at 0 and the starter credits are added through
        the same grant path as any other bonus, so the ledger sums to the
        balance from the first row.

        Args:
            user_id: Auth identity for the new profile.
            email: Email address.
            role: student or teacher.
            full_name: Optional display name.

        Returns:
            CreditGrantResult with the opening balance.

        Raises:
            ConflictError: If a profile with this id or email exists.
        """
        starter_credits = settings.starter_credits
        txn_id: int | None = None
        balance = 0

        try:
            if await ProfileRepository.get_by_id(self._db, user_id) is not None:
                raise ConflictError(
                    code="ACCOUNT_EXISTS",
                    message=f"Account '{user_id}' already exists",
                )
            await ProfileRepository.create(
                self._db,
                user_id=user_id,
                email=email,
                role=role,
                full_name=full_name,
            )
            if starter_credits > 0:
                granted = await CreditRepository.atomic_grant(
                    self._db, user_id=user_id, amount=starter_credits
                )
                balance = granted if granted is not None else 0
                txn = await CreditRepository.append_transaction(
                    self._db,
                    user_id=user_id,
                    amount=starter_credits,
                    transaction_type=CreditTransactionType.BONUS,
                    balance_after=balance,
                    description=STARTER_CREDITS_DESCRIPTION,
                )
                txn_id = txn.id
            await self._db.commit()
        except IntegrityError:
            await self._rollback()
            raise ConflictError(
                code="ACCOUNT_EXISTS",
                message="An account with this id or email already exists",
            ) from None
        except _STORAGE_ERRORS:
            logger.exception("Failed to open account for user %s", user_id)
            await self._rollback()
            return self._grant_storage_failure()

        logger.info("Opened account %s with %d credits", user_id, balance)
        return CreditGrantResult(success=True, new_balance=balance, transaction_id=txn_id)

    # =========================================================================
    # Premium gate
    # =========================================================================

    async def check_and_deduct_credits(
        self,
        user_id: uuid.UUID,
        operation: AIOperation | str,
        description: str | None = None,
    ) -> GateDecision:
        """Decide whether a request may use the premium provider.

        The balance check is only a fast path: with no credits it returns
        immediately without touching the balance. Otherwise the atomic
        deduction is the authority, because a concurrent request may have
        spent the balance since the check.

        Args:
            user_id: User making the request.
            operation: Operation kind to bill.
            description: Optional usage description.

        Returns:
            GateDecision. Call exactly once per request, before the costed
            provider, and branch on use_premium.

        Raises:
            UnknownOperationError: If the operation is not in the cost table.
        """
        op = resolve_operation(operation)
        resolve_cost(op)

        check = await self.check_user_credits(user_id)
        if not check.should_use_premium:
            return GateDecision(
                use_premium=False,
                credit_balance=check.current_balance,
                reason=check.reason,
            )

        deduction = await self.deduct_credits(user_id, op, description)
        return GateDecision(
            use_premium=deduction.success,
            credit_balance=deduction.new_balance,
            deduction_result=deduction,
            reason=deduction.reason,
        )
