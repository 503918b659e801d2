"""Repository for credit ledger operations.

Provides database access for the credit_transactions table and atomic
balance operations on the profiles table.
"""

import uuid
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.credit import CreditTransaction, CreditTransactionType
from app.models.profile import Profile


class CreditRepository:
    """Stateless repository for CreditTransaction and balance operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def read_balance(db: AsyncSession, user_id: uuid.UUID) -> int | None:
        """Read the user's current balance.

        Args:
            db: Async database session.
            user_id: User to query balance for.

        Returns:
            Current balance in credits, or None if no profile exists.
        """
        stmt = select(Profile.credits).where(Profile.id == user_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def atomic_deduct(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        amount: int,
    ) -> int | None:
        """Atomically deduct credits if the balance covers the amount.

        The WHERE credits >= :amount guard and the row lock taken by the
        UPDATE serialize concurrent deductions for the same user, so two
        requests can never both spend the last credit.

        Args:
            db: Async database session.
            user_id: User to debit.
            amount: Credits to deduct (positive value).

        Returns:
            New balance if the deduction happened, None if the balance was
            insufficient or the profile does not exist.

        Raises:
            ValueError: If amount is not positive.
        """
        if amount <= 0:
            raise ValueError("atomic_deduct amount must be positive")
        result = await db.execute(
            text(
                "UPDATE profiles SET credits = credits - :amount, updated_at = now() "
                "WHERE id = :user_id AND credits >= :amount "
                "RETURNING credits"
            ),
            {"amount": amount, "user_id": user_id},
        )
        new_balance: int | None = result.scalar_one_or_none()
        return new_balance

    @staticmethod
    async def atomic_grant(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        amount: int,
    ) -> int | None:
        """Atomically add credits to a user's balance.

        Args:
            db: Async database session.
            user_id: User to credit.
            amount: Credits to add (positive value).

        Returns:
            New balance after crediting, None if the profile does not exist.

        Raises:
            ValueError: If amount is not positive.
        """
        if amount <= 0:
            raise ValueError("atomic_grant amount must be positive")
        result = await db.execute(
            text(
                "UPDATE profiles SET credits = credits + :amount, updated_at = now() "
                "WHERE id = :user_id RETURNING credits"
            ),
            {"amount": amount, "user_id": user_id},
        )
        new_balance: int | None = result.scalar_one_or_none()
        return new_balance

    @staticmethod
    async def append_transaction(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        amount: int,
        transaction_type: CreditTransactionType,
        balance_after: int,
        description: str | None = None,
        ai_route: str | None = None,
        metadata: dict[str, Any] | None = None,
        external_reference: str | None = None,
    ) -> CreditTransaction:
        """Append a transaction record.

        Args:
            db: Async database session.
            user_id: Account owner.
            amount: Signed amount (+grant, -deduction).
            transaction_type: Kind of balance change.
            balance_after: Balance after this change.
            description: Human-readable description.
            ai_route: Operation kind for usage records.
            metadata: Opaque caller metadata, stored verbatim.
            external_reference: Optional idempotency key (unique).

        Returns:
            Created CreditTransaction with database-generated fields.

        Raises:
            sqlalchemy.exc.IntegrityError: If external_reference already exists.
        """
        txn = CreditTransaction(
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type.value,
            balance_after=balance_after,
            description=description,
            ai_route=ai_route,
            metadata_=metadata,
            external_reference=external_reference,
        )
        db.add(txn)
        await db.flush()
        await db.refresh(txn)
        return txn

    @staticmethod
    async def list_recent(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        limit: int,
    ) -> list[CreditTransaction]:
        """List a user's most recent transactions, newest first.

        Ties on created_at (same database transaction) are broken by the
        identity key, so insertion order is preserved.

        Args:
            db: Async database session.
            user_id: User to query transactions for.
            limit: Maximum records to return.

        Returns:
            Transactions ordered by created_at DESC, id DESC.
        """
        stmt = (
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def find_by_reference(
        db: AsyncSession, external_reference: str
    ) -> CreditTransaction | None:
        """Fetch the transaction recorded for an external reference.

        Args:
            db: Async database session.
            external_reference: Caller idempotency key.

        Returns:
            CreditTransaction if found, None otherwise.
        """
        stmt = select(CreditTransaction).where(
            CreditTransaction.external_reference == external_reference
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
