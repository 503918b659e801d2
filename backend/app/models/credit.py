"""Credit ledger ORM model - append-only, no TimestampMixin.

CreditTransaction records every balance change. Rows are never updated or
deleted by application code; SUM(amount) per user equals profiles.credits.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Identity,
    Index,
    Integer,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.profile import Profile


class CreditTransactionType(str, Enum):
    """Kinds of balance change.

    USAGE is the only debit type; every other type is a grant.
    """

    USAGE = "usage"
    PURCHASE = "purchase"
    SUBSCRIPTION = "subscription"
    BONUS = "bonus"
    REFUND = "refund"
    ADMIN_GRANT = "admin_grant"


_TYPE_VALUES = ", ".join(f"'{t.value}'" for t in CreditTransactionType)


class CreditTransaction(Base):
    """Append-only ledger of all credit balance changes.

    Positive amounts = grants (purchases, subscription allotments, bonuses,
    refunds). Negative amounts = usage deductions.

    Attributes:
        id: Identity primary key. Breaks created_at ties in insertion order.
        user_id: FK to profiles table.
        amount: Signed credit amount (+grant, -deduction). Never zero.
        transaction_type: CreditTransactionType value.
        ai_route: Operation kind for usage rows (chat, ocr, ...).
        balance_after: Balance immediately after this change.
        description: Human-readable description.
        metadata_: Opaque caller metadata, stored verbatim ("metadata" column).
        external_reference: Optional caller idempotency key (unique).
        created_at: Transaction timestamp.
    """

    __tablename__ = "credit_transactions"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_credit_txn_amount_nonzero"),
        CheckConstraint("balance_after >= 0", name="ck_credit_txn_balance_nonneg"),
        CheckConstraint(
            f"transaction_type IN ({_TYPE_VALUES})",
            name="ck_credit_txn_type_valid",
        ),
        Index(
            "ix_credit_transactions_user_created",
            "user_id",
            text("created_at DESC"),
            text("id DESC"),
        ),
    )

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    transaction_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    ai_route: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    balance_after: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    metadata_: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONB,
        nullable=True,
    )
    external_reference: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    profile: Mapped["Profile"] = relationship(
        "Profile",
        back_populates="credit_transactions",
    )
