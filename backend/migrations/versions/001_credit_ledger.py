"""Create profiles and the credit ledger.

Revision ID: 001_credit_ledger
Revises:
Create Date: 2026-10-19

profiles.credits is the balance; credit_transactions is the append-only
ledger. SUM(credit_transactions.amount) per user equals profiles.credits.
The CHECK on profiles.credits is the storage-level guarantee that a
balance never goes negative.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_credit_ledger"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Shared column types
_PG_UUID = sa.dialects.postgresql.UUID(as_uuid=True)
_UUID_DEFAULT = sa.text("gen_random_uuid()")

_TRANSACTION_TYPES = (
    "'usage', 'purchase', 'subscription', 'bonus', 'refund', 'admin_grant'"
)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    """Create profiles and credit_transactions."""
    # 1. Profiles (one per auth identity, owns the balance)
    op.create_table(
        "profiles",
        sa.Column("id", _PG_UUID, server_default=_UUID_DEFAULT, primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column(
            "role", sa.String(20), server_default=sa.text("'student'"), nullable=False
        ),
        sa.Column(
            "is_admin", sa.Boolean, server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "plan_tier",
            sa.String(20),
            server_default=sa.text("'starter'"),
            nullable=False,
        ),
        sa.Column("credits", sa.Integer, server_default=sa.text("0"), nullable=False),
        sa.Column(
            "token_invalidated_before", sa.DateTime(timezone=True), nullable=True
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("credits >= 0", name="ck_profiles_credits_nonneg"),
        sa.CheckConstraint(
            "role IN ('student', 'teacher')", name="ck_profiles_role_valid"
        ),
        sa.CheckConstraint(
            "plan_tier IN ('starter', 'free', 'premium')",
            name="ck_profiles_plan_tier_valid",
        ),
    )

    # 2. Credit transactions (append-only)
    op.create_table(
        "credit_transactions",
        sa.Column(
            "id",
            sa.BigInteger,
            sa.Identity(always=False),
            primary_key=True,
        ),
        sa.Column(
            "user_id",
            _PG_UUID,
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("ai_route", sa.String(50), nullable=True),
        sa.Column("balance_after", sa.Integer, nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("metadata", sa.dialects.postgresql.JSONB, nullable=True),
        sa.Column("external_reference", sa.String(255), nullable=True, unique=True),
        _timestamp("created_at"),
        sa.CheckConstraint("amount <> 0", name="ck_credit_txn_amount_nonzero"),
        sa.CheckConstraint("balance_after >= 0", name="ck_credit_txn_balance_nonneg"),
        sa.CheckConstraint(
            f"transaction_type IN ({_TRANSACTION_TYPES})",
            name="ck_credit_txn_type_valid",
        ),
    )

    # Newest-first history per user; id breaks created_at ties
    op.create_index(
        "ix_credit_transactions_user_created",
        "credit_transactions",
        ["user_id", sa.text("created_at DESC"), sa.text("id DESC")],
    )


def downgrade() -> None:
    """Drop the ledger tables."""
    op.drop_index(
        "ix_credit_transactions_user_created", table_name="credit_transactions"
    )
    op.drop_table("credit_transactions")
    op.drop_table("profiles")
