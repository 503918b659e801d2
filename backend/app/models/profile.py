"""Profile model - one row per user identity, owns the credit balance.

The credits column is only ever changed by the conditional UPDATE
statements in CreditRepository. The CHECK constraint is the storage-layer
guarantee that the balance never goes negative.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.credit import CreditTransaction

_DEFAULT_UUID = text("gen_random_uuid()")


class Profile(Base, TimestampMixin):
    """User profile with its credit balance.

    Attributes:
        id: UUID primary key (the auth identity).
        email: Unique email address.
        full_name: Display name.
        role: student or teacher.
        is_admin: Whether the user has admin privileges.
        plan_tier: starter, free or premium.
        credits: Current credit balance. Never negative.
        token_invalidated_before: JWTs issued before this are rejected.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_profiles_credits_nonneg"),
        CheckConstraint(
            "role IN ('student', 'teacher')",
            name="ck_profiles_role_valid",
        ),
        CheckConstraint(
            "plan_tier IN ('starter', 'free', 'premium')",
            name="ck_profiles_plan_tier_valid",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    full_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text("'student'"),
        default="student",
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    plan_tier: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text("'starter'"),
        default="starter",
    )
    credits: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    token_invalidated_before: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    credit_transactions: Mapped[list["CreditTransaction"]] = relationship(
        "CreditTransaction",
        back_populates="profile",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
