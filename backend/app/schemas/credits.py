"""Credit ledger request/response schemas.

All schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Grant types an admin may record. usage is a deduction and never granted.
GrantType = Literal["purchase", "subscription", "bonus", "refund", "admin_grant"]

# =============================================================================
# Response schemas
# =============================================================================


class CreditTransactionResponse(BaseModel):
    """One ledger entry.

    Attributes:
        id: Transaction id (insertion order).
        amount: Signed amount (+grant, -deduction).
        transaction_type: usage, purchase, subscription, bonus, refund, admin_grant.
        ai_route: Operation kind for usage entries.
        balance_after: Balance immediately after this entry.
        description: Human-readable description, or None.
        metadata: Caller metadata as stored.
        created_at: Transaction timestamp.
    """

    model_config = ConfigDict(extra="forbid")

    id: int
    amount: int
    transaction_type: str
    ai_route: str | None
    balance_after: int
    description: str | None
    metadata: dict[str, Any] | None
    created_at: datetime


class BalanceResponse(BaseModel):
    """Response for GET /api/v1/credits/balance.

    Attributes:
        balance: Current credit balance (0 when unavailable).
        is_low: True when the balance is below the low-credit threshold.
        recent_transactions: Most recent entries, newest first.
    """

    model_config = ConfigDict(extra="forbid")

    balance: int
    is_low: bool
    recent_transactions: list[CreditTransactionResponse]


class CreditCheckResponse(BaseModel):
    """Response for GET /api/v1/credits/check."""

    model_config = ConfigDict(extra="forbid")

    has_credits: bool
    current_balance: int
    should_use_premium: bool
    reason: str | None


class CreditCostResponse(BaseModel):
    """One row of the credit cost table."""

    model_config = ConfigDict(extra="forbid")

    operation: str
    cost: int


class CreditGrantResponse(BaseModel):
    """Response for admin grant and account-opening endpoints."""

    model_config = ConfigDict(extra="forbid")

    user_id: uuid.UUID
    new_balance: int
    transaction_id: int | None


# =============================================================================
# Request schemas
# =============================================================================


class OpenAccountRequest(BaseModel):
    """Request body for POST /api/v1/credits/accounts."""

    model_config = ConfigDict(extra="forbid")

    user_id: uuid.UUID
    email: str = Field(..., min_length=3, max_length=255)
    role: Literal["student", "teacher"] = "student"
    full_name: str | None = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Require a single @ with text on both sides."""
        local, sep, domain = v.strip().partition("@")
        if not sep or not local or not domain or "@" in domain:
            msg = "email must be a valid email address"
            raise ValueError(msg)
        return v.strip()


class GrantCreditsRequest(BaseModel):
    """Request body for POST /api/v1/credits/grants.

    Attributes:
        user_id: Account to credit.
        amount: Positive number of credits.
        transaction_type: Grant kind.
        description: Optional description.
        metadata: Opaque metadata stored verbatim.
        external_reference: Optional idempotency key, e.g. a payment order id.
    """

    model_config = ConfigDict(extra="forbid")

    user_id: uuid.UUID
    amount: int = Field(..., ge=1, le=100_000, strict=True)
    transaction_type: GrantType = "admin_grant"
    description: str | None = Field(default=None, max_length=255)
    metadata: dict[str, Any] | None = None
    external_reference: str | None = Field(default=None, min_length=1, max_length=255)
