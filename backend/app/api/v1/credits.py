"""Credits API router.

Balance, history, gate preview and cost table for the current user, plus
admin endpoints for opening accounts and granting credits. The ledger
reports failures as results; this layer turns them into API errors.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Query, status

from app.api.deps import AdminUser, CurrentUserId, Ledger
from app.core.config import settings
from app.core.errors import (
    ConflictError,
    CreditsUnavailableError,
    NotFoundError,
    ValidationError,
)
from app.core.responses import DataResponse, ListMeta, ListResponse
from app.models.credit import CreditTransaction
from app.schemas.credits import (
    BalanceResponse,
    CreditCheckResponse,
    CreditCostResponse,
    CreditGrantResponse,
    CreditTransactionResponse,
    GrantCreditsRequest,
    OpenAccountRequest,
)
from app.services.credit_costs import CREDIT_COSTS
from app.services.credit_ledger import CreditGrantResult, LedgerReason

router = APIRouter()

# Entries shown alongside the balance
_RECENT_TRANSACTIONS = 20

HistoryLimit = Annotated[
    int | None,
    Query(description="Number of entries (clamped to the configured maximum)"),
]


def _transaction_response(txn: CreditTransaction) -> CreditTransactionResponse:
    return CreditTransactionResponse(
        id=txn.id,
        amount=txn.amount,
        transaction_type=txn.transaction_type,
        ai_route=txn.ai_route,
        balance_after=txn.balance_after,
        description=txn.description,
        metadata=txn.metadata_,
        created_at=txn.created_at,
    )


# =============================================================================
# Current user
# =============================================================================


@router.get("/balance")
async def get_balance(
    user_id: CurrentUserId,
    ledger: Ledger,
) -> DataResponse[BalanceResponse]:
    """Return the balance, a low-balance flag and the most recent entries."""
    balance = await ledger.get_credit_balance(user_id)
    recent = await ledger.get_credit_history(user_id, _RECENT_TRANSACTIONS)
    return DataResponse(
        data=BalanceResponse(
            balance=balance,
            is_low=balance < settings.low_credit_threshold,
            recent_transactions=[_transaction_response(txn) for txn in recent],
        )
    )


@router.get("/history")
async def get_history(
    user_id: CurrentUserId,
    ledger: Ledger,
    limit: HistoryLimit = None,
) -> ListResponse[CreditTransactionResponse]:
    """Return the most recent ledger entries, newest first."""
    if limit is None:
        limit = settings.credit_history_default_limit
    try:
        txns = await ledger.get_credit_history(user_id, limit)
    except ValueError as e:
        raise ValidationError(
            "Invalid history limit",
            details=[
                {"loc": ["query", "limit"], "msg": str(e), "type": "value_error"}
            ],
        ) from None

    effective_limit = min(limit, settings.credit_history_max_limit)
    return ListResponse(
        data=[_transaction_response(txn) for txn in txns],
        meta=ListMeta(count=len(txns), limit=effective_limit),
    )


@router.get("/check")
async def check_credits(
    user_id: CurrentUserId,
    ledger: Ledger,
) -> DataResponse[CreditCheckResponse]:
    """Preview whether the next AI request would use the premium provider."""
    check = await ledger.check_user_credits(user_id)
    return DataResponse(
        data=CreditCheckResponse(
            has_credits=check.has_credits,
            current_balance=check.current_balance,
            should_use_premium=check.should_use_premium,
            reason=check.reason.value if check.reason is not None else None,
        )
    )


@router.get("/costs")
async def list_costs(
    _user_id: CurrentUserId,
) -> DataResponse[list[CreditCostResponse]]:
    """Return the credit cost of every AI operation."""
    return DataResponse(
        data=[
            CreditCostResponse(operation=op.value, cost=cost)
            for op, cost in CREDIT_COSTS.items()
        ]
    )


# =============================================================================
# Admin
# =============================================================================


def _grant_response(
    user_id: uuid.UUID, result: CreditGrantResult
) -> CreditGrantResponse:
    """Map a grant result to a response, raising for failures."""
    if result.success:
        return CreditGrantResponse(
            user_id=user_id,
            new_balance=result.new_balance,
            transaction_id=result.transaction_id,
        )
    if result.reason is LedgerReason.LOOKUP_MISS:
        raise NotFoundError("Account", str(user_id))
    if result.reason is LedgerReason.DUPLICATE_REFERENCE:
        raise ConflictError(
            code="DUPLICATE_REFERENCE",
            message=result.error or "Reference was already granted",
            details=[
                {
                    "transaction_id": result.transaction_id,
                    "current_balance": result.new_balance,
                }
            ],
        )
    raise CreditsUnavailableError()


@router.post("/accounts", status_code=status.HTTP_201_CREATED)
async def open_account(
    _admin: AdminUser,
    ledger: Ledger,
    body: OpenAccountRequest,
) -> DataResponse[CreditGrantResponse]:
    """Create a profile with its starter credits."""
    result = await ledger.open_account(
        body.user_id,
        body.email,
        role=body.role,
        full_name=body.full_name,
    )
    return DataResponse(data=_grant_response(body.user_id, result))


@router.post("/grants", status_code=status.HTTP_201_CREATED)
async def grant_credits(
    _admin: AdminUser,
    ledger: Ledger,
    body: GrantCreditsRequest,
) -> DataResponse[CreditGrantResponse]:
    """Grant credits to an account.

    Supplying external_reference makes the grant safe to replay: a second
    grant with the same reference is rejected with 409.
    """
    result = await ledger.grant_credits(
        body.user_id,
        body.amount,
        body.transaction_type,
        description=body.description,
        metadata=body.metadata,
        external_reference=body.external_reference,
    )
    return DataResponse(data=_grant_response(body.user_id, result))
