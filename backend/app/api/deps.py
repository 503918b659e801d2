"""Shared dependencies for API endpoints.

Authentication, admin gating and the per-request credit ledger / tiered AI
service. Local-first mode uses DEFAULT_USER_ID; hosted mode validates a
JWT from the session cookie.
"""

import uuid
from typing import Annotated

import jwt
from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import AdminRequiredError, UnauthorizedError
from app.models import Profile
from app.providers.config import ProviderConfig
from app.providers.factory import get_free_provider, get_premium_provider
from app.services.ai_gateway import TieredAIService
from app.services.credit_ledger import CreditLedger


async def get_current_user_id(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> uuid.UUID:
    """Get current user ID from auth context.

    Validates the JWT from the httpOnly cookie when auth is enabled and
    falls back to DEFAULT_USER_ID when it is not.

    Validation steps (hosted mode):
    1. Read JWT from cookie
    2. Decode + verify signature (HS256)
    3. Verify exp, aud, iss claims
    4. Extract sub as UUID
    5. Check token_invalidated_before (revocation)

    Args:
        request: HTTP request (injected by FastAPI).
        db: Database session for revocation check (injected).

    Returns:
        UUID of the current authenticated user.

    Raises:
        UnauthorizedError: 401 for any auth failure.
    """
    if not settings.auth_enabled:
        # Local-first mode: use DEFAULT_USER_ID from environment
        if settings.default_user_id is None:
            raise UnauthorizedError()
        return settings.default_user_id

    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise UnauthorizedError()

    # Security: the 401 message never says WHY auth failed (expired, bad sig, etc.)
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        user_id = uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
        raise UnauthorizedError() from exc

    # Security: iat is required for revocation check. A JWT without iat
    # would bypass token_invalidated_before entirely.
    iat = payload.get("iat")
    if iat is None:
        raise UnauthorizedError()

    result = await db.execute(
        select(Profile.token_invalidated_before).where(Profile.id == user_id)
    )
    invalidated_before = result.scalar_one_or_none()
    if invalidated_before is not None and iat < invalidated_before.timestamp():
        raise UnauthorizedError()

    return user_id


async def get_current_user(
    user_id: Annotated[uuid.UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Profile:
    """Get the full Profile for the current user.

    Most endpoints should use get_current_user_id instead.

    Raises:
        UnauthorizedError: 401 if the profile does not exist.
    """
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise UnauthorizedError()
    return profile


# Reusable type aliases for dependency injection
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[Profile, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


async def require_admin(user: CurrentUser) -> Profile:
    """Require the current profile to carry the admin flag.

    Raises:
        AdminRequiredError: 403 when the user is not an admin.
    """
    if not user.is_admin:
        raise AdminRequiredError()
    return user


AdminUser = Annotated[Profile, Depends(require_admin)]


def get_credit_ledger(db: DbSession) -> CreditLedger:
    """Credit ledger bound to the request's database session."""
    return CreditLedger(db)


Ledger = Annotated[CreditLedger, Depends(get_credit_ledger)]


def get_ai_service(ledger: Ledger) -> TieredAIService:
    """Tiered AI service using the provider singletons.

    Args:
        ledger: Request-scoped credit ledger (injected).

    Returns:
        TieredAIService routing between the premium and free providers.
    """
    config = ProviderConfig.from_env()
    return TieredAIService(
        ledger,
        premium=get_premium_provider(config),
        free=get_free_provider(config),
        config=config,
    )


AIService = Annotated[TieredAIService, Depends(get_ai_service)]
