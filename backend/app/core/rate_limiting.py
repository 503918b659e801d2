"""Per-user request limits for the AI endpoints, using slowapi.

Every AI request costs a provider call and may cost a credit, so the /ai
routes are limited per user. In hosted mode the key is the subject of a
verifiable session cookie. Requests without one share a per-IP bucket,
as do all requests in local-first mode.

Usage in routers:
    @router.post("/chat")
    @limiter.limit(settings.rate_limit_ai)
    async def chat(request: Request, ...):
        ...
"""

import uuid

import jwt
from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.config import settings

_DEFAULT_RETRY_AFTER_SECONDS = 60


def _session_subject(request: Request) -> uuid.UUID | None:
    """Return the user id from a valid session cookie, else None.

    Revocation is not checked here; deps.py rejects revoked sessions
    before any AI work is done.
    """
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        return uuid.UUID(str(payload["sub"]))
    except (jwt.InvalidTokenError, KeyError, ValueError):
        return None


def rate_limit_key(request: Request) -> str:
    """Bucket key: "user:{id}" for a verified session, else the client IP."""
    if settings.auth_enabled:
        user_id = _session_subject(request)
        if user_id is not None:
            return f"user:{user_id}"
        return f"unauth:{get_remote_address(request)}"
    return get_remote_address(request)


# In-memory storage, one bucket set per process
limiter = Limiter(
    key_func=rate_limit_key,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    _request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Return 429 RATE_LIMITED with a Retry-After of one limit window."""
    try:
        retry_after = int(exc.limit.limit.get_expiry())
    except AttributeError:
        retry_after = _DEFAULT_RETRY_AFTER_SECONDS

    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
                "details": None,
            }
        },
        headers={"Retry-After": str(retry_after)},
    )
