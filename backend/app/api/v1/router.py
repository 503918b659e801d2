"""API v1 router aggregator.

All v1 endpoint routers are included here under the /api/v1 prefix.
"""

from fastapi import APIRouter

from app.api.v1 import ai, credits

router = APIRouter()

# =============================================================================
# Credits
# =============================================================================

router.include_router(credits.router, prefix="/credits", tags=["credits"])

# =============================================================================
# AI (credit-gated)
# =============================================================================

router.include_router(ai.router, prefix="/ai", tags=["ai"])
