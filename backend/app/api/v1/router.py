"""API v1 router aggregator.

All v1 endpoint routers are included here and mounted at /api/v1.
"""

from fastapi import APIRouter

from app.api.v1 import ai, auth, subscription

router = APIRouter()

# =============================================================================
# License keys
# =============================================================================

router.include_router(auth.router, prefix="/auth", tags=["auth"])

# =============================================================================
# AI completions (license-key authenticated, quota metered)
# =============================================================================

router.include_router(ai.router, prefix="/ai", tags=["ai"])

# =============================================================================
# Subscription & Billing
# =============================================================================

router.include_router(
    subscription.router, prefix="/subscription", tags=["subscription"]
)
