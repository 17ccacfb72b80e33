"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, error helper) lives here; every sub-router
imports what it needs from this package.
"""

import logging
import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
RATE_LIMIT = os.getenv("RATE_LIMIT", "100/15minutes")

IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)


def internal_error(action: str, error: Exception) -> HTTPException:
    """Log an unexpected failure and turn it into a 500 response."""
    logger.error(f"Error {action}: {error}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(error)}")


# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from tournament.api.routes.players import router as players_router  # noqa: E402
from tournament.api.routes.matches import router as matches_router  # noqa: E402
from tournament.api.routes.phases import router as phases_router  # noqa: E402
from tournament.api.routes.stats import router as stats_router  # noqa: E402

router = APIRouter()
router.include_router(players_router)
router.include_router(matches_router)
router.include_router(phases_router)
router.include_router(stats_router)
