"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
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

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from rinkleague.api.routes.events import router as events_router  # noqa: E402
from rinkleague.api.routes.registrations import router as registrations_router  # noqa: E402
from rinkleague.api.routes.captains import router as captains_router  # noqa: E402
from rinkleague.api.routes.admin import router as admin_router  # noqa: E402

router = APIRouter()
router.include_router(events_router)
router.include_router(registrations_router)
router.include_router(captains_router)
router.include_router(admin_router)
