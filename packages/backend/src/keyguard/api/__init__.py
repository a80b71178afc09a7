"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Auth is applied at the include_router level using FastAPI's
dependencies parameter. This protects all routes in each router
without modifying individual handlers. The health router is open.
"""

from fastapi import APIRouter, Depends

from keyguard.api.health import router as health_router
from keyguard.api.me import router as me_router
from keyguard.auth.dependencies import get_current_user

# All protected routers require authentication
_auth = [Depends(get_current_user)]

api_router = APIRouter(prefix="/api/v1")

# Open routes — no auth required
api_router.include_router(health_router, tags=["health"])

# Protected routes — require a valid bearer token for an existing user
api_router.include_router(me_router, tags=["me"], dependencies=_auth)
