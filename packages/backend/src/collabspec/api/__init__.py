"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Health is open. The auth router mixes open routes (register,
login, refresh) with protected ones (logout, me, profile); protection is
declared per route with Depends(get_validated_user).
"""

from fastapi import APIRouter

from collabspec.api.auth import router as auth_router
from collabspec.api.health import router as health_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
