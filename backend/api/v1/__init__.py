"""Version 1 API routers."""

from fastapi import APIRouter

from . import admin, auth, owner, profile

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(owner.router)
api_router.include_router(admin.router)
api_router.include_router(profile.router)

__all__ = ["api_router"]
