"""API Routes module"""
from fastapi import APIRouter

from .requests import router as requests_router
from .stages import router as stages_router
from .admin import router as admin_router
from .directory import router as directory_router

# Main API router
api_router = APIRouter()

api_router.include_router(requests_router, prefix="/requests", tags=["Requests"])
api_router.include_router(stages_router, prefix="/stages", tags=["Stages"])
api_router.include_router(admin_router, prefix="/admin", tags=["Admin"])
api_router.include_router(directory_router, prefix="/directory", tags=["Directory"])

__all__ = ["api_router"]
