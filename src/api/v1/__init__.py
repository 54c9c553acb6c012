"""
API v1 package.

Aggregates the versioned routers of the marketplace API.
"""

from fastapi import APIRouter

from src.api.v1.admin import router as admin_router
from src.api.v1.ebooks import router as ebooks_router
from src.api.v1.students import router as students_router

router = APIRouter()
router.include_router(ebooks_router)
router.include_router(students_router)
router.include_router(admin_router)

__all__ = ["router"]
