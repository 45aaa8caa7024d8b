"""Console web routes."""

from fastapi import APIRouter

from backoffice.web.admin import router as admin_router
from backoffice.web.auth import router as auth_router
from backoffice.web.merchant import router as merchant_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(admin_router)
router.include_router(merchant_router)

__all__ = ["router"]
