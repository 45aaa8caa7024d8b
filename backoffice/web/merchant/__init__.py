"""Merchant portal web routes."""

from fastapi import APIRouter, Depends

from backoffice.web.auth.dependencies import require_merchant_session
from backoffice.web.merchant.dashboard import router as dashboard_router
from backoffice.web.merchant.transactions import router as transactions_router
from backoffice.web.merchant.users import router as users_router

router = APIRouter(
    prefix="/merchant",
    tags=["web-merchant"],
    dependencies=[Depends(require_merchant_session)],
)

router.include_router(dashboard_router)
router.include_router(transactions_router)
router.include_router(users_router)
