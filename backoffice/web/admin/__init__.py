"""Core banking (admin) web routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from backoffice.web.admin.core_users import router as core_users_router
from backoffice.web.admin.dashboard import router as dashboard_router
from backoffice.web.admin.merchants import router as merchants_router
from backoffice.web.admin.transactions import router as transactions_router
from backoffice.web.auth.dependencies import require_core_session

router = APIRouter(
    prefix="/admin",
    tags=["web-admin"],
    dependencies=[Depends(require_core_session)],
)


@router.get("")
def admin_root():
    return RedirectResponse(url="/admin/dashboard", status_code=303)


router.include_router(dashboard_router)
router.include_router(merchants_router)
router.include_router(transactions_router)
router.include_router(core_users_router)
