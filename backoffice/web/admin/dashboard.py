"""Admin dashboard web routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from backoffice.services import web_admin_dashboard as web_admin_dashboard_service
from backoffice.services.session_context import SessionContext
from backoffice.web.auth.dependencies import require_core_session

router = APIRouter(tags=["web-admin-dashboard"])


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request, context: SessionContext = Depends(require_core_session)):
    """Admin dashboard overview page."""
    return await web_admin_dashboard_service.dashboard(request, context)
