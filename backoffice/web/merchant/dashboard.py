"""Merchant dashboard routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from backoffice.services import web_merchant_portal as web_merchant_portal_service
from backoffice.services.session_context import SessionContext
from backoffice.web.auth.dependencies import require_merchant_session

router = APIRouter(tags=["web-merchant-dashboard"])


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request, context: SessionContext = Depends(require_merchant_session)
):
    """Balance, account and recent activity of the signed-in merchant."""
    return await web_merchant_portal_service.dashboard(request, context)
