"""System-wide transaction routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from backoffice.services import web_transactions as web_transactions_service
from backoffice.services.session_context import SessionContext
from backoffice.web.auth.dependencies import require_core_session

router = APIRouter(prefix="/transactions", tags=["web-admin-transactions"])


@router.get("", response_class=HTMLResponse)
def transactions_list(request: Request, context: SessionContext = Depends(require_core_session)):
    return web_transactions_service.transactions_page(request, context)


@router.get("/table", response_class=HTMLResponse)
async def transactions_table(
    request: Request, context: SessionContext = Depends(require_core_session)
):
    """HTMX partial for the transactions table."""
    return await web_transactions_service.transactions_table(request, context)
