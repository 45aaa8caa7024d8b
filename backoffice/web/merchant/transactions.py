"""Merchant account transaction routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from backoffice.services import web_merchant_portal as web_merchant_portal_service
from backoffice.services.session_context import SessionContext
from backoffice.web.auth.dependencies import require_merchant_session
from backoffice.web.request_parsing import parse_form

router = APIRouter(prefix="/transactions", tags=["web-merchant-transactions"])


@router.get("", response_class=HTMLResponse)
async def transactions_list(
    request: Request, context: SessionContext = Depends(require_merchant_session)
):
    return await web_merchant_portal_service.transactions_page(request, context)


@router.get("/table", response_class=HTMLResponse)
async def transactions_table(
    request: Request, context: SessionContext = Depends(require_merchant_session)
):
    """HTMX partial for the account transactions table."""
    return await web_merchant_portal_service.transactions_table(request, context)


@router.post("", response_class=HTMLResponse)
async def transaction_create(
    request: Request,
    context: SessionContext = Depends(require_merchant_session),
    form: dict = Depends(parse_form),
):
    return await web_merchant_portal_service.create_transaction(request, context, form)
