"""Merchant management routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from backoffice.services import web_merchants as web_merchants_service
from backoffice.services.session_context import SessionContext
from backoffice.web.auth.dependencies import require_core_session
from backoffice.web.request_parsing import parse_form

router = APIRouter(prefix="/merchants", tags=["web-admin-merchants"])


@router.get("", response_class=HTMLResponse)
def merchants_list(request: Request, context: SessionContext = Depends(require_core_session)):
    return web_merchants_service.merchants_page(request, context)


@router.get("/table", response_class=HTMLResponse)
async def merchants_table(
    request: Request, context: SessionContext = Depends(require_core_session)
):
    """HTMX partial for the merchants table."""
    return await web_merchants_service.merchants_table(request, context)


@router.post("", response_class=HTMLResponse)
async def merchant_create(
    request: Request,
    context: SessionContext = Depends(require_core_session),
    form: dict = Depends(parse_form),
):
    return await web_merchants_service.create_merchant(request, context, form)


@router.get("/{merchant_id}", response_class=HTMLResponse)
async def merchant_detail(
    request: Request, merchant_id: str, context: SessionContext = Depends(require_core_session)
):
    return await web_merchants_service.merchant_detail_page(request, context, merchant_id)


@router.get("/{merchant_id}/users/table", response_class=HTMLResponse)
async def merchant_users_table(
    request: Request, merchant_id: str, context: SessionContext = Depends(require_core_session)
):
    return await web_merchants_service.merchant_users_table(request, context, merchant_id)


@router.get("/{merchant_id}/transactions/table", response_class=HTMLResponse)
async def merchant_transactions_table(
    request: Request, merchant_id: str, context: SessionContext = Depends(require_core_session)
):
    return await web_merchants_service.merchant_transactions_table(request, context, merchant_id)


@router.post("/{merchant_id}/users", response_class=HTMLResponse)
async def merchant_user_create(
    request: Request,
    merchant_id: str,
    context: SessionContext = Depends(require_core_session),
    form: dict = Depends(parse_form),
):
    return await web_merchants_service.add_merchant_user(request, context, merchant_id, form)


@router.get("/{merchant_id}/users/{user_id}/edit", response_class=HTMLResponse)
async def merchant_user_edit(
    request: Request,
    merchant_id: str,
    user_id: str,
    context: SessionContext = Depends(require_core_session),
):
    return await web_merchants_service.edit_merchant_user_page(
        request, context, merchant_id, user_id
    )


@router.post("/{merchant_id}/users/{user_id}/edit", response_class=HTMLResponse)
async def merchant_user_update(
    request: Request,
    merchant_id: str,
    user_id: str,
    context: SessionContext = Depends(require_core_session),
    form: dict = Depends(parse_form),
):
    return await web_merchants_service.update_user_of_merchant(
        request, context, merchant_id, user_id, form
    )


@router.post("/{merchant_id}/users/{user_id}/delete", response_class=HTMLResponse)
async def merchant_user_delete(
    request: Request,
    merchant_id: str,
    user_id: str,
    context: SessionContext = Depends(require_core_session),
):
    return await web_merchants_service.delete_user_of_merchant(
        request, context, merchant_id, user_id
    )
