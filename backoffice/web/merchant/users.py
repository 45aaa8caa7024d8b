"""Merchant user routes of the merchant portal."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from backoffice.services import web_merchant_portal as web_merchant_portal_service
from backoffice.services.session_context import SessionContext
from backoffice.web.auth.dependencies import require_merchant_session
from backoffice.web.request_parsing import parse_form

router = APIRouter(prefix="/users", tags=["web-merchant-users"])


@router.get("", response_class=HTMLResponse)
async def users_list(
    request: Request, context: SessionContext = Depends(require_merchant_session)
):
    return await web_merchant_portal_service.users_page(request, context)


@router.get("/table", response_class=HTMLResponse)
async def users_table(
    request: Request, context: SessionContext = Depends(require_merchant_session)
):
    return await web_merchant_portal_service.users_table(request, context)


@router.post("", response_class=HTMLResponse)
async def user_create(
    request: Request,
    context: SessionContext = Depends(require_merchant_session),
    form: dict = Depends(parse_form),
):
    return await web_merchant_portal_service.create_user(request, context, form)


@router.get("/{user_id}/edit", response_class=HTMLResponse)
async def user_edit(
    request: Request, user_id: str, context: SessionContext = Depends(require_merchant_session)
):
    return await web_merchant_portal_service.edit_user_page(request, context, user_id)


@router.post("/{user_id}/edit", response_class=HTMLResponse)
async def user_update(
    request: Request,
    user_id: str,
    context: SessionContext = Depends(require_merchant_session),
    form: dict = Depends(parse_form),
):
    return await web_merchant_portal_service.update_user(request, context, user_id, form)


@router.post("/{user_id}/delete", response_class=HTMLResponse)
async def user_delete(
    request: Request, user_id: str, context: SessionContext = Depends(require_merchant_session)
):
    return await web_merchant_portal_service.delete_user(request, context, user_id)
