"""Core user management routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from backoffice.services import web_core_users as web_core_users_service
from backoffice.services.session_context import SessionContext
from backoffice.web.auth.dependencies import require_core_session
from backoffice.web.request_parsing import parse_form

router = APIRouter(prefix="/core-users", tags=["web-admin-core-users"])


@router.get("", response_class=HTMLResponse)
def core_users_list(request: Request, context: SessionContext = Depends(require_core_session)):
    return web_core_users_service.core_users_page(request, context)


@router.get("/table", response_class=HTMLResponse)
async def core_users_table(
    request: Request, context: SessionContext = Depends(require_core_session)
):
    """HTMX partial for the core users table."""
    return await web_core_users_service.core_users_table(request, context)


@router.post("", response_class=HTMLResponse)
async def core_user_create(
    request: Request,
    context: SessionContext = Depends(require_core_session),
    form: dict = Depends(parse_form),
):
    return await web_core_users_service.create_core_user(request, context, form)


@router.get("/{user_id}/edit", response_class=HTMLResponse)
async def core_user_edit(
    request: Request, user_id: str, context: SessionContext = Depends(require_core_session)
):
    return await web_core_users_service.edit_core_user_page(request, context, user_id)


@router.post("/{user_id}/edit", response_class=HTMLResponse)
async def core_user_update(
    request: Request,
    user_id: str,
    context: SessionContext = Depends(require_core_session),
    form: dict = Depends(parse_form),
):
    return await web_core_users_service.update_core_user(request, context, user_id, form)


@router.post("/{user_id}/delete", response_class=HTMLResponse)
async def core_user_delete(
    request: Request, user_id: str, context: SessionContext = Depends(require_core_session)
):
    return await web_core_users_service.delete_core_user(request, context, user_id)
