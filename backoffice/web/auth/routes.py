"""Public routes: portal choice, login forms and logout."""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from backoffice.config import settings
from backoffice.services import web_auth as web_auth_service
from backoffice.web.auth.dependencies import redirect_if_authenticated

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(tags=["web-auth"])
public_router = APIRouter(dependencies=[Depends(redirect_if_authenticated)])


@public_router.get("/", response_class=HTMLResponse)
def home(request: Request):
    """Choose between the core banking and merchant portals."""
    return web_auth_service.home(request)


@public_router.get("/core", response_class=HTMLResponse)
def core_login_page(request: Request):
    return web_auth_service.login_page(request, "core")


@public_router.post("/core", response_class=HTMLResponse)
@limiter.limit(settings.login_rate_limit)
async def core_login_submit(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
):
    return await web_auth_service.login_submit(request, "core", username, password)


@public_router.get("/merchant", response_class=HTMLResponse)
def merchant_login_page(request: Request):
    return web_auth_service.login_page(request, "merchant")


@public_router.post("/merchant", response_class=HTMLResponse)
@limiter.limit(settings.login_rate_limit)
async def merchant_login_submit(
    request: Request,
    username: str = Form(default=""),
    password: str = Form(default=""),
):
    return await web_auth_service.login_submit(request, "merchant", username, password)


@router.get("/logout")
def logout(request: Request):
    return web_auth_service.logout(request)


router.include_router(public_router)
