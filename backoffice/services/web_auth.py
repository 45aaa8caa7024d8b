"""Service helpers for the public pages: portal choice, login and logout."""

import logging

from fastapi import Request

from backoffice.services.api_errors import ApiError, HttpStatusError, NetworkError
from backoffice.services.bank_api import BankApiClient
from backoffice.services.session_context import (
    CoreSession,
    MerchantSession,
    clear_session_cookie,
    login_session,
    logout_session,
    read_session,
    set_session_cookie,
)
from backoffice.services.web_common import redirect, render

logger = logging.getLogger(__name__)

PORTALS = {
    "core": {
        "title": "Core Banking Login",
        "heading": "Core Banking Portal",
        "action": "/core",
        "session_type": CoreSession,
    },
    "merchant": {
        "title": "Merchant Login",
        "heading": "Merchant Portal",
        "action": "/merchant",
        "session_type": MerchantSession,
    },
}

INVALID_CREDENTIALS = "Invalid username or password."


def home(request: Request):
    return render(request, "auth/home.html", {"portals": PORTALS})


def login_page(request: Request, user_type: str, error: str | None = None, username: str = ""):
    portal = PORTALS[user_type]
    return render(
        request,
        "auth/login.html",
        {"portal": portal, "user_type": user_type, "error": error, "username": username},
        status_code=200 if error is None else 400,
    )


def _login_error_message(exc: ApiError) -> str:
    if isinstance(exc, HttpStatusError) and exc.status in (400, 401, 403):
        return INVALID_CREDENTIALS
    if isinstance(exc, NetworkError):
        return "The banking service is unreachable. Please try again."
    return "Login failed. Please try again."


async def login_submit(
    request: Request,
    user_type: str,
    username: str,
    password: str,
    client: BankApiClient | None = None,
):
    portal = PORTALS[user_type]
    username = (username or "").strip()
    if not username or not password:
        return login_page(request, user_type, "Username and password are required.", username)

    client = client or BankApiClient()
    try:
        auth = await client.login(user_type, username, password)
    except ApiError as exc:
        logger.info("Console login rejected for %s user %s: %r", user_type, username, exc)
        return login_page(request, user_type, _login_error_message(exc), username)

    session = portal["session_type"](token=auth.token, username=username)
    context = login_session(session, previous=read_session(request))
    response = redirect(session.home_url)
    set_session_cookie(response, context.session_id, request)
    return response


def logout(request: Request):
    context = read_session(request)
    logout_session(context.session_id)
    response = redirect("/")
    clear_session_cookie(response)
    return response
