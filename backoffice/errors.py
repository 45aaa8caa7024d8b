from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.csrf import get_csrf_token
from backoffice.services.api_errors import SessionExpired
from backoffice.services.session_context import clear_session_cookie, logout_session
from backoffice.services.web_common import is_htmx, templates
from backoffice.web.auth.dependencies import AuthenticationRequired, get_session_context

logger = logging.getLogger(__name__)

_FRIENDLY_DEFAULT_BAD_REQUEST = (
    "Some required information is missing or invalid. Please check the form and try again."
)
_TEMPLATE_STATUSES = {400, 403, 404, 409}


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _is_html_request(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    content_type = (request.headers.get("content-type") or "").lower()
    if is_htmx(request):
        return False
    if request.url.path.startswith("/api/"):
        return False
    if "application/json" in content_type:
        return False
    if "application/json" in accept and "text/html" not in accept:
        return False
    return True


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def _friendly_bad_request_message(detail: object) -> str:
    if isinstance(detail, str):
        msg = detail.strip()
        if not msg:
            return _FRIENDLY_DEFAULT_BAD_REQUEST
        lowered = msg.lower()
        if any(token in lowered for token in ("validation error", "traceback", "{", "[")):
            return _FRIENDLY_DEFAULT_BAD_REQUEST
        return msg
    if isinstance(detail, dict):
        for key in ("message", "detail", "error"):
            val = detail.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    return _FRIENDLY_DEFAULT_BAD_REQUEST


def _template_response(request: Request, status_code: int, message: str):
    template_status = status_code if status_code in _TEMPLATE_STATUSES else 500
    return templates.TemplateResponse(
        request,
        f"errors/{template_status}.html",
        {
            "message": message,
            "request_id": _request_id(request),
            "status_code": status_code,
            "session": get_session_context(request).session,
            "csrf_token": get_csrf_token(request),
        },
        status_code=status_code,
    )


def _redirect(request: Request, url: str) -> Response:
    """303 for page loads; HTMX swaps are told to navigate instead."""
    if is_htmx(request):
        return Response(status_code=204, headers={"HX-Redirect": url})
    return RedirectResponse(url=url, status_code=303)


def register_error_handlers(app) -> None:
    @app.exception_handler(AuthenticationRequired)
    async def auth_required_handler(request: Request, exc: AuthenticationRequired):
        """Send the browser to the page its session belongs on."""
        return _redirect(request, exc.redirect_url)

    @app.exception_handler(SessionExpired)
    async def session_expired_handler(request: Request, exc: SessionExpired):
        context = get_session_context(request)
        logger.info(
            "Banking API rejected the session token of %s; logging out", context.username
        )
        logout_session(context.session_id)
        response = _redirect(request, exc.redirect_url)
        clear_session_cookie(response)
        return response

    async def _handle_http_exception(request: Request, status_code: int, detail: object):
        if _is_html_request(request):
            if status_code == 401:
                return RedirectResponse(url="/", status_code=303)
            if status_code == 400:
                return _template_response(
                    request,
                    status_code=400,
                    message=_friendly_bad_request_message(detail),
                )
            if status_code == 403:
                message = detail if isinstance(detail, str) else (
                    "You do not have permission to view this page."
                )
                return _template_response(request, status_code=403, message=message)
            if status_code == 404:
                message = detail if isinstance(detail, str) and detail.strip() else "Page not found"
                return _template_response(request, status_code=404, message=message)
            if status_code == 409:
                message = detail if isinstance(detail, str) and detail.strip() else "Request conflict"
                return _template_response(request, status_code=409, message=message)
            if status_code >= 500:
                message = detail if isinstance(detail, str) and detail.strip() else (
                    "The banking service could not complete the request."
                )
                return _template_response(request, status_code=status_code, message=message)

        code = f"http_{status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(code, message, details, _request_id(request)),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _handle_http_exception(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return await _handle_http_exception(request, exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if _is_html_request(request):
            return _template_response(
                request,
                status_code=400,
                message=_FRIENDLY_DEFAULT_BAD_REQUEST,
            )
        errors = [
            {key: value for key, value in error.items() if key in ("loc", "msg", "type")}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", errors, _request_id(request)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        if _is_html_request(request):
            return _template_response(
                request,
                status_code=500,
                message="Oops! Something went wrong on our end. Please try again later.",
            )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )
