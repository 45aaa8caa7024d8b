"""CSRF protection utilities using double-submit cookie pattern."""

import secrets
from urllib.parse import parse_qs

from fastapi import Request
from starlette.responses import Response

from backoffice.config import settings

CSRF_COOKIE_NAME = "csrf_token"
CSRF_FORM_FIELD = "_csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_TOKEN_LENGTH = 32

# Forms post with _csrf_token; HTMX sends the header from hx-headers on <body>.
PROTECTED_PREFIXES = ("/admin/", "/merchant", "/core", "/logout")
EXEMPT_PREFIXES = ("/health", "/metrics", "/static/")


def generate_csrf_token() -> str:
    """Generate a cryptographically secure CSRF token."""
    return secrets.token_urlsafe(CSRF_TOKEN_LENGTH)


def get_csrf_token(request: Request) -> str:
    """Token for the current request, set by the middleware."""
    token = getattr(request.state, "csrf_token", None)
    if token:
        return token
    return request.cookies.get(CSRF_COOKIE_NAME) or generate_csrf_token()


def is_https_request(request: Request | None) -> bool:
    """Return True when request is HTTPS (directly or via proxy header)."""
    if not request:
        return False
    forwarded_proto = request.headers.get("x-forwarded-proto", "")
    if forwarded_proto:
        return forwarded_proto.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"


def set_csrf_cookie(response: Response, token: str, request: Request | None = None) -> None:
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=token,
        httponly=False,  # read by the page to fill hx-headers
        samesite="strict",
        secure=settings.secure_cookies and is_https_request(request),
        max_age=3600 * 24,
    )


def needs_protection(path: str) -> bool:
    if any(path.startswith(prefix) for prefix in EXEMPT_PREFIXES):
        return False
    return path == "/" or any(path.startswith(prefix) for prefix in PROTECTED_PREFIXES)


def submitted_token(request: Request, body: bytes) -> str | None:
    """Token sent with a state-changing request: header first, then form body."""
    header_token = request.headers.get(CSRF_HEADER_NAME)
    if header_token:
        return header_token
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" not in content_type:
        return None
    try:
        form_data = parse_qs(body.decode("utf-8"))
    except UnicodeDecodeError:
        return None
    return form_data.get(CSRF_FORM_FIELD, [None])[0]


def tokens_match(cookie_token: str | None, candidate: str | None) -> bool:
    if not cookie_token or not candidate:
        return False
    return secrets.compare_digest(cookie_token, candidate)
