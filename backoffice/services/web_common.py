"""Helpers shared by the page containers."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.templating import Jinja2Templates
from starlette.responses import RedirectResponse, Response

from backoffice.config import settings
from backoffice.csrf import get_csrf_token
from backoffice.services.api_errors import ApiError, SessionExpired
from backoffice.services.resource_cache import QueryResult, ResourceCache

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

NOTICES = {
    "merchant-created": "Merchant created successfully!",
    "user-created": "User created successfully!",
    "user-updated": "User updated successfully!",
    "user-deleted": "User deleted.",
    "transaction-created": "Transaction created successfully!",
}


def format_money(value: Any) -> str:
    if value is None:
        return "N/A"
    try:
        return f"${float(value):.2f}"
    except (TypeError, ValueError):
        return "N/A"


def format_timestamp(value: Any) -> str:
    if not value:
        return "N/A"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    try:
        return datetime.fromisoformat(str(value)).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return str(value)


templates.env.filters["money"] = format_money
templates.env.filters["timestamp"] = format_timestamp
templates.env.globals["filter_debounce_ms"] = settings.filter_debounce_ms


def is_htmx(request: Request) -> bool:
    return request.headers.get("HX-Request", "").lower() == "true"


def render(
    request: Request,
    template: str,
    context: dict[str, Any] | None = None,
    status_code: int = 200,
) -> Response:
    session_context = getattr(request.state, "session_context", None)
    page_context = {
        "csrf_token": get_csrf_token(request),
        "session": session_context.session if session_context else None,
        "notice": NOTICES.get(request.query_params.get("notice", "")),
    }
    page_context.update(context or {})
    return templates.TemplateResponse(request, template, page_context, status_code=status_code)


def superseded_response() -> Response:
    """Answer for an HTMX request whose result a newer request replaced."""
    return Response(status_code=204, headers={"HX-Reswap": "none"})


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def check_session(*results: QueryResult | ApiError | None) -> None:
    """Raise ``SessionExpired`` if the banking API rejected the session token."""
    for result in results:
        error = result.error if isinstance(result, QueryResult) else result
        if isinstance(error, ApiError) and error.is_unauthorized:
            raise SessionExpired()


async def mutate(cache: ResourceCache, endpoint_key: str, body: Any = None, **args: Any) -> Any:
    """Run a cache mutation, turning a rejected token into ``SessionExpired``."""
    try:
        return await cache.mutate(endpoint_key, body, **args)
    except ApiError as exc:
        check_session(exc)
        raise


def local_redirect_target(url: str | None, fallback: str, prefix: str = "/") -> str:
    if url and url.startswith(prefix) and not url.startswith("//"):
        return url
    return fallback
