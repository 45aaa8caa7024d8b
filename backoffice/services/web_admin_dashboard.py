"""Service helpers for the admin dashboard."""

import asyncio
from datetime import datetime, timedelta

from fastapi import Request

from backoffice.schemas.bank import TransactionType
from backoffice.services.api_errors import describe_error
from backoffice.services.pagination import format_api_datetime
from backoffice.services.resource_cache import QueryResult
from backoffice.services.session_context import SessionContext
from backoffice.services.web_common import check_session, render

RECENT_WINDOW = timedelta(hours=24)
RECENT_PAGE_SIZE = 1000


def last_24h_params(now: datetime | None = None) -> dict:
    now = now or datetime.now()
    return {
        "startDate": format_api_datetime(now - RECENT_WINDOW),
        "endDate": format_api_datetime(now),
        "page": 0,
        "size": RECENT_PAGE_SIZE,
        "sort": "timestamp,desc",
    }


def net_value(transactions) -> float:
    """PAYIN adds, PAYOUT subtracts."""
    total = 0.0
    for tx in transactions:
        if tx.type == TransactionType.payin:
            total += tx.amount
        elif tx.type == TransactionType.payout:
            total -= tx.amount
    return total


def _panel(result: QueryResult, resource_name: str) -> dict:
    return {
        "loading": result.is_loading,
        "error": describe_error(result.error, resource_name) if result.error else None,
        "data": result.data,
    }


async def dashboard(request: Request, context: SessionContext):
    cache = context.cache()
    merchants, core_users, recent = await asyncio.gather(
        cache.query("merchants.list"),
        cache.query("core_users.list"),
        cache.query("transactions.system_wide", last_24h_params()),
    )
    check_session(merchants, core_users, recent)

    recent_panel = _panel(recent, "Recent Transactions")
    recent_panel.update(count=None, net_value=None)
    if recent.data is not None and recent.error is None:
        recent_panel["count"] = recent.data.totalElements
        recent_panel["net_value"] = net_value(recent.data.content)

    return render(
        request,
        "admin/dashboard.html",
        {
            "page_title": "Admin Dashboard Overview",
            "merchants": _panel(merchants, "Merchants"),
            "core_users": _panel(core_users, "Core Users"),
            "recent": recent_panel,
        },
    )
