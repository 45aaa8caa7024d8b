"""Service helpers for admin merchant pages."""

import logging

from fastapi import HTTPException, Request
from markupsafe import Markup

from backoffice.csrf import get_csrf_token
from backoffice.services.api_errors import ApiError, ClientValidationError, form_error_message
from backoffice.services.data_table import ColumnDescriptor
from backoffice.services.resource_cache import QueryResult
from backoffice.services.session_context import SessionContext
from backoffice.services.web_common import (
    check_session,
    mutate,
    redirect,
    render,
    superseded_response,
)
from backoffice.services.web_lists import ListPanel, load_panel, peek_panel
from backoffice.services.web_merchant_users import (
    MERCHANT_USERS,
    ROLE_CHOICES,
    create_merchant_user,
    delete_merchant_user,
    find_merchant_user,
    merchant_user_columns,
    update_merchant_user,
)
from backoffice.services.web_transactions import (
    ACCOUNT_TRANSACTIONS,
    account_transactions_context,
)
from backoffice.validators import forms as form_validators

logger = logging.getLogger(__name__)

MERCHANTS = ListPanel(
    endpoint="merchants.list",
    panel_id="merchants",
    resource_name="merchants",
    row_id="merchantId",
)

BASE_PATH = "/admin/merchants"
TABLE_PATH = f"{BASE_PATH}/table"


def merchant_detail_path(merchant_id: str) -> str:
    return f"{BASE_PATH}/{merchant_id}"


def _name_link(row) -> Markup:
    return Markup('<a class="table-link" href="{}">{}</a>').format(
        merchant_detail_path(row.merchantId), row.name
    )


def merchant_columns() -> list[ColumnDescriptor]:
    return [
        ColumnDescriptor("Name", accessor="name", render=_name_link),
        ColumnDescriptor("Merchant ID", accessor="merchantId"),
        ColumnDescriptor("CNPJ", accessor="cnpj"),
        ColumnDescriptor("Account ID", accessor="accountId"),
    ]


def merchants_page(
    request: Request,
    context: SessionContext,
    form: dict | None = None,
    errors: list[str] | None = None,
    status_code: int = 200,
):
    state = MERCHANTS.state_from(request)
    result = peek_panel(context.cache(), MERCHANTS, state)
    return render(
        request,
        "admin/merchants.html",
        {
            "page_title": "Merchants Management",
            "form": form or {},
            "errors": errors or [],
            "show_form": bool(errors),
            **MERCHANTS.context(state, result, merchant_columns(), TABLE_PATH),
        },
        status_code=status_code,
    )


async def merchants_table(request: Request, context: SessionContext):
    state = MERCHANTS.state_from(request)
    result = await load_panel(context.cache(), MERCHANTS, state)
    if result.superseded:
        return superseded_response()
    check_session(result)
    return render(
        request,
        "components/list_panel.html",
        MERCHANTS.context(state, result, merchant_columns(), TABLE_PATH),
    )


async def create_merchant(request: Request, context: SessionContext, form: dict):
    try:
        payload = form_validators.validate_merchant_create(
            form.get("name", ""), form.get("cnpj", "")
        )
        merchant = await mutate(context.cache(), "merchants.create", payload)
    except ClientValidationError as exc:
        logger.info("Merchant form rejected: %s", exc.errors)
        return merchants_page(request, context, form, exc.errors, status_code=400)
    except ApiError as exc:
        return merchants_page(request, context, form, [form_error_message(exc)], status_code=400)
    logger.info("Created merchant %s", merchant.merchantId if merchant else form.get("name"))
    return redirect(f"{BASE_PATH}?notice=merchant-created")


async def _load_merchant(context: SessionContext, merchant_id: str):
    result = await context.cache().query("merchants.get", {"merchantId": merchant_id})
    check_session(result)
    if result.error is not None:
        status = result.error.status if isinstance(result.error.status, int) else 502
        raise HTTPException(status_code=status, detail=form_error_message(result.error))
    return result.data


def _users_path(merchant_id: str) -> str:
    return f"{merchant_detail_path(merchant_id)}/users"


def _users_context(request: Request, merchant_id: str, state, result: QueryResult) -> dict:
    columns = merchant_user_columns(_users_path(merchant_id), state, get_csrf_token(request))
    return MERCHANT_USERS.context(state, result, columns, f"{_users_path(merchant_id)}/table")


def _transactions_table_path(merchant_id: str) -> str:
    return f"{merchant_detail_path(merchant_id)}/transactions/table"


async def merchant_detail_page(
    request: Request,
    context: SessionContext,
    merchant_id: str,
    form: dict | None = None,
    errors: list[str] | None = None,
    status_code: int = 200,
):
    cache = context.cache()
    merchant = await _load_merchant(context, merchant_id)

    balance = None
    transactions = None
    if merchant.accountId:
        balance = await cache.query("accounts.balance", {"accountId": merchant.accountId})
        check_session(balance)
        tx_state = ACCOUNT_TRANSACTIONS.state_from(request)
        tx_result = peek_panel(
            cache, ACCOUNT_TRANSACTIONS, tx_state, {"accountId": merchant.accountId}
        )
        transactions = account_transactions_context(
            tx_state, tx_result, _transactions_table_path(merchant_id)
        )

    user_state = MERCHANT_USERS.state_from(request)
    user_result = peek_panel(cache, MERCHANT_USERS, user_state, {"merchantId": merchant_id})

    return render(
        request,
        "admin/merchant_detail.html",
        {
            "page_title": f"Details: {merchant.name}",
            "merchant": merchant,
            "balance": balance,
            "users": _users_context(request, merchant_id, user_state, user_result),
            "transactions": transactions,
            "roles": ROLE_CHOICES,
            "form": form or {},
            "errors": errors or [],
            "show_form": bool(errors),
        },
        status_code=status_code,
    )


async def merchant_users_table(request: Request, context: SessionContext, merchant_id: str):
    state = MERCHANT_USERS.state_from(request)
    result = await load_panel(context.cache(), MERCHANT_USERS, state, {"merchantId": merchant_id})
    if result.superseded:
        return superseded_response()
    check_session(result)
    return render(
        request,
        "components/list_panel.html",
        _users_context(request, merchant_id, state, result),
    )


async def merchant_transactions_table(
    request: Request, context: SessionContext, merchant_id: str
):
    merchant = await _load_merchant(context, merchant_id)
    if not merchant.accountId:
        raise HTTPException(status_code=404, detail="This merchant has no linked account.")
    state = ACCOUNT_TRANSACTIONS.state_from(request)
    result = await load_panel(
        context.cache(), ACCOUNT_TRANSACTIONS, state, {"accountId": merchant.accountId}
    )
    if result.superseded:
        return superseded_response()
    check_session(result)
    return render(
        request,
        "components/transactions_panel.html",
        account_transactions_context(state, result, _transactions_table_path(merchant_id)),
    )


async def add_merchant_user(
    request: Request, context: SessionContext, merchant_id: str, form: dict
):
    try:
        await create_merchant_user(context.cache(), merchant_id, form)
    except ClientValidationError as exc:
        logger.info("Merchant user form rejected: %s", exc.errors)
        return await merchant_detail_page(
            request, context, merchant_id, form, exc.errors, status_code=400
        )
    except ApiError as exc:
        return await merchant_detail_page(
            request, context, merchant_id, form, [form_error_message(exc)], status_code=400
        )
    return redirect(f"{merchant_detail_path(merchant_id)}?notice=user-created")


async def edit_merchant_user_page(
    request: Request,
    context: SessionContext,
    merchant_id: str,
    user_id: str,
    form: dict | None = None,
    errors: list[str] | None = None,
    info: str | None = None,
    status_code: int = 200,
):
    merchant = await _load_merchant(context, merchant_id)
    state = MERCHANT_USERS.state_from(request)
    user = await find_merchant_user(context.cache(), merchant_id, user_id, state)
    return render(
        request,
        "admin/merchant_user_edit.html",
        {
            "page_title": f"Edit User: {user.username}",
            "merchant": merchant,
            "user": user,
            "roles": ROLE_CHOICES,
            "form": form,
            "errors": errors or [],
            "info": info,
            "back_url": state.url(merchant_detail_path(merchant_id)),
            "action_url": state.url(f"{_users_path(merchant_id)}/{user_id}/edit"),
        },
        status_code=status_code,
    )


async def update_user_of_merchant(
    request: Request, context: SessionContext, merchant_id: str, user_id: str, form: dict
):
    state = MERCHANT_USERS.state_from(request)
    user = await find_merchant_user(context.cache(), merchant_id, user_id, state)
    try:
        changed = await update_merchant_user(context.cache(), user, form)
    except ClientValidationError as exc:
        logger.info("Merchant user edit rejected: %s", exc.errors)
        return await edit_merchant_user_page(
            request, context, merchant_id, user_id, form, exc.errors, status_code=400
        )
    except ApiError as exc:
        return await edit_merchant_user_page(
            request,
            context,
            merchant_id,
            user_id,
            form,
            [form_error_message(exc)],
            status_code=400,
        )
    if not changed:
        return await edit_merchant_user_page(
            request, context, merchant_id, user_id, form, info=form_validators.NO_CHANGES_MESSAGE
        )
    return redirect(f"{merchant_detail_path(merchant_id)}?notice=user-updated")


async def delete_user_of_merchant(
    request: Request, context: SessionContext, merchant_id: str, user_id: str
):
    state = MERCHANT_USERS.state_from(request)
    user = await find_merchant_user(context.cache(), merchant_id, user_id, state)
    try:
        await delete_merchant_user(context.cache(), user)
    except ApiError as exc:
        return await merchant_detail_page(
            request, context, merchant_id, errors=[form_error_message(exc)], status_code=400
        )
    return redirect(f"{merchant_detail_path(merchant_id)}?notice=user-deleted")
