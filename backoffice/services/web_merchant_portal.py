"""Service helpers for the merchant portal."""

import asyncio
import logging

from fastapi import HTTPException, Request

from backoffice.csrf import get_csrf_token
from backoffice.schemas.bank import MyMerchantProfile, UserRole
from backoffice.services.api_errors import (
    ApiError,
    ClientValidationError,
    describe_error,
    form_error_message,
)
from backoffice.services.session_context import SessionContext
from backoffice.services.web_common import (
    check_session,
    local_redirect_target,
    mutate,
    redirect,
    render,
    superseded_response,
)
from backoffice.services.web_lists import load_panel, peek_panel
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
    TRANSACTION_TYPES,
    account_transactions_context,
)
from backoffice.validators import forms as form_validators

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/merchant/dashboard"
TRANSACTIONS_PATH = "/merchant/transactions"
USERS_PATH = "/merchant/users"
RECENT_TRANSACTIONS = {"page": 0, "size": 5, "sort": "timestamp,desc"}


async def load_profile(context: SessionContext) -> MyMerchantProfile:
    """The signed-in merchant user and their merchant."""
    result = await context.cache().query("merchant_users.me")
    check_session(result)
    if result.error is not None:
        raise HTTPException(
            status_code=502, detail=describe_error(result.error, "merchant profile")
        )
    return result.data


def can_manage_users(profile: MyMerchantProfile) -> bool:
    return profile.user.role == UserRole.merchant_admin


def _panel(result, resource_name: str) -> dict:
    return {
        "loading": result.is_loading,
        "error": describe_error(result.error, resource_name) if result.error else None,
        "data": result.data,
    }


async def dashboard(
    request: Request,
    context: SessionContext,
    form: dict | None = None,
    errors: list[str] | None = None,
    status_code: int = 200,
):
    profile = await load_profile(context)
    account_id = profile.merchant.accountId
    balance = details = recent = None
    if account_id:
        cache = context.cache()
        balance, details, recent = await asyncio.gather(
            cache.query("accounts.balance", {"accountId": account_id}),
            cache.query("accounts.details", {"accountId": account_id}),
            cache.query(
                "transactions.for_account", {"accountId": account_id, **RECENT_TRANSACTIONS}
            ),
        )
        check_session(balance, details, recent)

    recent_panel = None
    if recent is not None:
        recent_panel = _panel(recent, "recent transactions")
        recent_panel["count"] = (
            recent.data.transactionsPage.numberOfElements
            if recent.data is not None and recent.error is None
            else None
        )

    return render(
        request,
        "merchant/dashboard.html",
        {
            "page_title": "Merchant Dashboard",
            "profile": profile,
            "balance": _panel(balance, "account balance") if balance else None,
            "details": _panel(details, "account details") if details else None,
            "recent": recent_panel,
            "transaction_types": TRANSACTION_TYPES,
            "form": form or {},
            "errors": errors or [],
            "next_url": DASHBOARD_PATH,
        },
        status_code=status_code,
    )


def _require_account(profile: MyMerchantProfile) -> str:
    account_id = profile.merchant.accountId
    if not account_id:
        raise HTTPException(status_code=404, detail="No account is linked to this merchant.")
    return account_id


async def transactions_page(
    request: Request,
    context: SessionContext,
    form: dict | None = None,
    errors: list[str] | None = None,
    status_code: int = 200,
):
    profile = await load_profile(context)
    transactions = None
    if profile.merchant.accountId:
        state = ACCOUNT_TRANSACTIONS.state_from(request)
        result = peek_panel(
            context.cache(),
            ACCOUNT_TRANSACTIONS,
            state,
            {"accountId": profile.merchant.accountId},
        )
        transactions = account_transactions_context(
            state, result, f"{TRANSACTIONS_PATH}/table"
        )
    return render(
        request,
        "merchant/transactions.html",
        {
            "page_title": "My Transactions",
            "profile": profile,
            "transactions": transactions,
            "transaction_types": TRANSACTION_TYPES,
            "form": form or {},
            "errors": errors or [],
            "show_form": bool(errors),
            "next_url": TRANSACTIONS_PATH,
        },
        status_code=status_code,
    )


async def transactions_table(request: Request, context: SessionContext):
    profile = await load_profile(context)
    account_id = _require_account(profile)
    state = ACCOUNT_TRANSACTIONS.state_from(request)
    result = await load_panel(
        context.cache(), ACCOUNT_TRANSACTIONS, state, {"accountId": account_id}
    )
    if result.superseded:
        return superseded_response()
    check_session(result)
    return render(
        request,
        "components/transactions_panel.html",
        account_transactions_context(state, result, f"{TRANSACTIONS_PATH}/table"),
    )


async def create_transaction(request: Request, context: SessionContext, form: dict):
    """Create a transaction on the merchant's account.

    The form is posted from the dashboard and the transactions page; ``next``
    names the page to return to.
    """
    next_url = local_redirect_target(form.get("next"), TRANSACTIONS_PATH, prefix="/merchant/")
    profile = await load_profile(context)
    try:
        payload = form_validators.validate_transaction_create(
            profile.merchant.accountId or "",
            form.get("type"),
            form.get("amount"),
            form.get("description"),
        )
        await mutate(
            context.cache(), "transactions.create", payload, accountId=payload.accountId
        )
    except ClientValidationError as exc:
        logger.info("Transaction form rejected: %s", exc.errors)
        return await _form_page(request, context, next_url, form, exc.errors)
    except ApiError as exc:
        return await _form_page(request, context, next_url, form, [form_error_message(exc)])
    return redirect(f"{next_url}?notice=transaction-created")


async def _form_page(request, context, next_url: str, form: dict, errors: list[str]):
    if next_url == DASHBOARD_PATH:
        return await dashboard(request, context, form, errors, status_code=400)
    return await transactions_page(request, context, form, errors, status_code=400)


def _users_context(request: Request, profile: MyMerchantProfile, state, result) -> dict:
    columns = merchant_user_columns(
        USERS_PATH,
        state,
        get_csrf_token(request),
        can_manage=can_manage_users(profile),
        is_self=lambda row: row.userId == profile.user.userId,
    )
    return MERCHANT_USERS.context(state, result, columns, f"{USERS_PATH}/table")


async def users_page(
    request: Request,
    context: SessionContext,
    form: dict | None = None,
    errors: list[str] | None = None,
    status_code: int = 200,
):
    profile = await load_profile(context)
    state = MERCHANT_USERS.state_from(request)
    result = peek_panel(
        context.cache(), MERCHANT_USERS, state, {"merchantId": profile.merchant.merchantId}
    )
    return render(
        request,
        "merchant/users.html",
        {
            "page_title": "Manage Merchant Users",
            "profile": profile,
            "can_manage": can_manage_users(profile),
            "roles": ROLE_CHOICES,
            "form": form or {},
            "errors": errors or [],
            "show_form": bool(errors),
            **_users_context(request, profile, state, result),
        },
        status_code=status_code,
    )


async def users_table(request: Request, context: SessionContext):
    profile = await load_profile(context)
    state = MERCHANT_USERS.state_from(request)
    result = await load_panel(
        context.cache(), MERCHANT_USERS, state, {"merchantId": profile.merchant.merchantId}
    )
    if result.superseded:
        return superseded_response()
    check_session(result)
    return render(
        request,
        "components/list_panel.html",
        _users_context(request, profile, state, result),
    )


def _require_admin(profile: MyMerchantProfile) -> None:
    if not can_manage_users(profile):
        raise HTTPException(
            status_code=403, detail="Only merchant administrators can manage users."
        )


async def _managed_user(request: Request, context: SessionContext, user_id: str, action: str):
    profile = await load_profile(context)
    _require_admin(profile)
    if user_id == profile.user.userId:
        raise HTTPException(status_code=403, detail=f"You cannot {action} your own account.")
    state = MERCHANT_USERS.state_from(request)
    user = await find_merchant_user(
        context.cache(), profile.merchant.merchantId, user_id, state
    )
    return profile, state, user


async def create_user(request: Request, context: SessionContext, form: dict):
    profile = await load_profile(context)
    _require_admin(profile)
    try:
        await create_merchant_user(context.cache(), profile.merchant.merchantId, form)
    except ClientValidationError as exc:
        logger.info("Merchant user form rejected: %s", exc.errors)
        return await users_page(request, context, form, exc.errors, status_code=400)
    except ApiError as exc:
        return await users_page(
            request, context, form, [form_error_message(exc)], status_code=400
        )
    return redirect(f"{USERS_PATH}?notice=user-created")


async def edit_user_page(
    request: Request,
    context: SessionContext,
    user_id: str,
    form: dict | None = None,
    errors: list[str] | None = None,
    info: str | None = None,
    status_code: int = 200,
):
    profile, state, user = await _managed_user(request, context, user_id, "edit")
    return render(
        request,
        "merchant/user_edit.html",
        {
            "page_title": f"Edit User: {user.username}",
            "profile": profile,
            "user": user,
            "roles": ROLE_CHOICES,
            "form": form,
            "errors": errors or [],
            "info": info,
            "back_url": state.url(USERS_PATH),
            "action_url": state.url(f"{USERS_PATH}/{user_id}/edit"),
        },
        status_code=status_code,
    )


async def update_user(request: Request, context: SessionContext, user_id: str, form: dict):
    _, _, user = await _managed_user(request, context, user_id, "edit")
    try:
        changed = await update_merchant_user(context.cache(), user, form)
    except ClientValidationError as exc:
        logger.info("Merchant user edit rejected: %s", exc.errors)
        return await edit_user_page(request, context, user_id, form, exc.errors, status_code=400)
    except ApiError as exc:
        return await edit_user_page(
            request, context, user_id, form, [form_error_message(exc)], status_code=400
        )
    if not changed:
        return await edit_user_page(
            request, context, user_id, form, info=form_validators.NO_CHANGES_MESSAGE
        )
    return redirect(f"{USERS_PATH}?notice=user-updated")


async def delete_user(request: Request, context: SessionContext, user_id: str):
    _, _, user = await _managed_user(request, context, user_id, "delete")
    try:
        await delete_merchant_user(context.cache(), user)
    except ApiError as exc:
        return await users_page(
            request, context, errors=[form_error_message(exc)], status_code=400
        )
    return redirect(f"{USERS_PATH}?notice=user-deleted")
