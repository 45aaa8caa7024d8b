"""Service helpers for core user management."""

import logging

from fastapi import HTTPException, Request
from markupsafe import Markup

from backoffice.csrf import get_csrf_token
from backoffice.services.api_errors import ApiError, ClientValidationError, form_error_message
from backoffice.services.data_table import ColumnDescriptor
from backoffice.services.pagination import SortDirection, SortState
from backoffice.services.session_context import SessionContext
from backoffice.services.web_common import (
    check_session,
    mutate,
    redirect,
    render,
    superseded_response,
)
from backoffice.services.web_lists import ListPanel, load_panel, peek_panel
from backoffice.validators import forms as form_validators

logger = logging.getLogger(__name__)

CORE_USERS = ListPanel(
    endpoint="core_users.list",
    panel_id="core-users",
    resource_name="core users",
    row_id="userId",
    page_sizes=(10, 20, 50),
    default_sort=SortState("username", SortDirection.asc),
    sort_fields=("username", "fullName", "email", "role", "enabled"),
)

BASE_PATH = "/admin/core-users"
TABLE_PATH = f"{BASE_PATH}/table"
ROLE_CHOICES = [role.value for role in form_validators.ALL_ROLES]


def is_self(row, context: SessionContext) -> bool:
    return row.username == context.username


def _actions(context: SessionContext, csrf_token: str):
    def render_actions(row) -> Markup:
        if is_self(row, context):
            return Markup(
                '<span class="action-disabled" title="You cannot edit your own account">Edit</span> '
                '<span class="action-disabled" title="You cannot delete your own account">Delete</span>'
            )
        return Markup(
            '<a class="action-link" href="{base}/{id}/edit">Edit</a> '
            '<form method="post" action="{base}/{id}/delete" class="inline-form" '
            "onsubmit=\"return confirm('Delete user {name}?');\">"
            '<input type="hidden" name="_csrf_token" value="{csrf}">'
            '<button type="submit" class="action-danger">Delete</button></form>'
        ).format(base=BASE_PATH, id=row.userId, name=row.username, csrf=csrf_token)

    return render_actions


def core_user_columns(context: SessionContext, csrf_token: str) -> list[ColumnDescriptor]:
    return [
        ColumnDescriptor("Username", accessor="username", sortable=True),
        ColumnDescriptor("Full Name", accessor="fullName", sortable=True),
        ColumnDescriptor("Email", accessor="email", sortable=True),
        ColumnDescriptor("Role", accessor="role", sortable=True),
        ColumnDescriptor(
            "Enabled",
            accessor="enabled",
            sortable=True,
            render=lambda row: "Yes" if row.enabled else "No",
        ),
        ColumnDescriptor("Actions", render=_actions(context, csrf_token)),
    ]


def _page_context(request: Request, context: SessionContext, result, state) -> dict:
    columns = core_user_columns(context, get_csrf_token(request))
    return CORE_USERS.context(state, result, columns, TABLE_PATH)


def core_users_page(
    request: Request,
    context: SessionContext,
    form: dict | None = None,
    errors: list[str] | None = None,
    status_code: int = 200,
):
    state = CORE_USERS.state_from(request)
    result = peek_panel(context.cache(), CORE_USERS, state)
    return render(
        request,
        "admin/core_users.html",
        {
            "page_title": "Manage Core Users",
            "roles": ROLE_CHOICES,
            "form": form or {},
            "errors": errors or [],
            **_page_context(request, context, result, state),
        },
        status_code=status_code,
    )


async def core_users_table(request: Request, context: SessionContext):
    state = CORE_USERS.state_from(request)
    result = await load_panel(context.cache(), CORE_USERS, state)
    if result.superseded:
        return superseded_response()
    check_session(result)
    return render(
        request,
        "components/list_panel.html",
        _page_context(request, context, result, state),
    )


async def create_core_user(request: Request, context: SessionContext, form: dict):
    try:
        payload = form_validators.validate_core_user_create(
            form.get("username", ""),
            form.get("password", ""),
            form.get("email", ""),
            form.get("full_name", ""),
            form.get("role"),
        )
        await mutate(context.cache(), "core_users.create", payload)
    except ClientValidationError as exc:
        logger.info("Core user form rejected: %s", exc.errors)
        return core_users_page(request, context, form, exc.errors, status_code=400)
    except ApiError as exc:
        return core_users_page(request, context, form, [form_error_message(exc)], status_code=400)
    return redirect(f"{BASE_PATH}?notice=user-created")


async def _load_user(context: SessionContext, user_id: str):
    result = await context.cache().query("core_users.get", {"userId": user_id})
    check_session(result)
    if result.error is not None:
        status = result.error.status if isinstance(result.error.status, int) else 502
        raise HTTPException(status_code=status, detail=form_error_message(result.error))
    return result.data


def _refuse_self(user, context: SessionContext, action: str) -> None:
    if is_self(user, context):
        raise HTTPException(status_code=403, detail=f"You cannot {action} your own account.")


async def edit_core_user_page(
    request: Request,
    context: SessionContext,
    user_id: str,
    form: dict | None = None,
    errors: list[str] | None = None,
    info: str | None = None,
    status_code: int = 200,
):
    user = await _load_user(context, user_id)
    _refuse_self(user, context, "edit")
    return render(
        request,
        "admin/core_user_edit.html",
        {
            "page_title": f"Edit User: {user.username}",
            "user": user,
            "roles": ROLE_CHOICES,
            "form": form,
            "errors": errors or [],
            "info": info,
        },
        status_code=status_code,
    )


async def update_core_user(request: Request, context: SessionContext, user_id: str, form: dict):
    user = await _load_user(context, user_id)
    _refuse_self(user, context, "edit")
    try:
        payload = form_validators.core_user_update(
            user,
            email=form.get("email"),
            full_name=form.get("full_name"),
            password=form.get("password") or None,
            role=form.get("role"),
            enabled=form.get("enabled") == "on",
        )
        if payload is None:
            return await edit_core_user_page(
                request, context, user_id, form, info=form_validators.NO_CHANGES_MESSAGE
            )
        await mutate(context.cache(), "core_users.update", payload, userId=user_id)
    except ClientValidationError as exc:
        logger.info("Core user edit rejected: %s", exc.errors)
        return await edit_core_user_page(
            request, context, user_id, form, exc.errors, status_code=400
        )
    except ApiError as exc:
        return await edit_core_user_page(
            request, context, user_id, form, [form_error_message(exc)], status_code=400
        )
    return redirect(f"{BASE_PATH}?notice=user-updated")


async def delete_core_user(request: Request, context: SessionContext, user_id: str):
    user = await _load_user(context, user_id)
    _refuse_self(user, context, "delete")
    try:
        await mutate(context.cache(), "core_users.delete", userId=user_id)
    except ApiError as exc:
        return core_users_page(
            request, context, errors=[form_error_message(exc)], status_code=400
        )
    return redirect(f"{BASE_PATH}?notice=user-deleted")
