"""Merchant user list and forms shared by the admin and merchant portals."""

import logging
from collections.abc import Callable

from fastapi import HTTPException
from markupsafe import Markup

from backoffice.schemas.bank import MerchantUser
from backoffice.services.api_errors import form_error_message
from backoffice.services.data_table import ColumnDescriptor
from backoffice.services.pagination import ListState
from backoffice.services.resource_cache import ResourceCache
from backoffice.services.web_common import check_session, mutate
from backoffice.services.web_lists import ListPanel
from backoffice.validators import forms as form_validators

logger = logging.getLogger(__name__)

MERCHANT_USERS = ListPanel(
    endpoint="merchant_users.by_merchant",
    panel_id="merchant-users",
    resource_name="merchant users",
    row_id="userId",
    page_sizes=(10, 20, 50),
)

ROLE_CHOICES = [role.value for role in form_validators.MERCHANT_ROLES]

SelfCheck = Callable[[MerchantUser], bool]


def _never_self(row) -> bool:
    return False


def _actions(
    base_path: str,
    state: ListState,
    csrf_token: str,
    can_manage: bool,
    is_self: SelfCheck,
):
    def render_actions(row) -> Markup | str:
        if not can_manage:
            return "-"
        if is_self(row):
            return Markup('<span class="action-disabled">(Your account)</span>')
        return Markup(
            '<a class="action-link" href="{base}/{id}/edit?page={page}&amp;size={size}">Edit</a> '
            '<form method="post" action="{base}/{id}/delete?page={page}&amp;size={size}" '
            'class="inline-form" onsubmit="return confirm(\'Delete user {name}?\');">'
            '<input type="hidden" name="_csrf_token" value="{csrf}">'
            '<button type="submit" class="action-danger">Delete</button></form>'
        ).format(
            base=base_path,
            id=row.userId,
            page=state.page,
            size=state.size,
            name=row.username,
            csrf=csrf_token,
        )

    return render_actions


def merchant_user_columns(
    base_path: str,
    state: ListState,
    csrf_token: str,
    *,
    can_manage: bool = True,
    is_self: SelfCheck = _never_self,
) -> list[ColumnDescriptor]:
    return [
        ColumnDescriptor("Username", accessor="username"),
        ColumnDescriptor("Full Name", accessor="fullName"),
        ColumnDescriptor("Email", accessor="email"),
        ColumnDescriptor("Role", accessor="role"),
        ColumnDescriptor(
            "Enabled",
            accessor="enabled",
            render=lambda row: "Yes" if row.enabled else "No",
        ),
        ColumnDescriptor(
            "Actions", render=_actions(base_path, state, csrf_token, can_manage, is_self)
        ),
    ]


async def find_merchant_user(
    cache: ResourceCache, merchant_id: str, user_id: str, state: ListState
) -> MerchantUser:
    """Find a user on the list page the edit link came from.

    The banking API has no single merchant-user lookup, so the user is taken
    from the same ``merchant_users.by_merchant`` page the list showed.
    """
    params = MERCHANT_USERS.api_params(state, merchantId=merchant_id)
    result = await cache.query(MERCHANT_USERS.endpoint, params)
    check_session(result)
    if result.error is not None:
        raise HTTPException(status_code=502, detail=form_error_message(result.error))
    for user in result.data.content:
        if user.userId == user_id:
            return user
    raise HTTPException(status_code=404, detail="Merchant user not found.")


async def create_merchant_user(cache: ResourceCache, merchant_id: str, form: dict) -> MerchantUser:
    """Validate and create a merchant user.

    Raises:
        ClientValidationError: the form failed validation.
        ApiError: the banking API rejected the request.
    """
    payload = form_validators.validate_merchant_user_create(
        merchant_id,
        form.get("username", ""),
        form.get("password", ""),
        form.get("email", ""),
        form.get("full_name", ""),
        form.get("role"),
    )
    return await mutate(cache, "merchant_users.create", payload, merchantId=merchant_id)


async def update_merchant_user(cache: ResourceCache, user: MerchantUser, form: dict) -> bool:
    """Send the changed fields; ``False`` when nothing changed."""
    payload = form_validators.merchant_user_update(
        user,
        email=form.get("email"),
        full_name=form.get("full_name"),
        password=form.get("password") or None,
        role=form.get("role"),
        enabled=form.get("enabled") == "on",
    )
    if payload is None:
        return False
    await mutate(cache, "merchant_users.update", payload, userId=user.userId)
    return True


async def delete_merchant_user(cache: ResourceCache, user: MerchantUser) -> None:
    await mutate(
        cache, "merchant_users.delete", userId=user.userId, merchantId=user.merchantId
    )
    logger.info("Deleted merchant user %s of merchant %s", user.username, user.merchantId)
