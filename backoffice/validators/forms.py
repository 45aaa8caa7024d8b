import re
from collections.abc import Iterable

from backoffice.schemas.bank import (
    CoreUser,
    CreateCoreUserRequest,
    CreateMerchantRequest,
    CreateMerchantUserRequest,
    CreateTransactionRequest,
    MerchantUser,
    TransactionType,
    UpdateCoreUserRequest,
    UpdateMerchantUserRequest,
    UserRole,
)
from backoffice.services.api_errors import ClientValidationError

NO_CHANGES_MESSAGE = "No changes detected to update."

ALL_ROLES = (UserRole.admin, UserRole.merchant_admin, UserRole.merchant_user)
MERCHANT_ROLES = (UserRole.merchant_admin, UserRole.merchant_user)

_CNPJ_RE = re.compile(r"^\d{14}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _length_between(value: str, low: int, high: int) -> bool:
    return low <= len(value) <= high


def _check_username(username: str, errors: list[str]) -> None:
    if not _length_between(username, 3, 50):
        errors.append("Username must be 3-50 characters.")


def _check_password(password: str, errors: list[str], *, label: str = "Password") -> None:
    if not _length_between(password, 8, 100):
        errors.append(f"{label} must be 8-100 characters.")


def _check_email(email: str, errors: list[str]) -> None:
    if not _EMAIL_RE.match(email):
        errors.append("Invalid email format.")


def _parse_role(role: str | None, allowed: Iterable[UserRole], errors: list[str]) -> UserRole | None:
    allowed = tuple(allowed)
    try:
        parsed = UserRole(role)
    except ValueError:
        errors.append("Please select a valid role.")
        return None
    if parsed not in allowed:
        errors.append("Please select a valid role.")
        return None
    return parsed


def _raise_if_any(errors: list[str]) -> None:
    if errors:
        raise ClientValidationError(errors)


def validate_merchant_create(name: str, cnpj: str) -> CreateMerchantRequest:
    name = (name or "").strip()
    cnpj = (cnpj or "").strip()
    errors: list[str] = []
    if not _CNPJ_RE.match(cnpj):
        errors.append("CNPJ must be exactly 14 digits.")
    if not _length_between(name, 2, 100):
        errors.append("Name must be between 2 and 100 characters.")
    _raise_if_any(errors)
    return CreateMerchantRequest(name=name, cnpj=cnpj)


def validate_core_user_create(
    username: str,
    password: str,
    email: str,
    full_name: str,
    role: str | None,
    allowed_roles: Iterable[UserRole] = ALL_ROLES,
) -> CreateCoreUserRequest:
    username = (username or "").strip()
    email = (email or "").strip()
    full_name = (full_name or "").strip()
    password = password or ""
    errors: list[str] = []
    _check_username(username, errors)
    _check_password(password, errors)
    _check_email(email, errors)
    if not full_name:
        errors.append("Full name is required.")
    parsed_role = _parse_role(role, allowed_roles, errors)
    _raise_if_any(errors)
    return CreateCoreUserRequest(
        username=username,
        password=password,
        email=email,
        fullName=full_name,
        role=parsed_role,
    )


def validate_merchant_user_create(
    merchant_id: str,
    username: str,
    password: str,
    email: str,
    full_name: str,
    role: str | None,
    allowed_roles: Iterable[UserRole] = MERCHANT_ROLES,
) -> CreateMerchantUserRequest:
    request = validate_core_user_create(
        username, password, email, full_name, role, allowed_roles=allowed_roles
    )
    if not merchant_id:
        raise ClientValidationError("Merchant is required.")
    return CreateMerchantUserRequest(merchantId=merchant_id, **request.model_dump())


def _changed_fields(
    current: CoreUser | MerchantUser,
    *,
    email: str | None,
    full_name: str | None,
    password: str | None,
    role: str | None,
    enabled: bool | None,
    allowed_roles: Iterable[UserRole],
    errors: list[str],
) -> dict:
    changes: dict = {}
    if email is not None and email.strip() != current.email:
        email = email.strip()
        _check_email(email, errors)
        changes["email"] = email
    if full_name is not None and full_name.strip() != current.fullName:
        if not full_name.strip():
            errors.append("Full name cannot be empty if provided.")
        changes["fullName"] = full_name.strip()
    if password:
        _check_password(password, errors, label="New password")
        changes["password"] = password
    if role:
        parsed_role = _parse_role(role, allowed_roles, errors)
        if parsed_role is not None and parsed_role != current.role:
            changes["role"] = parsed_role
    if enabled is not None and enabled != bool(current.enabled):
        changes["enabled"] = enabled
    return changes


def core_user_update(
    current: CoreUser,
    *,
    email: str | None = None,
    full_name: str | None = None,
    password: str | None = None,
    role: str | None = None,
    enabled: bool | None = None,
) -> UpdateCoreUserRequest | None:
    """Update payload holding only the changed fields, or ``None`` if nothing changed."""
    errors: list[str] = []
    changes = _changed_fields(
        current,
        email=email,
        full_name=full_name,
        password=password,
        role=role,
        enabled=enabled,
        allowed_roles=ALL_ROLES,
        errors=errors,
    )
    _raise_if_any(errors)
    if not changes:
        return None
    return UpdateCoreUserRequest(**changes)


def merchant_user_update(
    current: MerchantUser,
    *,
    email: str | None = None,
    full_name: str | None = None,
    password: str | None = None,
    role: str | None = None,
    enabled: bool | None = None,
) -> UpdateMerchantUserRequest | None:
    errors: list[str] = []
    changes = _changed_fields(
        current,
        email=email,
        full_name=full_name,
        password=password,
        role=role,
        enabled=enabled,
        allowed_roles=MERCHANT_ROLES,
        errors=errors,
    )
    _raise_if_any(errors)
    if not changes:
        return None
    return UpdateMerchantUserRequest(**changes)


def validate_transaction_create(
    account_id: str, tx_type: str | None, amount: str | None, description: str | None
) -> CreateTransactionRequest:
    errors: list[str] = []
    try:
        numeric_amount = float(amount or "0")
    except ValueError:
        numeric_amount = float("nan")
    if not numeric_amount > 0:
        errors.append("Amount must be a positive number.")
    try:
        parsed_type = TransactionType(tx_type)
    except ValueError:
        errors.append("Transaction type must be PAYIN or PAYOUT.")
        parsed_type = None
    if not account_id:
        errors.append("No account is linked to this merchant.")
    _raise_if_any(errors)
    return CreateTransactionRequest(
        accountId=account_id,
        type=parsed_type,
        amount=numeric_amount,
        description=(description or "").strip() or None,
    )
