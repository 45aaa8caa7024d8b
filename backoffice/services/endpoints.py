"""Query and mutation declarations for the banking API.

Each query declares the cache tags its result provides; each mutation declares
the tags it invalidates on success. ``ResourceCache`` only ever works through
these declarations.
"""

from __future__ import annotations

import string
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from pydantic import BaseModel, ValidationError

from backoffice.schemas.bank import (
    AccountBalance,
    AccountDetails,
    CoreUser,
    Merchant,
    MerchantUser,
    MyMerchantProfile,
    Page,
    PagedTransactionsWithSummary,
    Transaction,
)
from backoffice.services.api_errors import ApiError, UnknownApiError
from backoffice.services.bank_api import BankApiClient


class Tag(NamedTuple):
    type: str
    id: str | None = None

    def matches(self, other: "Tag") -> bool:
        """``Tag(type)`` with no id matches every tag of that type."""
        if self.type != other.type:
            return False
        return self.id is None or other.id is None or self.id == other.id


LIST = "LIST"

MERCHANT = "Merchant"
CORE_USER = "CoreUser"
MERCHANT_USER = "MerchantUser"
TRANSACTION = "Transaction"
SYSTEM_TRANSACTION = "SystemTransaction"
ACCOUNT = "Account"
MY_MERCHANT_PROFILE = "MyMerchantProfile"

TAG_TYPES = (
    MERCHANT,
    CORE_USER,
    MERCHANT_USER,
    TRANSACTION,
    SYSTEM_TRANSACTION,
    ACCOUNT,
    MY_MERCHANT_PROFILE,
)

TagProvider = Callable[[Any, "ApiError | None", dict[str, Any]], list[Tag]]
TagInvalidator = Callable[[Any, "ApiError | None", dict[str, Any]], list[Tag]]


def merchant_users_list_id(merchant_id: str) -> str:
    return f"LIST_FOR_MERCHANT_{merchant_id}"


def account_transactions_list_id(account_id: str) -> str:
    return f"LIST_FOR_ACCOUNT_{account_id}"


def _path_fields(path: str) -> tuple[str, ...]:
    return tuple(name for _, name, _, _ in string.Formatter().parse(path) if name)


def _parser(model: type[BaseModel] | None) -> Callable[[Any], Any]:
    def parse(data: Any) -> Any:
        if model is None or data is None:
            return data
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise UnknownApiError(
                f"Unexpected response shape for {model.__name__}",
                status="PARSING_ERROR",
                detail=data,
            ) from exc

    return parse


def _split_params(
    path: str, fields: tuple[str, ...], params: dict[str, Any]
) -> tuple[str, dict[str, Any]]:
    missing = [name for name in fields if params.get(name) in (None, "")]
    if missing:
        raise ValueError(f"Missing path parameter(s): {', '.join(missing)}")
    resolved = path.format(**{name: params[name] for name in fields})
    query = {k: v for k, v in params.items() if k not in fields}
    return resolved, query


@dataclass(frozen=True)
class QueryEndpoint:
    key: str
    path: str
    model: type[BaseModel] | None = None
    default_params: dict[str, Any] = field(default_factory=dict)
    provides: TagProvider = lambda result, error, args: []

    @property
    def path_fields(self) -> tuple[str, ...]:
        return _path_fields(self.path)

    def resolve_params(self, params: dict[str, Any] | None) -> dict[str, Any]:
        merged = dict(self.default_params)
        merged.update(params or {})
        return merged

    async def fetch(self, client: BankApiClient, params: dict[str, Any]) -> Any:
        path, query = _split_params(self.path, self.path_fields, params)
        data = await client.request("GET", path, params=query or None)
        return _parser(self.model)(data)


@dataclass(frozen=True)
class MutationEndpoint:
    key: str
    method: str
    path: str
    model: type[BaseModel] | None = None
    invalidates: TagInvalidator = lambda result, error, args: []

    @property
    def path_fields(self) -> tuple[str, ...]:
        return _path_fields(self.path)

    async def execute(
        self, client: BankApiClient, body: Any, args: dict[str, Any]
    ) -> Any:
        path, _ = _split_params(self.path, self.path_fields, args)
        if isinstance(body, BaseModel):
            body = body.model_dump(exclude_none=True, mode="json")
        data = await client.request(self.method, path, json_data=body)
        return _parser(self.model)(data)


def _page_tags(tag_type: str, id_field: str, list_id: str) -> TagProvider:
    def provides(result: Any, error: ApiError | None, args: dict[str, Any]) -> list[Tag]:
        collection = Tag(tag_type, list_id)
        if result is None or not result.content:
            return [collection]
        return [Tag(tag_type, getattr(item, id_field)) for item in result.content] + [collection]

    return provides


def _merchant_users_tags(result: Any, error: ApiError | None, args: dict[str, Any]) -> list[Tag]:
    provider = _page_tags(MERCHANT_USER, "userId", merchant_users_list_id(args["merchantId"]))
    return provider(result, error, args)


def _account_transactions_tags(
    result: Any, error: ApiError | None, args: dict[str, Any]
) -> list[Tag]:
    page = result.transactionsPage if result is not None else None
    provider = _page_tags(
        TRANSACTION, "transactionId", account_transactions_list_id(args["accountId"])
    )
    return provider(page, error, args)


def _my_profile_tags(result: Any, error: ApiError | None, args: dict[str, Any]) -> list[Tag]:
    if result is None:
        return [Tag(MY_MERCHANT_PROFILE, "PROFILE")]
    tags = [
        Tag(MY_MERCHANT_PROFILE, "PROFILE"),
        Tag(MERCHANT, result.merchant.merchantId),
        Tag(MERCHANT_USER, result.user.userId),
    ]
    account_id = result.merchant.accountId
    if account_id:
        tags.append(Tag(ACCOUNT, account_id))
        tags.append(Tag(TRANSACTION, account_transactions_list_id(account_id)))
    return tags


QUERIES: dict[str, QueryEndpoint] = {
    endpoint.key: endpoint
    for endpoint in (
        QueryEndpoint(
            key="merchants.list",
            path="/api/v1/merchants",
            model=Page[Merchant],
            default_params={"page": 0, "size": 10},
            provides=_page_tags(MERCHANT, "merchantId", LIST),
        ),
        QueryEndpoint(
            key="merchants.get",
            path="/api/v1/merchants/{merchantId}",
            model=Merchant,
            provides=lambda result, error, args: [Tag(MERCHANT, args["merchantId"])],
        ),
        QueryEndpoint(
            key="core_users.list",
            path="/api/v1/core-users",
            model=Page[CoreUser],
            default_params={"page": 0, "size": 1},
            provides=_page_tags(CORE_USER, "userId", LIST),
        ),
        QueryEndpoint(
            key="core_users.get",
            path="/api/v1/core-users/{userId}",
            model=CoreUser,
            provides=lambda result, error, args: [Tag(CORE_USER, args["userId"])],
        ),
        QueryEndpoint(
            key="merchant_users.by_merchant",
            path="/api/v1/merchant-users/by-merchant/{merchantId}",
            model=Page[MerchantUser],
            default_params={"page": 0, "size": 10},
            provides=_merchant_users_tags,
        ),
        QueryEndpoint(
            key="merchant_users.me",
            path="/api/v1/merchant-users/me",
            model=MyMerchantProfile,
            provides=_my_profile_tags,
        ),
        QueryEndpoint(
            key="transactions.for_account",
            path="/api/v1/transactions/account/{accountId}",
            model=PagedTransactionsWithSummary,
            default_params={"page": 0, "size": 10},
            provides=_account_transactions_tags,
        ),
        QueryEndpoint(
            key="transactions.system_wide",
            path="/api/v1/transactions/system-wide",
            model=Page[Transaction],
            default_params={"page": 0, "size": 10},
            provides=_page_tags(SYSTEM_TRANSACTION, "transactionId", LIST),
        ),
        QueryEndpoint(
            key="accounts.balance",
            path="/api/v1/accounts/{accountId}/balance",
            model=AccountBalance,
            provides=lambda result, error, args: [Tag(ACCOUNT, f"{args['accountId']}-balance")],
        ),
        QueryEndpoint(
            key="accounts.details",
            path="/api/v1/accounts/{accountId}/details",
            model=AccountDetails,
            provides=lambda result, error, args: [Tag(ACCOUNT, f"{args['accountId']}-details")],
        ),
    )
}


def _updated_merchant_user_tags(
    result: Any, error: ApiError | None, args: dict[str, Any]
) -> list[Tag]:
    collection = (
        Tag(MERCHANT_USER, merchant_users_list_id(result.merchantId))
        if result is not None
        else Tag(MERCHANT_USER, LIST)
    )
    return [Tag(MERCHANT_USER, args["userId"]), collection]


MUTATIONS: dict[str, MutationEndpoint] = {
    endpoint.key: endpoint
    for endpoint in (
        MutationEndpoint(
            key="merchants.create",
            method="POST",
            path="/api/v1/merchants",
            model=Merchant,
            invalidates=lambda result, error, args: [Tag(MERCHANT, LIST)],
        ),
        MutationEndpoint(
            key="core_users.create",
            method="POST",
            path="/api/v1/core-users",
            model=CoreUser,
            invalidates=lambda result, error, args: [Tag(CORE_USER, LIST)],
        ),
        MutationEndpoint(
            key="core_users.update",
            method="PUT",
            path="/api/v1/core-users/{userId}",
            model=CoreUser,
            invalidates=lambda result, error, args: [
                Tag(CORE_USER, args["userId"]),
                Tag(CORE_USER, LIST),
            ],
        ),
        MutationEndpoint(
            key="core_users.delete",
            method="DELETE",
            path="/api/v1/core-users/{userId}",
            invalidates=lambda result, error, args: [
                Tag(CORE_USER, args["userId"]),
                Tag(CORE_USER, LIST),
            ],
        ),
        MutationEndpoint(
            key="merchant_users.create",
            method="POST",
            path="/api/v1/merchant-users",
            model=MerchantUser,
            invalidates=lambda result, error, args: [
                Tag(MERCHANT_USER, merchant_users_list_id(args["merchantId"]))
            ],
        ),
        MutationEndpoint(
            key="merchant_users.update",
            method="PUT",
            path="/api/v1/merchant-users/{userId}",
            model=MerchantUser,
            invalidates=_updated_merchant_user_tags,
        ),
        MutationEndpoint(
            key="merchant_users.delete",
            method="DELETE",
            path="/api/v1/merchant-users/{userId}",
            invalidates=lambda result, error, args: [
                Tag(MERCHANT_USER, args["userId"]),
                Tag(MERCHANT_USER, merchant_users_list_id(args["merchantId"])),
            ],
        ),
        MutationEndpoint(
            key="transactions.create",
            method="POST",
            path="/api/v1/transactions",
            model=Transaction,
            invalidates=lambda result, error, args: [
                Tag(TRANSACTION, account_transactions_list_id(args["accountId"])),
                Tag(ACCOUNT, f"{args['accountId']}-balance"),
                Tag(SYSTEM_TRANSACTION, LIST),
            ],
        ),
    )
}


def get_query(key: str) -> QueryEndpoint:
    try:
        return QUERIES[key]
    except KeyError:
        raise KeyError(f"Unknown query endpoint: {key}") from None


def get_mutation(key: str) -> MutationEndpoint:
    try:
        return MUTATIONS[key]
    except KeyError:
        raise KeyError(f"Unknown mutation endpoint: {key}") from None


def tags_overlap(invalidated: Iterable[Tag], provided: Iterable[Tag]) -> bool:
    provided = list(provided)
    return any(tag.matches(other) for tag in invalidated for other in provided)
