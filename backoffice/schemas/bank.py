from __future__ import annotations

import enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class UserRole(str, enum.Enum):
    admin = "ADMIN"
    merchant_admin = "MERCHANT_ADMIN"
    merchant_user = "MERCHANT_USER"


class TransactionType(str, enum.Enum):
    payin = "PAYIN"
    payout = "PAYOUT"


class _ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AuthRequest(_ApiModel):
    username: str
    password: str


class AuthResponse(_ApiModel):
    token: str


class Page(_ApiModel, Generic[T]):
    """Spring-style page envelope returned by every list endpoint."""

    content: list[T] = Field(default_factory=list)
    number: int = 0
    size: int = 0
    totalElements: int = 0
    totalPages: int = 0
    numberOfElements: int = 0
    first: bool = True
    last: bool = True
    empty: bool = True


class Merchant(_ApiModel):
    merchantId: str
    name: str
    cnpj: str | None = None
    accountId: str | None = None


class CoreUser(_ApiModel):
    userId: str
    username: str
    email: str
    fullName: str
    role: UserRole | None = None
    enabled: bool | None = None


class MerchantUser(_ApiModel):
    userId: str
    username: str
    email: str
    fullName: str
    role: UserRole
    merchantId: str
    enabled: bool


class Transaction(_ApiModel):
    transactionId: str
    accountId: str
    type: TransactionType
    amount: float
    timestamp: str
    description: str | None = None
    status: str


class AccountBalance(_ApiModel):
    accountId: str
    balance: float


class AccountDetails(_ApiModel):
    accountId: str
    accountNumber: str
    balance: float
    accountHolderType: str
    holderId: str


class MyMerchantProfile(_ApiModel):
    user: MerchantUser
    merchant: Merchant


class TransactionSummary(_ApiModel):
    quantity: int
    totalAmount: float


class PagedTransactionsWithSummary(_ApiModel):
    transactionsPage: Page[Transaction] = Field(default_factory=Page[Transaction])
    summary: TransactionSummary | None = None


class CreateMerchantRequest(_ApiModel):
    name: str
    cnpj: str


class CreateCoreUserRequest(_ApiModel):
    username: str
    password: str
    email: str
    fullName: str
    role: UserRole


class UpdateCoreUserRequest(_ApiModel):
    email: str | None = None
    fullName: str | None = None
    password: str | None = None
    role: UserRole | None = None
    enabled: bool | None = None


class CreateMerchantUserRequest(_ApiModel):
    username: str
    password: str
    email: str
    fullName: str
    role: UserRole
    merchantId: str


class UpdateMerchantUserRequest(_ApiModel):
    fullName: str | None = None
    email: str | None = None
    password: str | None = None
    role: UserRole | None = None
    enabled: bool | None = None


class CreateTransactionRequest(_ApiModel):
    accountId: str
    type: TransactionType
    amount: float
    description: str | None = None
