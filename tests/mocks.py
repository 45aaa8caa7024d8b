"""In-memory banking API for tests, served through ``httpx.MockTransport``."""

from __future__ import annotations

import json
import re
import uuid
from typing import Any

import httpx

ADMIN_TOKEN = "core-token"
MERCHANT_ADMIN_TOKEN = "merchant-admin-token"
MERCHANT_USER_TOKEN = "merchant-user-token"


def _page(items: list[dict], params: httpx.QueryParams) -> dict:
    page = int(params.get("page", 0))
    size = int(params.get("size", 10))
    sort = params.get("sort")
    if sort:
        field, _, direction = sort.partition(",")
        items = sorted(items, key=lambda item: str(item.get(field)), reverse=direction == "desc")
    chunk = items[page * size : (page + 1) * size]
    total = len(items)
    total_pages = (total + size - 1) // size if size else 0
    return {
        "content": chunk,
        "number": page,
        "size": size,
        "totalElements": total,
        "totalPages": total_pages,
        "numberOfElements": len(chunk),
        "first": page == 0,
        "last": page >= total_pages - 1,
        "empty": not chunk,
    }


class FakeBankApi:
    """A small, stateful stand-in for the core banking REST API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.failures: dict[tuple[str, str], tuple[int, Any]] = {}
        self.merchants = [
            {"merchantId": "m-1", "name": "Acme Store", "cnpj": "12345678000190", "accountId": "acc-1"},
            {"merchantId": "m-2", "name": "Beta Shop", "cnpj": "98765432000110", "accountId": None},
        ]
        self.core_users = [
            {
                "userId": "cu-1",
                "username": "admin",
                "email": "admin@bank.test",
                "fullName": "Admin User",
                "role": "ADMIN",
                "enabled": True,
            },
            {
                "userId": "cu-2",
                "username": "operator",
                "email": "operator@bank.test",
                "fullName": "Operator",
                "role": "ADMIN",
                "enabled": True,
            },
        ]
        self.merchant_users = [
            {
                "userId": "mu-1",
                "username": "owner",
                "email": "owner@acme.test",
                "fullName": "Acme Owner",
                "role": "MERCHANT_ADMIN",
                "merchantId": "m-1",
                "enabled": True,
            },
            {
                "userId": "mu-2",
                "username": "clerk",
                "email": "clerk@acme.test",
                "fullName": "Acme Clerk",
                "role": "MERCHANT_USER",
                "merchantId": "m-1",
                "enabled": True,
            },
        ]
        self.transactions = [
            {
                "transactionId": f"tx-{i:04d}-0000",
                "accountId": "acc-1",
                "type": "PAYIN" if i % 3 else "PAYOUT",
                "amount": 10.0 * (i + 1),
                "timestamp": f"2024-05-{(i % 28) + 1:02d}T10:00:00",
                "description": f"Payment {i}",
                "status": "COMPLETED",
            }
            for i in range(12)
        ]
        self.tokens = {
            ADMIN_TOKEN: ("core", "admin"),
            MERCHANT_ADMIN_TOKEN: ("merchant", "owner"),
            MERCHANT_USER_TOKEN: ("merchant", "clerk"),
        }

    # Test controls

    def fail(self, method: str, path: str, status: int, body: Any = None) -> None:
        self.failures[(method, path)] = (status, body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # Handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.failures:
            status, body = self.failures[key]
            return httpx.Response(status, json=body)

        path = request.url.path
        if path.startswith("/api/v1/auth/"):
            return self._login(request)

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.tokens:
            return httpx.Response(401, json={"message": "Invalid token"})
        return self._route(request, token)

    def _login(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        kind = "core" if "/core/" in request.url.path else "merchant"
        for token, (token_kind, username) in self.tokens.items():
            if token_kind == kind and username == body["username"] and body["password"] == "secret123":
                return httpx.Response(200, json={"token": token})
        return httpx.Response(401, json={"message": "Bad credentials"})

    def _me(self, token: str) -> dict:
        username = self.tokens[token][1]
        user = next(u for u in self.merchant_users if u["username"] == username)
        merchant = next(m for m in self.merchants if m["merchantId"] == user["merchantId"])
        return {"user": user, "merchant": merchant}

    def _route(self, request: httpx.Request, token: str) -> httpx.Response:
        method, path, params = request.method, request.url.path, request.url.params
        body = json.loads(request.content) if request.content else None

        if path == "/api/v1/merchants" and method == "GET":
            return httpx.Response(200, json=_page(self.merchants, params))
        if path == "/api/v1/merchants" and method == "POST":
            merchant = {"merchantId": f"m-{uuid.uuid4().hex[:6]}", "accountId": None, **body}
            self.merchants.append(merchant)
            return httpx.Response(201, json=merchant)
        if match := re.fullmatch(r"/api/v1/merchants/([^/]+)", path):
            merchant = next((m for m in self.merchants if m["merchantId"] == match[1]), None)
            if merchant is None:
                return httpx.Response(404, json={"message": "Merchant not found"})
            return httpx.Response(200, json=merchant)

        if path == "/api/v1/core-users" and method == "GET":
            return httpx.Response(200, json=_page(self.core_users, params))
        if path == "/api/v1/core-users" and method == "POST":
            user = {"userId": f"cu-{uuid.uuid4().hex[:6]}", "enabled": True, **body}
            user.pop("password", None)
            self.core_users.append(user)
            return httpx.Response(201, json=user)
        if match := re.fullmatch(r"/api/v1/core-users/([^/]+)", path):
            user = next((u for u in self.core_users if u["userId"] == match[1]), None)
            if user is None:
                return httpx.Response(404, json={"message": "User not found"})
            if method == "PUT":
                user.update({k: v for k, v in body.items() if k != "password"})
            elif method == "DELETE":
                self.core_users.remove(user)
                return httpx.Response(204)
            return httpx.Response(200, json=user)

        if path == "/api/v1/merchant-users/me":
            return httpx.Response(200, json=self._me(token))
        if match := re.fullmatch(r"/api/v1/merchant-users/by-merchant/([^/]+)", path):
            users = [u for u in self.merchant_users if u["merchantId"] == match[1]]
            return httpx.Response(200, json=_page(users, params))
        if path == "/api/v1/merchant-users" and method == "POST":
            user = {"userId": f"mu-{uuid.uuid4().hex[:6]}", "enabled": True, **body}
            user.pop("password", None)
            self.merchant_users.append(user)
            return httpx.Response(201, json=user)
        if match := re.fullmatch(r"/api/v1/merchant-users/([^/]+)", path):
            user = next((u for u in self.merchant_users if u["userId"] == match[1]), None)
            if user is None:
                return httpx.Response(404, json={"message": "User not found"})
            if method == "PUT":
                user.update({k: v for k, v in body.items() if k != "password"})
                return httpx.Response(200, json=user)
            if method == "DELETE":
                self.merchant_users.remove(user)
                return httpx.Response(204)

        if path == "/api/v1/transactions/system-wide":
            items = self._filter_transactions(self.transactions, params)
            return httpx.Response(200, json=_page(items, params))
        if match := re.fullmatch(r"/api/v1/transactions/account/([^/]+)", path):
            items = [t for t in self.transactions if t["accountId"] == match[1]]
            items = self._filter_transactions(items, params)
            page = _page(items, params)
            summary = {"quantity": len(items), "totalAmount": sum(t["amount"] for t in items)}
            return httpx.Response(200, json={"transactionsPage": page, "summary": summary})
        if path == "/api/v1/transactions" and method == "POST":
            tx = {
                "transactionId": uuid.uuid4().hex,
                "timestamp": "2024-06-01T12:00:00",
                "status": "COMPLETED",
                "description": None,
                **body,
            }
            self.transactions.append(tx)
            return httpx.Response(201, json=tx)

        if match := re.fullmatch(r"/api/v1/accounts/([^/]+)/balance", path):
            return httpx.Response(200, json={"accountId": match[1], "balance": 1234.5})
        if match := re.fullmatch(r"/api/v1/accounts/([^/]+)/details", path):
            return httpx.Response(
                200,
                json={
                    "accountId": match[1],
                    "accountNumber": "0001-99",
                    "balance": 1234.5,
                    "accountHolderType": "MERCHANT",
                    "holderId": "m-1",
                },
            )
        return httpx.Response(404, json={"message": f"No route for {method} {path}"})

    @staticmethod
    def _filter_transactions(items: list[dict], params: httpx.QueryParams) -> list[dict]:
        if params.get("type"):
            items = [t for t in items if t["type"] == params["type"]]
        if params.get("accountId"):
            items = [t for t in items if t["accountId"] == params["accountId"]]
        if params.get("startDate"):
            items = [t for t in items if t["timestamp"] >= params["startDate"]]
        if params.get("endDate"):
            items = [t for t in items if t["timestamp"] <= params["endDate"]]
        return items
