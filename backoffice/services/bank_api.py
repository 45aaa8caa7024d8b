"""HTTP client for the core banking REST API.

Every call made on behalf of a console session goes through
``BankApiClient.request``, which attaches the session's bearer token and turns
transport and HTTP failures into the error taxonomy in ``api_errors``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from backoffice.config import settings
from backoffice.schemas.bank import AuthRequest, AuthResponse
from backoffice.services.api_errors import (
    HttpStatusError,
    NetworkError,
    UnknownApiError,
)

logger = logging.getLogger(__name__)

LOGIN_PATHS = {
    "core": "/api/v1/auth/core/login",
    "merchant": "/api/v1/auth/merchant/login",
}


def _response_detail(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


class BankApiClient:
    """Thin async client around the banking API.

    A new ``httpx.AsyncClient`` is opened per request so the client object can
    be shared between concurrent cache fetches without connection state.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.bank_api_base_url).rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else settings.bank_api_timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Returns ``None`` for empty bodies (e.g. ``204 No Content``).

        Raises:
            NetworkError: the request never got a response.
            HttpStatusError: the API answered with a non-2xx status.
            UnknownApiError: the body was not valid JSON.
        """
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, params=params, json=json_data)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _response_detail(exc.response)
            status = exc.response.status_code
            message = f"Request failed with status {status}"
            if isinstance(detail, dict) and isinstance(detail.get("message"), str):
                message = detail["message"]
            if status == 401:
                logger.info("Bank API rejected session token: %s %s", method, path)
            else:
                logger.warning("Bank API error: %s %s -> %s", method, path, status)
            raise HttpStatusError(message, status=status, detail=detail) from exc
        except httpx.TimeoutException as exc:
            logger.warning("Bank API timeout: %s %s", method, path)
            raise NetworkError(
                f"Request timed out: {exc}", status="TIMEOUT_ERROR"
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Bank API request error: %s %s: %s", method, path, exc)
            raise NetworkError(f"Request error: {exc}", status="FETCH_ERROR") from exc

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Bank API returned non-JSON body: %s %s", method, path)
            raise UnknownApiError(
                "Response body is not valid JSON",
                status="PARSING_ERROR",
                detail=response.text,
            ) from exc

    async def login(self, user_type: str, username: str, password: str) -> AuthResponse:
        """Exchange credentials for a bearer token.

        Args:
            user_type: ``"core"`` or ``"merchant"``.
        """
        path = LOGIN_PATHS.get(user_type)
        if path is None:
            raise ValueError(f"Unknown user type: {user_type}")
        payload = AuthRequest(username=username, password=password).model_dump()
        data = await self.request("POST", path, json_data=payload)
        try:
            return AuthResponse.model_validate(data)
        except ValueError as exc:
            raise UnknownApiError(
                "Login response did not include a token", status="PARSING_ERROR", detail=data
            ) from exc
