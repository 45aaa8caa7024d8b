"""Error taxonomy for everything that comes back from the banking API.

Errors are classified once, where the HTTP call is made, and every page and
component downstream reads the same shape:

- ``NetworkError``: the request never produced a response (connect failure,
  timeout).
- ``HttpStatusError``: the API answered with a non-2xx status.
- ``ClientValidationError``: a form failed local validation and was never sent.
- ``UnknownApiError``: anything else, including bodies that could not be parsed.

``describe_error`` also accepts the loose dict shapes older callers pass around
(``{status, data: {message}}``, ``{status, error}``, ``{message}``).
"""

from __future__ import annotations

import enum
import json
from typing import Any


class ErrorKind(str, enum.Enum):
    network = "network"
    http_status = "http_status"
    validation = "validation"
    unknown = "unknown"


class ApiError(Exception):
    """Base exception for banking API failures."""

    kind: ErrorKind = ErrorKind.unknown

    def __init__(
        self,
        message: str,
        *,
        status: int | str | None = None,
        detail: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.detail = detail

    @property
    def is_unauthorized(self) -> bool:
        return False

    def as_payload(self) -> dict[str, Any]:
        if self.status is not None:
            return {"status": self.status, "error": self.message}
        return {"message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status!r}, message={self.message!r})"


class NetworkError(ApiError):
    kind = ErrorKind.network


class HttpStatusError(ApiError):
    kind = ErrorKind.http_status

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401

    def as_payload(self) -> dict[str, Any]:
        if isinstance(self.detail, dict) and isinstance(self.detail.get("message"), str):
            return {"status": self.status, "data": self.detail}
        if isinstance(self.detail, str) and self.detail:
            return {"status": self.status, "data": self.detail}
        return {"status": self.status, "error": self.message}


class ClientValidationError(ApiError):
    kind = ErrorKind.validation

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(self.errors[0] if self.errors else "Invalid input")

    def as_payload(self) -> dict[str, Any]:
        return {"message": self.message}


class UnknownApiError(ApiError):
    kind = ErrorKind.unknown


class SessionExpired(Exception):
    """Raised when the API rejects the session token of a logged-in user."""

    def __init__(self, redirect_url: str = "/"):
        self.redirect_url = redirect_url
        super().__init__("Session expired")


def _as_shape(error: Any) -> Any:
    if isinstance(error, ApiError):
        return error.as_payload()
    return error


def error_status(error: Any) -> Any:
    """Return the ``status`` field of an error, if it has one."""
    if isinstance(error, ApiError):
        return error.status
    if isinstance(error, dict):
        return error.get("status")
    return getattr(error, "status", None)


def describe_error(error: Any, resource_name: str) -> str:
    if not error:
        return f"An unknown error occurred while fetching {resource_name}."

    shape = _as_shape(error)
    if isinstance(shape, dict):
        if "status" in shape and "data" in shape:
            message = f"Error fetching {resource_name}. Status: {shape['status']}."
            data = shape["data"]
            if isinstance(data, dict) and isinstance(data.get("message"), str):
                message += f" Message: {data['message']}"
            elif isinstance(data, str) and data:
                message += f" Data: {data}"
            return message
        if "status" in shape and isinstance(shape.get("error"), str):
            return (
                f"Error fetching {resource_name}. Status: {shape['status']}. "
                f"Details: {shape['error']}"
            )
        if isinstance(shape.get("message"), str):
            return f"Error: {shape['message']}"

    try:
        details = json.dumps(shape)
    except (TypeError, ValueError):
        return (
            "An unexpected and non-serializable error was encountered "
            f"while fetching {resource_name}."
        )
    return (
        "An unexpected error structure was encountered while fetching "
        f"{resource_name}. Details: {details}"
    )


def form_error_message(error: Any) -> str:
    """Short message for create/edit form feedback."""
    shape = _as_shape(error)
    if isinstance(shape, dict):
        data = shape.get("data")
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            return data["message"]
        if isinstance(shape.get("message"), str):
            return shape["message"]
        if isinstance(shape.get("error"), str):
            return shape["error"]
    return "An unexpected error occurred."
