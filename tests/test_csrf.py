import pytest
from starlette.requests import Request

from backoffice.csrf import (
    CSRF_HEADER_NAME,
    needs_protection,
    submitted_token,
    tokens_match,
)


def _request(headers: dict[str, str]) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "method": "POST", "path": "/admin/merchants", "headers": raw})


@pytest.mark.parametrize(
    ("path", "protected"),
    [
        ("/", True),
        ("/core", True),
        ("/merchant/users", True),
        ("/admin/merchants", True),
        ("/logout", True),
        ("/health", False),
        ("/metrics", False),
        ("/static/app.css", False),
        ("/docs", False),
    ],
)
def test_needs_protection(path, protected):
    assert needs_protection(path) is protected


def test_header_token_wins_over_form_body():
    request = _request(
        {CSRF_HEADER_NAME: "from-header", "content-type": "application/x-www-form-urlencoded"}
    )

    assert submitted_token(request, b"_csrf_token=from-body") == "from-header"


def test_form_body_token():
    request = _request({"content-type": "application/x-www-form-urlencoded"})

    assert submitted_token(request, b"name=Acme&_csrf_token=abc123") == "abc123"


def test_json_body_is_not_searched():
    request = _request({"content-type": "application/json"})

    assert submitted_token(request, b'{"_csrf_token": "abc"}') is None


def test_tokens_match():
    assert tokens_match("abc", "abc")
    assert not tokens_match("abc", "abd")
    assert not tokens_match(None, "abc")
    assert not tokens_match("abc", None)


def test_post_without_token_is_rejected(admin_client, bank):
    response = admin_client.post(
        "/admin/merchants", data={"name": "Gamma Ltd", "cnpj": "11222333000144"}
    )

    assert response.status_code == 403
    assert "CSRF token invalid" in response.text
    assert bank.calls("POST", "/api/v1/merchants") == []


def test_post_with_wrong_token_is_rejected(admin_client):
    response = admin_client.post(
        "/admin/merchants",
        data={"name": "Gamma Ltd", "cnpj": "11222333000144", "_csrf_token": "forged"},
    )

    assert response.status_code == 403


def test_htmx_header_token_is_accepted(admin_client):
    response = admin_client.post(
        "/admin/merchants",
        data={"name": "Gamma Ltd", "cnpj": "11222333000144"},
        headers={CSRF_HEADER_NAME: admin_client.cookies.get("csrf_token")},
        follow_redirects=False,
    )

    assert response.status_code == 303


def test_login_without_csrf_cookie_is_rejected(client):
    response = client.post("/core", data={"username": "admin", "password": "secret123"})

    assert response.status_code == 403
    assert "CSRF token missing" in response.text
