from __future__ import annotations

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.testclient import TestClient

from backoffice.errors import register_error_handlers
from backoffice.observability import REQUEST_ID_HEADER, ObservabilityMiddleware
from backoffice.services.api_errors import SessionExpired
from backoffice.web.auth.dependencies import AuthenticationRequired


def _build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(ObservabilityMiddleware)
    register_error_handlers(app)

    api_router = APIRouter(prefix="/api/v1")

    @app.get("/web-http-403")
    def web_http_403():
        raise HTTPException(status_code=403, detail="Forbidden area")

    @app.get("/web-http-409")
    def web_http_409():
        raise HTTPException(status_code=409, detail="User already exists")

    @app.get("/web-http-400")
    def web_http_400():
        raise HTTPException(status_code=400, detail="1 validation error for Thing")

    @app.get("/web-http-502")
    def web_http_502():
        raise HTTPException(status_code=502, detail="Banking API unavailable")

    @app.get("/web-crash")
    def web_crash():
        raise RuntimeError("boom")

    @app.get("/needs-login")
    def needs_login():
        raise AuthenticationRequired("/merchant/dashboard")

    @app.get("/expired")
    def expired():
        raise SessionExpired()

    @api_router.get("/http-403")
    def api_http_403():
        raise HTTPException(status_code=403, detail="Forbidden api")

    @api_router.get("/needs-int")
    def api_needs_int(value: int):
        return {"value": value}

    app.include_router(api_router)
    return app


def test_web_404_renders_html_template() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/missing-page", headers={"accept": "text/html"})
    assert resp.status_code == 404
    assert "text/html" in resp.headers.get("content-type", "")
    assert "Not Found" in resp.text
    assert "Request ID:" in resp.text


def test_web_http_exception_renders_html_template() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/web-http-403", headers={"accept": "text/html"})
    assert resp.status_code == 403
    assert "Forbidden area" in resp.text


def test_web_409_keeps_detail() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/web-http-409", headers={"accept": "text/html"})
    assert resp.status_code == 409
    assert "User already exists" in resp.text


def test_web_400_hides_internal_detail() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/web-http-400", headers={"accept": "text/html"})
    assert resp.status_code == 400
    assert "validation error for Thing" not in resp.text
    assert "Some required information is missing or invalid." in resp.text


def test_web_502_uses_server_error_template() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/web-http-502", headers={"accept": "text/html"})
    assert resp.status_code == 502
    assert "Banking API unavailable" in resp.text


def test_web_unhandled_exception_renders_500_template() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get(
        "/web-crash", headers={"accept": "text/html", REQUEST_ID_HEADER: "req-123"}
    )
    assert resp.status_code == 500
    assert "Oops! Something went wrong" in resp.text
    assert "req-123" in resp.text


def test_api_http_exception_returns_json() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/http-403", headers={REQUEST_ID_HEADER: "req-9"})
    assert resp.status_code == 403
    payload = resp.json()
    assert payload["code"] == "http_403"
    assert payload["message"] == "Forbidden api"
    assert payload["request_id"] == "req-9"
    assert resp.headers[REQUEST_ID_HEADER] == "req-9"


def test_api_validation_error_returns_json() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/needs-int", params={"value": "abc"})
    assert resp.status_code == 422
    payload = resp.json()
    assert payload["code"] == "validation_error"
    assert payload["details"][0]["loc"] == ["query", "value"]


def test_authentication_required_redirects() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/needs-login", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/merchant/dashboard"


def test_authentication_required_tells_htmx_to_navigate() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/needs-login", headers={"HX-Request": "true"}, follow_redirects=False)
    assert resp.status_code == 204
    assert resp.headers["HX-Redirect"] == "/merchant/dashboard"


def test_session_expired_clears_cookie() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    client.cookies.set("console_session", "stale")
    resp = client.get("/expired", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"
    assert 'console_session=""' in resp.headers.get("set-cookie", "")


def test_request_id_is_generated_when_missing() -> None:
    client = TestClient(_build_app(), raise_server_exceptions=False)
    resp = client.get("/api/v1/needs-int", params={"value": "3"})
    assert resp.status_code == 200
    assert len(resp.headers[REQUEST_ID_HEADER]) == 32
