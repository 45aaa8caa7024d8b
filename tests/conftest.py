import os

os.environ.setdefault("SESSION_IN_MEMORY_FALLBACK", "true")
os.environ.setdefault("SECURE_COOKIES", "false")

import pytest
from fastapi.testclient import TestClient

from backoffice.services import resource_cache, session_context, web_auth
from backoffice.services.bank_api import BankApiClient
from backoffice.web.auth.routes import limiter
from tests.mocks import FakeBankApi


@pytest.fixture(autouse=True)
def _isolated_state(monkeypatch):
    store = session_context.session_store
    monkeypatch.setattr(store, "_redis", None)
    monkeypatch.setattr(store, "_redis_unavailable", True)
    monkeypatch.setattr(store, "memory_fallback", True)
    store.clear()
    resource_cache.cache_registry._caches.clear()
    limiter.reset()
    yield
    store.clear()
    resource_cache.cache_registry._caches.clear()


@pytest.fixture()
def bank():
    return FakeBankApi()


@pytest.fixture()
def client(bank, monkeypatch):
    transport = bank.transport()

    def client_factory(base_url=None, *, token=None, **kwargs):
        return BankApiClient(base_url, token=token, transport=transport)

    monkeypatch.setattr(resource_cache.cache_registry, "_client_factory", client_factory)
    monkeypatch.setattr(web_auth, "BankApiClient", client_factory)

    from backoffice.main import app

    # One portal for the whole test so cache tasks stay on a single event loop.
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def login(test_client: TestClient, portal: str, username: str, password: str = "secret123"):
    test_client.get(f"/{portal}")
    return test_client.post(
        f"/{portal}",
        data={
            "username": username,
            "password": password,
            "_csrf_token": test_client.cookies.get("csrf_token"),
        },
        follow_redirects=False,
    )


def csrf_data(test_client: TestClient, **fields):
    return {"_csrf_token": test_client.cookies.get("csrf_token"), **fields}


@pytest.fixture()
def admin_client(client):
    response = login(client, "core", "admin")
    assert response.status_code == 303
    return client


@pytest.fixture()
def merchant_admin_client(client):
    response = login(client, "merchant", "owner")
    assert response.status_code == 303
    return client


@pytest.fixture()
def merchant_user_client(client):
    response = login(client, "merchant", "clerk")
    assert response.status_code == 303
    return client
