import json
from unittest.mock import MagicMock

import pytest
import redis
from starlette.requests import Request

from backoffice.services import resource_cache, session_context
from backoffice.services.session_context import (
    LOGGED_OUT,
    SESSION_COOKIE_NAME,
    ConsoleSessionStore,
    CoreSession,
    LoggedOut,
    MerchantSession,
    SessionContext,
    login_session,
    logout_session,
    read_session,
    session_from_payload,
    session_to_payload,
)


def _request_with_cookie(value: str | None) -> Request:
    headers = []
    if value is not None:
        headers.append((b"cookie", f"{SESSION_COOKIE_NAME}={value}".encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"kind": "core", "token": "t", "username": "admin"}, CoreSession("t", "admin")),
        ({"kind": "merchant", "token": "t", "username": "owner"}, MerchantSession("t", "owner")),
        ({"kind": "core", "token": "", "username": "admin"}, LOGGED_OUT),
        ({"kind": "core", "token": "t"}, LOGGED_OUT),
        ({"kind": "partner", "token": "t", "username": "x"}, LOGGED_OUT),
        ({"token": "t", "username": "x"}, LOGGED_OUT),
        (["core", "t"], LOGGED_OUT),
        (None, LOGGED_OUT),
    ],
)
def test_session_from_payload_only_accepts_whole_variants(payload, expected):
    assert session_from_payload(payload) == expected


def test_payload_round_trip():
    session = MerchantSession(token="t", username="owner")

    assert session_from_payload(session_to_payload(session)) == session


def test_session_homes():
    assert LoggedOut.home_url == "/"
    assert CoreSession.home_url == "/admin/dashboard"
    assert MerchantSession.home_url == "/merchant/dashboard"


def test_read_session_without_cookie_is_logged_out():
    context = read_session(_request_with_cookie(None))

    assert context == SessionContext(None, LOGGED_OUT)
    assert not context.is_authenticated
    assert context.username is None


def test_login_then_read_returns_same_session():
    context = login_session(CoreSession(token="t", username="admin"))

    restored = read_session(_request_with_cookie(context.session_id))

    assert restored.session == CoreSession(token="t", username="admin")
    assert restored.is_authenticated
    assert restored.username == "admin"


def test_login_replaces_previous_session():
    first = login_session(CoreSession(token="t1", username="admin"))
    second = login_session(MerchantSession(token="t2", username="owner"), previous=first)

    assert read_session(_request_with_cookie(first.session_id)).session == LOGGED_OUT
    assert read_session(_request_with_cookie(second.session_id)).session == MerchantSession(
        token="t2", username="owner"
    )


def test_malformed_stored_payload_is_discarded():
    redis_client = MagicMock()
    redis_client.get.return_value = json.dumps({"kind": "core", "token": "t"})
    store = ConsoleSessionStore("redis://sessions", ttl_seconds=60, memory_fallback=False)
    store._redis = redis_client

    assert store.load("broken") is None
    redis_client.delete.assert_called_once_with("session:console:broken")


def test_store_writes_typed_session_to_redis_with_ttl():
    redis_client = MagicMock()
    store = ConsoleSessionStore("redis://sessions", ttl_seconds=60, memory_fallback=True)
    store._redis = redis_client

    store.save("abc", MerchantSession(token="t", username="owner"))

    key, ttl, raw = redis_client.setex.call_args.args
    assert (key, ttl) == ("session:console:abc", 60)
    assert json.loads(raw) == {"kind": "merchant", "token": "t", "username": "owner"}
    redis_client.get.return_value = raw
    assert store.load("abc") == MerchantSession(token="t", username="owner")


def test_redis_failure_falls_back_to_memory():
    redis_client = MagicMock()
    redis_client.setex.side_effect = redis.ConnectionError("down")
    redis_client.get.side_effect = redis.ConnectionError("down")
    store = ConsoleSessionStore("redis://sessions", ttl_seconds=60, memory_fallback=True)
    store._redis = redis_client

    store.save("abc", CoreSession(token="t", username="admin"))

    assert store.load("abc") == CoreSession(token="t", username="admin")


def test_store_without_redis_or_fallback_refuses_to_save():
    store = ConsoleSessionStore(None, ttl_seconds=60, memory_fallback=False)

    with pytest.raises(RuntimeError):
        store.save("abc", CoreSession(token="t", username="admin"))
    assert store.load("abc") is None


def test_memory_sessions_expire_after_ttl():
    now = [1000.0]
    store = ConsoleSessionStore(
        None, ttl_seconds=60, memory_fallback=True, clock=lambda: now[0]
    )
    store.save("abc", CoreSession(token="t", username="admin"))
    store.save("def", CoreSession(token="u", username="auditor"))

    now[0] += 59
    assert store.load("abc") == CoreSession(token="t", username="admin")

    now[0] += 1
    assert store.load("abc") is None
    assert store.sweep_expired() == ["def"]


def test_expired_session_releases_its_cache():
    context = login_session(CoreSession(token="t", username="admin"))
    context.cache()
    assert context.session_id in resource_cache.cache_registry

    session_context.session_store._memory.pop(context.session_id)
    restored = read_session(_request_with_cookie(context.session_id))

    assert restored.session == LOGGED_OUT
    assert context.session_id not in resource_cache.cache_registry


def test_login_sweeps_caches_of_lapsed_memory_sessions(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(session_context.session_store, "_clock", lambda: now[0])
    lapsed = login_session(CoreSession(token="t", username="admin"))
    lapsed.cache()

    now[0] += session_context.session_store.ttl_seconds
    login_session(MerchantSession(token="m", username="owner"))

    assert lapsed.session_id not in resource_cache.cache_registry
    assert lapsed.session_id not in session_context.session_store._memory


def test_logout_drops_session_and_cache():
    context = login_session(CoreSession(token="t", username="admin"))
    context.cache()
    assert context.session_id in resource_cache.cache_registry

    logout_session(context.session_id)

    assert read_session(_request_with_cookie(context.session_id)).session == LOGGED_OUT
    assert context.session_id not in resource_cache.cache_registry


def test_logged_out_context_has_no_cache():
    with pytest.raises(RuntimeError):
        SessionContext(None, LOGGED_OUT).cache()
