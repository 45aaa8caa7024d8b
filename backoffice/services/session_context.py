"""Typed console sessions.

A browser session is exactly one of ``LoggedOut``, ``CoreSession`` or
``MerchantSession``. ``login_session`` and ``logout_session`` are the only
writers; route guards and the cache registry read the session through
``read_session``.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar, Union, cast

import redis
from fastapi import Request
from starlette.responses import Response

from backoffice.config import settings
from backoffice.csrf import is_https_request
from backoffice.services.resource_cache import ResourceCache, cache_registry

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "console_session"
_SESSION_PREFIX = "session:console"


@dataclass(frozen=True)
class LoggedOut:
    kind: ClassVar[str] = "logged_out"
    home_url: ClassVar[str] = "/"


@dataclass(frozen=True)
class CoreSession:
    token: str
    username: str
    kind: ClassVar[str] = "core"
    home_url: ClassVar[str] = "/admin/dashboard"


@dataclass(frozen=True)
class MerchantSession:
    token: str
    username: str
    kind: ClassVar[str] = "merchant"
    home_url: ClassVar[str] = "/merchant/dashboard"


Session = Union[LoggedOut, CoreSession, MerchantSession]
AuthenticatedSession = Union[CoreSession, MerchantSession]

LOGGED_OUT = LoggedOut()
_SESSION_TYPES: dict[str, type[CoreSession] | type[MerchantSession]] = {
    CoreSession.kind: CoreSession,
    MerchantSession.kind: MerchantSession,
}


@dataclass(frozen=True)
class SessionContext:
    session_id: str | None
    session: Session

    @property
    def is_authenticated(self) -> bool:
        return not isinstance(self.session, LoggedOut)

    @property
    def username(self) -> str | None:
        return getattr(self.session, "username", None)

    def cache(self) -> ResourceCache:
        if self.session_id is None or isinstance(self.session, LoggedOut):
            raise RuntimeError("Logged-out sessions have no resource cache")
        return cache_registry.get(self.session_id, self.session.token)


def session_from_payload(payload: Any) -> Session:
    """Parse a stored payload; anything that is not one whole variant is logged out."""
    if not isinstance(payload, dict):
        return LOGGED_OUT
    session_type = _SESSION_TYPES.get(payload.get("kind"))
    token = payload.get("token")
    username = payload.get("username")
    if session_type is None or not isinstance(token, str) or not token:
        return LOGGED_OUT
    if not isinstance(username, str) or not username:
        return LOGGED_OUT
    return session_type(token=token, username=username)


def session_to_payload(session: AuthenticatedSession) -> dict[str, str]:
    return {"kind": session.kind, "token": session.token, "username": session.username}


class ConsoleSessionStore:
    """Keeps authenticated sessions between requests.

    Sessions are written to Redis under ``<prefix>:<session_id>`` and expire
    with the Redis key. When Redis is unset or unreachable and
    ``memory_fallback`` is on, they are held in process memory instead, each
    entry carrying its own expiry so memory sessions lapse on the same TTL.
    """

    def __init__(
        self,
        redis_url: str | None,
        *,
        ttl_seconds: int,
        memory_fallback: bool,
        prefix: str = _SESSION_PREFIX,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.redis_url = redis_url
        self.ttl_seconds = max(1, int(ttl_seconds))
        self.memory_fallback = memory_fallback
        self.prefix = prefix
        self._clock = clock
        self._redis: redis.Redis | None = None
        self._redis_unavailable = False
        self._memory: dict[str, tuple[float, AuthenticatedSession]] = {}

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}:{session_id}"

    def redis_client(self) -> redis.Redis | None:
        if self._redis is not None:
            return self._redis
        if self._redis_unavailable or not self.redis_url:
            return None
        try:
            client = redis.Redis.from_url(self.redis_url, decode_responses=True)
            client.ping()
        except redis.RedisError as exc:
            logger.warning("Session Redis unavailable, keeping console sessions in memory: %s", exc)
            self._redis_unavailable = True
            return None
        self._redis = client
        return client

    def load(self, session_id: str) -> AuthenticatedSession | None:
        """The stored session, or ``None`` when it is missing, expired or malformed."""
        client = self.redis_client()
        if client is not None:
            try:
                raw = cast(str | None, client.get(self._key(session_id)))
            except redis.RedisError as exc:
                logger.warning("Session read failed in Redis: %s", exc)
            else:
                if raw is None:
                    return None
                return self._parse(session_id, raw)
        return self._load_from_memory(session_id)

    def _parse(self, session_id: str, raw: str) -> AuthenticatedSession | None:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            payload = None
        session = session_from_payload(payload)
        if isinstance(session, LoggedOut):
            logger.info("Discarding malformed console session payload")
            self.delete(session_id)
            return None
        return session

    def _load_from_memory(self, session_id: str) -> AuthenticatedSession | None:
        if not self.memory_fallback:
            return None
        stored = self._memory.get(session_id)
        if stored is None:
            return None
        expires_at, session = stored
        if self._clock() >= expires_at:
            del self._memory[session_id]
            return None
        return session

    def save(self, session_id: str, session: AuthenticatedSession) -> None:
        client = self.redis_client()
        if client is not None:
            try:
                client.setex(
                    self._key(session_id),
                    self.ttl_seconds,
                    json.dumps(session_to_payload(session)),
                )
            except redis.RedisError as exc:
                logger.warning("Session write failed in Redis, keeping it in memory: %s", exc)
            else:
                self._memory.pop(session_id, None)
                return
        if not self.memory_fallback:
            raise RuntimeError("Session store unavailable and in-memory fallback is disabled")
        self._memory[session_id] = (self._clock() + self.ttl_seconds, session)

    def delete(self, session_id: str) -> None:
        client = self.redis_client()
        if client is not None:
            try:
                client.delete(self._key(session_id))
            except redis.RedisError as exc:
                logger.warning("Session delete failed in Redis: %s", exc)
        self._memory.pop(session_id, None)

    def sweep_expired(self) -> list[str]:
        """Forget lapsed memory sessions and return their ids."""
        now = self._clock()
        expired = [sid for sid, (expires_at, _) in self._memory.items() if now >= expires_at]
        for session_id in expired:
            del self._memory[session_id]
        return expired

    def clear(self) -> None:
        self._memory.clear()


session_store = ConsoleSessionStore(
    settings.session_redis_url,
    ttl_seconds=settings.session_ttl_seconds,
    memory_fallback=settings.session_in_memory_fallback,
)


def read_session(request: Request) -> SessionContext:
    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    if not session_id:
        return SessionContext(None, LOGGED_OUT)
    session = session_store.load(session_id)
    if session is None:
        # Expired or discarded sessions take their cache with them.
        cache_registry.drop(session_id)
        return SessionContext(None, LOGGED_OUT)
    return SessionContext(session_id, session)


def login_session(
    session: AuthenticatedSession, previous: SessionContext | None = None
) -> SessionContext:
    """Store a new session, replacing ``previous`` if there was one."""
    if previous is not None and previous.session_id:
        logout_session(previous.session_id)
    for expired in session_store.sweep_expired():
        cache_registry.drop(expired)
    session_id = secrets.token_urlsafe(32)
    session_store.save(session_id, session)
    logger.info("Console login: %s user %s", session.kind, session.username)
    return SessionContext(session_id, session)


def logout_session(session_id: str | None) -> None:
    if not session_id:
        return
    session_store.delete(session_id)
    cache_registry.drop(session_id)


def set_session_cookie(response: Response, session_id: str, request: Request | None = None) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies and is_https_request(request),
        max_age=settings.session_ttl_seconds,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME)
