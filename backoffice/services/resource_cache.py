"""Per-session cache of banking API query results.

One ``ResourceCache`` lives for each console session. Pages ask it for data
through ``query``; the cache shares in-flight requests, serves fresh results
from memory, refreshes stale ones in the background and drops or refetches
entries whose tags a mutation invalidated.

Concurrent queries on the same list panel are resolved last-started-wins:
each panel passes a ``slot`` and a query answered after a newer query on the
same slot started comes back with ``superseded=True``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from backoffice.config import settings
from backoffice.metrics import CACHE_INVALIDATIONS, CACHE_LOOKUPS, observe_fetch
from backoffice.services.api_errors import ApiError, UnknownApiError
from backoffice.services.bank_api import BankApiClient
from backoffice.services.endpoints import (
    MUTATIONS,
    QUERIES,
    MutationEndpoint,
    QueryEndpoint,
    Tag,
    tags_overlap,
)
from backoffice.services.pagination import clean_params

logger = logging.getLogger(__name__)

CacheKey = tuple[str, tuple[tuple[str, str], ...]]


@dataclass
class QueryResult:
    data: Any = None
    error: ApiError | None = None
    is_loading: bool = False
    is_fetching: bool = False
    superseded: bool = False

    @property
    def status(self) -> str:
        if self.error is not None:
            return "error"
        if self.is_loading:
            return "loading"
        return "ready"


@dataclass
class _Entry:
    endpoint: QueryEndpoint
    params: dict[str, Any]
    last_used: float
    data: Any = None
    error: ApiError | None = None
    fetched_at: float | None = None
    tags: list[Tag] = field(default_factory=list)
    generation: int = 0
    task: asyncio.Task | None = None
    invalidated: bool = False

    @property
    def has_result(self) -> bool:
        return self.fetched_at is not None

    def snapshot(self) -> QueryResult:
        return QueryResult(
            data=self.data if self.has_result else None,
            error=self.error,
            is_loading=not self.has_result,
            is_fetching=self.task is not None,
        )


def _cache_key(endpoint_key: str, params: Mapping[str, Any]) -> CacheKey:
    return endpoint_key, tuple(sorted((name, str(value)) for name, value in params.items()))


class ResourceCache:
    def __init__(
        self,
        client: BankApiClient,
        *,
        revalidate_after: float | None = None,
        keep_unused_for: float | None = None,
        queries: Mapping[str, QueryEndpoint] | None = None,
        mutations: Mapping[str, MutationEndpoint] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.revalidate_after = (
            settings.cache_revalidate_after_seconds
            if revalidate_after is None
            else revalidate_after
        )
        self.keep_unused_for = (
            settings.cache_keep_unused_seconds if keep_unused_for is None else keep_unused_for
        )
        self._queries = dict(QUERIES if queries is None else queries)
        self._mutations = dict(MUTATIONS if mutations is None else mutations)
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}
        self._slots: defaultdict[str, int] = defaultdict(int)
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def _resolve(self, endpoint_key: str, params: Mapping[str, Any] | None):
        try:
            endpoint = self._queries[endpoint_key]
        except KeyError:
            raise KeyError(f"Unknown query endpoint: {endpoint_key}") from None
        args = clean_params(endpoint.resolve_params(dict(params or {})))
        return endpoint, args, _cache_key(endpoint_key, args)

    async def query(
        self,
        endpoint_key: str,
        params: Mapping[str, Any] | None = None,
        *,
        slot: str | None = None,
        await_refresh: bool = False,
    ) -> QueryResult:
        """Return the result for ``endpoint_key`` with ``params``.

        Waits for the network only when nothing usable is cached, or, with
        ``await_refresh``, when a background refresh of the entry is already
        running. Errors come back in ``QueryResult.error``; they are never raised.
        """
        endpoint, args, key = self._resolve(endpoint_key, params)
        ticket = None
        if slot is not None:
            self._slots[slot] += 1
            ticket = self._slots[slot]

        now = self._clock()
        self._evict_unused(now)
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry(endpoint=endpoint, params=args, last_used=now)
            self._entries[key] = entry
        entry.last_used = now

        if entry.has_result and entry.error is None and not entry.invalidated:
            CACHE_LOOKUPS.labels(endpoint=endpoint_key, outcome="hit").inc()
            if entry.task is None and now - entry.fetched_at >= self.revalidate_after:
                self._start_fetch(entry)
            elif entry.task is not None and await_refresh:
                await self._wait(entry)
            result = entry.snapshot()
        else:
            if entry.task is None:
                CACHE_LOOKUPS.labels(endpoint=endpoint_key, outcome="miss").inc()
                self._start_fetch(entry)
            else:
                CACHE_LOOKUPS.labels(endpoint=endpoint_key, outcome="shared").inc()
            await self._wait(entry)
            result = entry.snapshot()

        if slot is not None and self._slots[slot] != ticket:
            logger.debug("Query on slot %s superseded: %s %s", slot, endpoint_key, args)
            result.superseded = True
        return result

    def peek(self, endpoint_key: str, params: Mapping[str, Any] | None = None) -> QueryResult:
        """Snapshot of the cached result without touching the network."""
        _, _, key = self._resolve(endpoint_key, params)
        entry = self._entries.get(key)
        if entry is None:
            return QueryResult(is_loading=True)
        return entry.snapshot()

    async def mutate(
        self, endpoint_key: str, body: Any = None, **args: Any
    ) -> Any:
        """Run a mutation and invalidate the tags it declares.

        Raises:
            ApiError: the mutation failed; nothing is invalidated.
        """
        try:
            endpoint = self._mutations[endpoint_key]
        except KeyError:
            raise KeyError(f"Unknown mutation endpoint: {endpoint_key}") from None
        result = await endpoint.execute(self.client, body, args)
        tags = endpoint.invalidates(result, None, args)
        count = self.invalidate_tags(tags)
        logger.debug("Mutation %s invalidated %d cache entries", endpoint_key, count)
        return result

    def invalidate_tags(self, tags: Iterable[Tag]) -> int:
        """Invalidate every entry providing one of ``tags``.

        Entries used within ``keep_unused_for`` are refetched in the
        background; the rest are evicted. Returns the number of entries hit.
        """
        tags = list(tags)
        now = self._clock()
        count = 0
        for key, entry in list(self._entries.items()):
            if not tags_overlap(tags, entry.tags):
                continue
            count += 1
            CACHE_INVALIDATIONS.labels(endpoint=entry.endpoint.key).inc()
            if now - entry.last_used <= self.keep_unused_for:
                entry.invalidated = True
                self._start_fetch(entry)
            else:
                del self._entries[key]
        return count

    def clear(self) -> None:
        self._entries.clear()
        self._slots.clear()

    def _evict_unused(self, now: float) -> None:
        stale = [
            key
            for key, entry in self._entries.items()
            if entry.task is None and now - entry.last_used > self.keep_unused_for
        ]
        for key in stale:
            del self._entries[key]

    def _start_fetch(self, entry: _Entry) -> None:
        entry.generation += 1
        task = asyncio.create_task(self._fetch(entry, entry.generation))
        entry.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _wait(self, entry: _Entry) -> None:
        # A newer fetch may replace the one being awaited; follow it.
        while entry.task is not None:
            await asyncio.shield(entry.task)

    async def _fetch(self, entry: _Entry, generation: int) -> None:
        key = entry.endpoint.key
        logger.debug("Fetching %s %s", key, entry.params)
        started = time.perf_counter()
        data = None
        error: ApiError | None = None
        try:
            data = await entry.endpoint.fetch(self.client, entry.params)
        except ApiError as exc:
            error = exc
        except Exception as exc:
            logger.exception("Unexpected failure fetching %s", key)
            error = UnknownApiError(str(exc) or type(exc).__name__)
        finally:
            if entry.generation == generation:
                entry.task = None

        observe_fetch(key, "error" if error else "ok", time.perf_counter() - started)
        if entry.generation != generation:
            logger.debug("Discarding superseded response for %s %s", key, entry.params)
            return

        if error is None:
            entry.data = data
        entry.error = error
        entry.fetched_at = self._clock()
        entry.invalidated = False
        entry.tags = entry.endpoint.provides(data if error is None else None, error, entry.params)
        logger.debug("Fetched %s %s (error=%r)", key, entry.params, error)


@dataclass
class _Registered:
    token: str
    cache: ResourceCache
    last_seen: float


class CacheRegistry:
    """One ``ResourceCache`` per console session.

    A cache not asked for within ``max_idle`` seconds (the session TTL by
    default) belongs to a session that has lapsed and is dropped.
    """

    def __init__(
        self,
        client_factory: Callable[..., BankApiClient] = BankApiClient,
        *,
        max_idle: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        **cache_options: Any,
    ):
        self._client_factory = client_factory
        self._cache_options = cache_options
        self.max_idle = settings.session_ttl_seconds if max_idle is None else max_idle
        self._clock = clock
        self._caches: dict[str, _Registered] = {}

    def get(self, session_id: str, token: str) -> ResourceCache:
        now = self._clock()
        self._drop_idle(now)
        existing = self._caches.get(session_id)
        if existing is not None and existing.token == token:
            existing.last_seen = now
            return existing.cache
        if existing is not None:
            existing.cache.clear()
        cache = ResourceCache(self._client_factory(token=token), **self._cache_options)
        self._caches[session_id] = _Registered(token, cache, now)
        return cache

    def drop(self, session_id: str) -> None:
        existing = self._caches.pop(session_id, None)
        if existing is not None:
            existing.cache.clear()

    def _drop_idle(self, now: float) -> None:
        idle = [
            session_id
            for session_id, registered in self._caches.items()
            if now - registered.last_seen > self.max_idle
        ]
        for session_id in idle:
            logger.debug("Dropping resource cache of idle session")
            self.drop(session_id)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._caches

    def __len__(self) -> int:
        return len(self._caches)


cache_registry = CacheRegistry()
