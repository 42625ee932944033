"""Query cache with staleness, request coalescing, retry and prefix invalidation.

Reads are keyed by ``(endpoint, params)``. A fresh entry is served without a
network call. A stale entry that still has data is served as-is while a
background revalidation runs. An invalidated entry is never served: the next
read waits for a new fetch, so a read after a mutation always sees the
mutation.

Every entry carries a generation counter. Invalidation and optimistic writes
bump it, and a fetch only stores its result if the generation it started
under is still current. That is what keeps a fetch that was already in
flight from resurrecting pre-mutation data.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_fixed

from core.logging_config import get_logger
from .config import ClientSettings, get_client_settings
from .errors import is_transient
from .http import clean_params

LOGGER = get_logger(__name__)

Fetcher = Callable[[str, Dict[str, Any]], Awaitable[Any]]
Updater = Callable[[Any], Any]


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def _normalize_prefix(path: str) -> str:
    return "/" + path.strip("/")


@dataclass(frozen=True)
class QueryKey:
    """Hashable cache key; params are frozen into a sorted tuple."""

    endpoint: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def of(cls, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> "QueryKey":
        cleaned = clean_params(params)
        frozen = tuple(sorted((name, _freeze(value)) for name, value in cleaned.items()))
        return cls(_normalize_prefix(endpoint), frozen)

    def params_dict(self) -> Dict[str, Any]:
        return {name: list(value) if isinstance(value, tuple) else value for name, value in self.params}

    def matches(self, prefix: str) -> bool:
        """True when the endpoint is ``prefix`` or lies below it on a segment boundary."""
        prefix = _normalize_prefix(prefix)
        if prefix == "/":
            return True
        return self.endpoint == prefix or self.endpoint.startswith(prefix + "/")


@dataclass
class CacheEntry:
    key: QueryKey
    stale_time: float
    last_used: float
    data: Any = None
    has_data: bool = False
    updated_at: Optional[float] = None
    invalidated: bool = False
    error: Optional[BaseException] = None
    generation: int = 0
    in_flight: Optional[asyncio.Task] = None

    def is_fresh(self, now: float, stale_time: Optional[float] = None) -> bool:
        if not self.has_data or self.invalidated or self.error is not None:
            return False
        threshold = self.stale_time if stale_time is None else stale_time
        return self.updated_at is not None and now - self.updated_at < threshold

    def fetching(self) -> bool:
        return self.in_flight is not None and not self.in_flight.done()


@dataclass(frozen=True)
class CachedValue:
    """What ``peek`` reports for a key."""

    data: Any
    is_fresh: bool
    updated_at: Optional[float]
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class Snapshot:
    """Saved entry states for rolling back an optimistic write."""

    entries: Tuple[Tuple[QueryKey, bool, Any, Optional[float]], ...] = ()

    def __bool__(self) -> bool:
        return bool(self.entries)


@dataclass
class CacheStats:
    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    network_fetches: int = 0
    evictions: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "hits": self.hits,
            "stale_hits": self.stale_hits,
            "misses": self.misses,
            "network_fetches": self.network_fetches,
            "evictions": self.evictions,
        }


def _consume_result(task: asyncio.Task) -> None:
    # Background revalidations are never awaited; retrieve their errors here.
    if not task.cancelled():
        task.exception()


def spawn(coro: Awaitable[Any]) -> asyncio.Task:
    """Run a coroutine as its own task whose outcome is retrieved even if nobody awaits it."""
    task = asyncio.ensure_future(coro)
    task.add_done_callback(_consume_result)
    return task


class QueryCache:
    """
    Explicitly scoped read cache for one client session.

    Usage:
        async with QueryCache(api.get, settings) as cache:
            leads = await cache.fetch("/api/leads", {"status": "new"})
            cache.invalidate("/api/leads")
    """

    def __init__(
        self,
        fetcher: Fetcher,
        settings: Optional[ClientSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.fetcher = fetcher
        self.settings = settings or get_client_settings()
        self.clock = clock
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._stats = CacheStats()
        self._gc_task: Optional[asyncio.Task] = None
        self._closed = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "QueryCache":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Open the cache and start periodic garbage collection."""
        self._closed = False
        if self._gc_task is None and self.settings.gc_time > 0:
            self._gc_task = asyncio.create_task(self._gc_loop())

    async def close(self) -> None:
        """Cancel background work and drop every entry."""
        self._closed = True
        tasks = [entry.in_flight for entry in self._entries.values() if entry.fetching()]
        if self._gc_task is not None:
            tasks.append(self._gc_task)
            self._gc_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._entries.clear()

    async def _gc_loop(self) -> None:
        interval = max(1.0, min(self.settings.gc_time, 60.0))
        while True:
            await asyncio.sleep(interval)
            self.collect_garbage()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def _entry(self, key: QueryKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(
                key=key,
                stale_time=self.settings.stale_time_for(key.endpoint),
                last_used=self.clock(),
            )
            self._entries[key] = entry
        return entry

    async def fetch(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        stale_time: Optional[float] = None,
        force: bool = False,
    ) -> Any:
        """
        Read through the cache.

        Args:
            endpoint: Collection or detail path, e.g. ``/api/leads``.
            params: Query parameters; empty filters are ignored.
            stale_time: Staleness threshold for this read only; the entry keeps
                its per-resource default.
            force: Always wait for a (possibly shared) network fetch.

        Returns:
            The cached or freshly fetched value.

        Raises:
            ClientError: When the fetch fails after retries and there is no
                data that may be served instead.
        """
        if self._closed:
            raise RuntimeError("QueryCache is closed")

        key = QueryKey.of(endpoint, params)
        entry = self._entry(key)
        now = self.clock()
        entry.last_used = now

        if not force and entry.is_fresh(now, stale_time):
            self._stats.hits += 1
            return entry.data

        task = self._ensure_fetch(entry)
        if not force and entry.has_data and not entry.invalidated:
            # Stale while revalidate.
            self._stats.stale_hits += 1
            return entry.data

        self._stats.misses += 1
        # A cancelled caller must not cancel the fetch other callers share.
        return await asyncio.shield(task)

    async def refetch(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.fetch(endpoint, params, force=True)

    def peek(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Optional[CachedValue]:
        """Current value for a key without fetching; None if never loaded."""
        entry = self._entries.get(QueryKey.of(endpoint, params))
        if entry is None or not entry.has_data:
            return None
        return CachedValue(
            data=entry.data,
            is_fresh=entry.is_fresh(self.clock()),
            updated_at=entry.updated_at,
            error=entry.error,
        )

    def keys(self, prefix: Optional[str] = None) -> List[QueryKey]:
        return [key for key in self._entries if prefix is None or key.matches(prefix)]

    def _ensure_fetch(self, entry: CacheEntry) -> asyncio.Task:
        if entry.fetching():
            return entry.in_flight
        task = spawn(self._run_fetch(entry.key, entry.generation))
        entry.in_flight = task
        return task

    async def _run_fetch(self, key: QueryKey, generation: int) -> Any:
        try:
            data = await self._fetch_with_retry(key)
        except Exception as exc:
            entry = self._entries.get(key)
            if entry is not None and entry.generation == generation:
                entry.error = exc
            LOGGER.warning(f"Query {key.endpoint} failed: {exc}")
            raise
        finally:
            entry = self._entries.get(key)
            if entry is not None and entry.in_flight is asyncio.current_task():
                entry.in_flight = None

        entry = self._entries.get(key)
        if entry is None or entry.generation != generation:
            LOGGER.debug(f"Discarding result for {key.endpoint}: superseded while in flight")
            return data
        entry.data = data
        entry.has_data = True
        entry.updated_at = self.clock()
        entry.invalidated = False
        entry.error = None
        return data

    async def _fetch_with_retry(self, key: QueryKey) -> Any:
        data = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.query_retries + 1),
            wait=wait_fixed(self.settings.retry_delay_seconds),
            retry=retry_if_exception(is_transient),
            before_sleep=before_sleep_log(LOGGER, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                self._stats.network_fetches += 1
                data = await self.fetcher(key.endpoint, key.params_dict())
        return data

    # -------------------------------------------------------------------------
    # Invalidation and optimistic writes
    # -------------------------------------------------------------------------

    def invalidate(self, prefix: str) -> int:
        """
        Mark every entry at or below ``prefix`` as invalid.

        In-flight fetches for those entries are detached; whatever they return
        is not stored. Returns the number of entries invalidated.
        """
        count = 0
        for key, entry in self._entries.items():
            if key.matches(prefix):
                entry.invalidated = True
                entry.generation += 1
                entry.in_flight = None
                count += 1
        if count:
            LOGGER.debug(f"Invalidated {count} queries under {prefix}")
        return count

    def set_data(self, keys: Union[QueryKey, Iterable[QueryKey]], updater: Updater) -> Snapshot:
        """
        Apply an optimistic change to cached data.

        ``updater`` receives the current value and returns the new one; keys
        without data are skipped. Returns a snapshot for ``restore``.
        """
        if isinstance(keys, QueryKey):
            keys = [keys]
        saved = []
        now = self.clock()
        for key in keys:
            entry = self._entries.get(key)
            if entry is None or not entry.has_data:
                continue
            saved.append((key, entry.has_data, entry.data, entry.updated_at))
            entry.data = updater(entry.data)
            entry.updated_at = now
            entry.generation += 1
            entry.in_flight = None
        return Snapshot(tuple(saved))

    def restore(self, snapshot: Snapshot) -> None:
        """Roll back entries saved by ``set_data``."""
        for key, has_data, data, updated_at in snapshot.entries:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entry(key)
            entry.has_data = has_data
            entry.data = data
            entry.updated_at = updated_at
            entry.generation += 1
            entry.in_flight = None

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    def collect_garbage(self) -> int:
        """Evict entries unused for ``gc_time`` seconds that are not fetching."""
        cutoff = self.clock() - self.settings.gc_time
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.last_used < cutoff and not entry.fetching()
        ]
        for key in expired:
            del self._entries[key]
        self._stats.evictions += len(expired)
        return len(expired)

    def stats(self) -> Dict[str, int]:
        return {
            **self._stats.to_dict(),
            "size": len(self._entries),
            "in_flight": sum(1 for entry in self._entries.values() if entry.fetching()),
        }


__all__ = [
    "QueryCache",
    "QueryKey",
    "CacheEntry",
    "CachedValue",
    "Snapshot",
    "Fetcher",
    "spawn",
]
