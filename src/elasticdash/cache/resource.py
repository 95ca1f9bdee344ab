"""Read-through cache for remotely fetched, versioned resources."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from ..errors import FetchUnavailable, ResourceNotFound
from ..retry import RetryPolicy, retry_async


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LABEL = "production"


@dataclass(frozen=True)
class ResourceKey:
    """
    Identifies a resource by name plus a version or label.

    With neither given the production label is implied, so
    ResourceKey("p") and ResourceKey("p", label="production") are equal.
    """
    name: str
    version: int | None = None
    label: str | None = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Resource name cannot be empty.")
        if self.version is not None and self.label is not None:
            raise ValueError("Cannot specify both version and label at the same time.")
        if self.version is None and self.label is None:
            object.__setattr__(self, "label", DEFAULT_LABEL)

    def __str__(self) -> str:
        if self.version is not None:
            return f"{self.name}-version:{self.version}"
        return f"{self.name}-label:{self.label}"


Fetcher = Callable[[ResourceKey], Awaitable[Any]]


class CacheStatus(str, Enum):
    """How a resolve() result was produced."""
    FRESH = "fresh"        # Within TTL, no network access
    STALE = "stale"        # Past TTL, served while a refresh runs in background
    FETCHED = "fetched"    # Cold miss, fetched before returning
    FALLBACK = "fallback"  # Fetch failed, caller-supplied fallback returned


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """
    A cached value with metadata.

    Never mutated; a refresh or a grace extension writes a new entry.
    """
    key: ResourceKey
    value: T
    fetched_at: float
    ttl_seconds: float
    # Fresh until this time; starts at fetched_at + ttl_seconds
    refresh_after: float

    def is_stale(self, now: float) -> bool:
        return now >= self.refresh_after

    def age_seconds(self, now: float) -> float:
        return now - self.fetched_at


@dataclass(frozen=True)
class CachedResult(Generic[T]):
    """Result of resolve() with cache state, for caller transparency."""
    value: T
    status: CacheStatus
    age_seconds: float | None = None

    @property
    def is_fallback(self) -> bool:
        return self.status == CacheStatus.FALLBACK

    @property
    def cached(self) -> bool:
        return self.status in (CacheStatus.FRESH, CacheStatus.STALE)


@dataclass
class ResourceCache:
    """
    TTL read-through cache with fetch coalescing.

    - Fresh hit: returned without network access
    - Stale hit: returned immediately, refresh runs in background
    - Miss: blocking fetch; concurrent callers for the same key share it
    - Failed refresh: stale value kept for another stale_grace_seconds
    """
    fetcher: Fetcher

    default_ttl_seconds: float = 60.0
    stale_grace_seconds: float = 5.0
    retry_policy: RetryPolicy = field(
        default_factory=lambda: RetryPolicy(max_retries=2, timeout_seconds=5.0)
    )

    # Injectable for tests
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    # Internal storage
    _store: dict[ResourceKey, CacheEntry] = field(default_factory=dict, init=False)
    _inflight: dict[ResourceKey, asyncio.Task] = field(default_factory=dict, init=False)
    # In-flight fetches some stale entry is waiting on as its refresh
    _refreshing: set[asyncio.Task] = field(default_factory=set, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._stats = {
            "hits": 0,
            "stale_hits": 0,
            "misses": 0,
            "fetches": 0,
            "refresh_failures": 0,
        }

    async def resolve(
        self,
        key: ResourceKey | str,
        *,
        ttl_seconds: float | None = None,
        fallback: Any = None,
        fetcher: Fetcher | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> CachedResult:
        """
        Resolve a resource through the cache.

        Args:
            key: Resource key (a bare name implies the production label)
            ttl_seconds: TTL for a newly fetched entry; 0 bypasses cached values
            fallback: Returned as a FALLBACK result if a cold fetch fails
            fetcher: Per-call fetcher override (coalescing is still by key)
            retry_policy: Per-call retry override

        Raises:
            ResourceNotFound: Backend says the resource does not exist
            FetchUnavailable: Fetch failed transiently and nothing is cached
        """
        key = key if isinstance(key, ResourceKey) else ResourceKey(name=key)
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        fetcher = fetcher or self.fetcher
        policy = retry_policy or self.retry_policy

        now = self.clock()
        entry = self._store.get(key) if ttl > 0 else None

        if entry is not None:
            if not entry.is_stale(now):
                self._stats["hits"] += 1
                logger.debug(f"Cache hit for '{key}'")
                return CachedResult(entry.value, CacheStatus.FRESH, entry.age_seconds(now))

            self._stats["stale_hits"] += 1
            logger.debug(f"Stale entry for '{key}', refreshing in background")
            self._start_fetch(key, ttl, fetcher, policy, refresh=True)
            return CachedResult(entry.value, CacheStatus.STALE, entry.age_seconds(now))

        self._stats["misses"] += 1
        task = self._start_fetch(key, ttl, fetcher, policy, refresh=False)
        try:
            value = await asyncio.shield(task)
        except (ResourceNotFound, FetchUnavailable) as e:
            if fallback is None:
                raise
            logger.warning(f"Returning fallback for '{key}' due to fetch error: {e}")
            return CachedResult(fallback, CacheStatus.FALLBACK)

        return CachedResult(value, CacheStatus.FETCHED, 0.0)

    def invalidate(self, key: ResourceKey | str) -> bool:
        """
        Remove an entry so the next resolve() does a blocking fetch.

        An in-flight fetch for the key is detached and will not write back.
        """
        key = key if isinstance(key, ResourceKey) else ResourceKey(name=key)
        with self._lock:
            self._inflight.pop(key, None)
            return self._store.pop(key, None) is not None

    def invalidate_name(self, name: str) -> int:
        """Invalidate every version and label cached for a resource name."""
        with self._lock:
            keys = [k for k in self._store if k.name == name]
            keys += [k for k in self._inflight if k.name == name and k not in keys]
        for key in keys:
            self.invalidate(key)
        return len(keys)

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._store.clear()
            self._inflight.clear()

    def get_entry(self, key: ResourceKey | str) -> CacheEntry | None:
        """Get the full cache entry (fresh or stale)."""
        key = key if isinstance(key, ResourceKey) else ResourceKey(name=key)
        return self._store.get(key)

    def _start_fetch(
        self,
        key: ResourceKey,
        ttl: float,
        fetcher: Fetcher,
        policy: RetryPolicy,
        refresh: bool,
    ) -> asyncio.Task:
        """
        Return the in-flight fetch for key, starting one if none exists.

        A refresh that joins a fetch started by a blocking caller still gets
        the grace period if that fetch fails.
        """
        with self._lock:
            task = self._inflight.get(key)
            created = task is None
            if created:
                task = asyncio.get_running_loop().create_task(
                    self._fetch_and_store(key, ttl, fetcher, policy)
                )
                self._inflight[key] = task
                self._stats["fetches"] += 1
            watch = refresh and task not in self._refreshing
            if watch:
                self._refreshing.add(task)

        if created:
            task.add_done_callback(lambda t: self._on_fetch_done(key, t))
        if watch:
            task.add_done_callback(lambda t: self._on_refresh_done(key, t))
        return task

    async def _fetch_and_store(
        self,
        key: ResourceKey,
        ttl: float,
        fetcher: Fetcher,
        policy: RetryPolicy,
    ) -> Any:
        me = asyncio.current_task()
        try:
            try:
                value = await retry_async(
                    lambda: fetcher(key),
                    policy,
                    is_retryable=lambda e: isinstance(e, FetchUnavailable),
                    sleep=self.sleep,
                    description=f"Fetch of '{key}'",
                )
            except asyncio.TimeoutError as e:
                raise FetchUnavailable(str(key), "timed out") from e

            now = self.clock()
            entry = CacheEntry(
                key=key,
                value=value,
                fetched_at=now,
                ttl_seconds=ttl,
                refresh_after=now + ttl,
            )
            with self._lock:
                if self._inflight.get(key) is me:
                    self._store[key] = entry
            return value
        finally:
            with self._lock:
                if self._inflight.get(key) is me:
                    del self._inflight[key]

    def _on_fetch_done(self, key: ResourceKey, task: asyncio.Task) -> None:
        # Retrieve the exception so a fetch nobody awaited is not reported as lost
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Fetch of '{key}' failed: {task.exception()!r}")

    def _on_refresh_done(self, key: ResourceKey, task: asyncio.Task) -> None:
        with self._lock:
            self._refreshing.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            logger.debug(f"Refreshed '{key}' in background")
            return

        # Keep serving the stale value, retry after the grace period
        self._stats["refresh_failures"] += 1
        logger.warning(f"Error refreshing '{key}', keeping cached version: {error}")
        now = self.clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is not None and entry.is_stale(now):
                self._store[key] = replace(
                    entry, refresh_after=now + self.stale_grace_seconds
                )

    @property
    def size(self) -> int:
        """Current number of entries."""
        return len(self._store)

    @property
    def stats(self) -> dict:
        """Cache statistics."""
        return {
            **self._stats,
            "size": self.size,
            "inflight": len(self._inflight),
        }
