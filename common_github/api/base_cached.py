"""Base class for cached portfolio datasets.

Goal: make each dataset readable + debuggable by enforcing a small interface:
- cache key (one cache entry per dataset, replaced atomically)
- the upstream calls it needs (issued in parallel)
- how raw payloads are aggregated into the dataset
- how the dataset is converted to/from its cached (JSON-friendly) form

The shared get() flow:
  cache lookup -> hit: ready (no network)
               -> miss: loading -> parallel fetch -> aggregate -> cache write -> ready
                                                  -> any upstream failure -> error (nothing cached)

A still-live cache entry short-circuits every call, including refetch(); there is
no force-bypass path. Concurrent callers for the same key are serialized on a
per-key in-flight lock and re-check the cache, so only the first one hits the network.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, Generic, Optional, TypeVar, TYPE_CHECKING

from cache.cache_base import TimeBoxedCache
from common_types import FetchStatus
from ..exceptions import GitHubAPIError

if TYPE_CHECKING:  # pragma: no cover
    from .. import GitHubAPIClient

T = TypeVar("T")

_logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FetchState(Generic[T]):
    """What the presentation layer sees: exactly one of idle, loading, ready(data) or error(message)."""

    status: FetchStatus = FetchStatus.IDLE
    data: Optional[T] = None
    error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.status == FetchStatus.LOADING


class CachedSnapshotBase(ABC, Generic[T]):
    """Base class for a dataset backed by a TimeBoxedCache entry.

    Subclasses define:
    - default cache key + default TTL
    - the upstream calls (name -> zero-arg callable)
    - aggregation of the raw payloads into the dataset
    - conversion to/from the cached payload

    Args:
        api: GitHubAPIClient used by the upstream calls.
        cache: shared TimeBoxedCache.
        namespace_key: cache key override (defaults to `default_namespace_key()`).
        ttl_s: TTL for the written entry (None -> `default_ttl_s`, then the cache default).
        now: clock used for time-relative aggregation (aware UTC datetime).
    """

    default_cache_key: str = ""
    default_ttl_s: Optional[float] = None

    def __init__(
        self,
        api: "GitHubAPIClient",
        cache: TimeBoxedCache,
        *,
        namespace_key: Optional[str] = None,
        ttl_s: Optional[float] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self.api = api
        self.cache = cache
        self.cache_key = str(namespace_key or self.default_namespace_key())
        self.ttl_s = ttl_s if ttl_s is not None else self.default_ttl_s
        self._now = now
        self._state_mu = Lock()
        self._state: FetchState[T] = FetchState()

    def default_namespace_key(self) -> str:
        """Cache key when none is given; datasets append the account handles they read."""
        return self.default_cache_key

    @property
    @abstractmethod
    def cache_name(self) -> str:
        """Short name used in log lines (e.g. 'profile')."""

    @abstractmethod
    def api_call_format(self) -> str:
        """Human-readable description of the API call(s) this dataset performs."""

    @abstractmethod
    def requests(self) -> Dict[str, Callable[[], Any]]:
        """Upstream calls keyed by payload name; all are issued concurrently."""

    @abstractmethod
    def build(self, raw: Dict[str, Any], *, now: datetime) -> T:
        """Aggregate raw payloads (keyed like requests()) into the dataset."""

    @abstractmethod
    def to_cache(self, value: T) -> Any:
        """Dataset -> JSON-friendly cache payload."""

    @abstractmethod
    def from_cache(self, payload: Any) -> T:
        """Cache payload -> dataset. May raise AttributeError/KeyError/TypeError/ValueError on a foreign payload."""

    @property
    def state(self) -> FetchState[T]:
        with self._state_mu:
            return self._state

    def _set_state(self, state: FetchState[T]) -> FetchState[T]:
        with self._state_mu:
            self._state = state
        return state

    def _cached_value(self) -> Optional[T]:
        lookup = self.cache.lookup(self.cache_key)
        if not lookup.hit:
            return None
        try:
            return self.from_cache(lookup.value)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            _logger.warning("Discarding unreadable %s cache entry %r: %s", self.cache_name, self.cache_key, e)
            self.cache.delete(self.cache_key)
            return None

    def fetch_all(self) -> Dict[str, Any]:
        """Issue every upstream call concurrently and wait for all of them.

        Fail-fast: the first failure is raised as soon as it completes; queued calls
        are cancelled and results of calls still in flight are discarded.
        """
        calls = self.requests()
        executor = ThreadPoolExecutor(max_workers=max(1, len(calls)), thread_name_prefix=f"fetch-{self.cache_name}")
        try:
            futures = {executor.submit(fn): name for (name, fn) in calls.items()}
            results: Dict[str, Any] = {}
            for fut in as_completed(futures):
                results[futures[fut]] = fut.result()
            return results
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def get(self) -> FetchState[T]:
        """Shared get() flow: cache lookup -> parallel fetch -> aggregate -> cache write."""
        cached = self._cached_value()
        if cached is not None:
            _logger.debug("%s: cache hit for %r", self.cache_name, self.cache_key)
            return self._set_state(FetchState(status=FetchStatus.READY, data=cached))

        self._set_state(FetchState(status=FetchStatus.LOADING))
        with self.api._inflight_lock(self.cache_key):
            # Re-check cache (another thread may have populated it).
            cached = self._cached_value()
            if cached is not None:
                return self._set_state(FetchState(status=FetchStatus.READY, data=cached))

            _logger.debug("%s: cache miss for %r, fetching %s", self.cache_name, self.cache_key, self.api_call_format())
            try:
                raw = self.fetch_all()
            except GitHubAPIError as e:
                _logger.error("Error fetching %s data: %s", self.cache_name, e)
                return self._set_state(FetchState(status=FetchStatus.ERROR, error=str(e) or f"Failed to fetch {self.cache_name} data"))

            try:
                value = self.build(raw, now=self._now())
            except Exception as e:
                # Never leave callers looking at LOADING; the bug still propagates.
                self._set_state(FetchState(status=FetchStatus.ERROR, error=f"Failed to build {self.cache_name} data: {e}"))
                raise
            self.cache.set(self.cache_key, self.to_cache(value), ttl_s=self.ttl_s)
            return self._set_state(FetchState(status=FetchStatus.READY, data=value))


class SnapshotHandle(Generic[T]):
    """Presentation-facing view of one dataset: data / is_loading / error / refetch().

    Example:
        handle = SnapshotHandle(ProfileSnapshotCached(api, cache, user="octocat"))
        handle.refetch()
        if handle.error: ...
        else: render(handle.data)
    """

    def __init__(self, resource: CachedSnapshotBase[T]):
        self._resource = resource

    @property
    def data(self) -> Optional[T]:
        return self._resource.state.data

    @property
    def is_loading(self) -> bool:
        return self._resource.state.is_loading

    @property
    def error(self) -> Optional[str]:
        return self._resource.state.error

    def refetch(self) -> FetchState[T]:
        return self._resource.get()


def open_snapshot(resource: CachedSnapshotBase[T]) -> SnapshotHandle[T]:
    """Create a handle and run the first load (what mounting a page does)."""
    handle = SnapshotHandle(resource)
    handle.refetch()
    return handle
