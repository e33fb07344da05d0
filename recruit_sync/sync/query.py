"""Offline-aware reads: fresh data when online, last-known-good cache otherwise."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Generic, TypeVar

from recruit_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_STALE_TIME = timedelta(minutes=5)


class HardFetchError(Exception):
    """Raised into QueryResult.error when a fetch failed and nothing is cached."""


class NoCachedDataError(HardFetchError):
    """Offline with no cached response for the key."""


class ResultSource(str, Enum):
    NETWORK = "network"
    CACHE = "cache"
    NONE = "none"


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """One outcome of a SyncedQuery fetch.

    ``error`` is set only when there is no data at all; a cache fallback after
    a failed fetch is reported through ``is_stale``, not through ``error``.
    """

    data: T | None
    is_stale: bool
    error: Exception | None = None
    source: ResultSource = ResultSource.NONE

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncedQuery(Generic[T]):
    """Fetches through ``fetcher`` and caches the result under ``key``.

    Algorithm, re-run in full by every ``fetch()`` / ``refetch()``:

    1. Online: call the fetcher.  On success cache and return fresh data.  On
       failure return the cached entry marked stale, or surface the error if
       nothing is cached.
    2. Offline: return the cached entry, stale when older than ``stale_time``,
       or a NoCachedDataError.

    The latest outcome is mirrored on ``data`` / ``is_stale`` / ``error``;
    ``loading`` is True while a fetch is running.  Fetched data must be
    JSON-serialisable to be cached.

    Usage::

        query = SyncedQuery("saved_contacts", api.get_saved_contacts, context)
        result = await query.fetch()
        if result.is_stale:
            ...
    """

    def __init__(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        context: SyncContext,
        stale_time: timedelta = _DEFAULT_STALE_TIME,
    ) -> None:
        self.key = key
        self._fetcher = fetcher
        self._context = context
        self._stale_time = stale_time
        self.data: T | None = None
        self.is_stale = False
        self.loading = False
        self.error: Exception | None = None

    async def fetch(self) -> QueryResult[T]:
        self.loading = True
        self.error = None
        try:
            if self._context.is_online:
                result = await self._fetch_online()
            else:
                result = await self._read_offline()
        finally:
            self.loading = False
        if result.data is not None or result.error is None:
            self.data = result.data
        self.is_stale = result.is_stale
        self.error = result.error
        return result

    async def refetch(self) -> QueryResult[T]:
        """Re-run the fetch unconditionally; throttling is the caller's job."""
        return await self.fetch()

    # ── Private ────────────────────────────────────────────────────────────────

    async def _fetch_online(self) -> QueryResult[T]:
        try:
            fresh = await self._fetcher()
        except Exception as exc:  # noqa: BLE001
            entry = await self._context.cache.get(self.key)
            if entry is not None:
                logger.warning("Fetch for %r failed, serving cached copy: %s", self.key, exc)
                return QueryResult(data=entry.data, is_stale=True, source=ResultSource.CACHE)
            logger.error("Fetch for %r failed and nothing is cached: %s", self.key, exc)
            return QueryResult(data=None, is_stale=False, error=_as_hard_error(self.key, exc))

        await self._context.cache.put(self.key, fresh)
        return QueryResult(data=fresh, is_stale=False, source=ResultSource.NETWORK)

    async def _read_offline(self) -> QueryResult[T]:
        entry = await self._context.cache.get(self.key)
        if entry is None:
            return QueryResult(
                data=None,
                is_stale=False,
                error=NoCachedDataError(f"No cached data available for {self.key!r}"),
            )
        age = self._context.now() - entry.cached_at
        return QueryResult(
            data=entry.data,
            is_stale=age > self._stale_time,
            source=ResultSource.CACHE,
        )


def _as_hard_error(key: str, exc: Exception) -> HardFetchError:
    if isinstance(exc, HardFetchError):
        return exc
    error = HardFetchError(f"Fetch for {key!r} failed: {exc}")
    error.__cause__ = exc
    return error