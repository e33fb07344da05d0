"""Last-known-good response cache keyed by query name."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from recruit_sync.storage.kv import KeyValueStore, StorageError
from recruit_sync.storage.models import CACHE_PREFIX, CacheEntry, from_epoch_ms, to_epoch_ms

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheStore:
    """Stores ``{data, cachedAt}`` under ``cache_<key>``.

    Entries are overwritten on every successful fetch and never mutated on
    read.  ``clear()`` is the only delete path (used on sign-out).
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    async def get(self, key: str) -> CacheEntry | None:
        """Return the cached entry for key, or None if absent or unreadable."""
        raw = self._store.get(CACHE_PREFIX + key)
        if raw is None:
            return None
        try:
            return CacheEntry(key=key, data=raw["data"], cached_at=from_epoch_ms(raw["cachedAt"]))
        except (KeyError, TypeError, ValueError, OverflowError, OSError):
            logger.warning("Ignoring malformed cache entry for %r", key)
            return None

    async def put(self, key: str, data: Any) -> CacheEntry | None:
        """Store data as the newest entry for key.

        A failed write is logged and returns None; the fetched data is still
        good, it just will not be available offline.
        """
        entry = CacheEntry(key=key, data=data, cached_at=self._clock())
        try:
            self._store.set(
                CACHE_PREFIX + key,
                {"data": data, "cachedAt": to_epoch_ms(entry.cached_at)},
            )
        except StorageError as exc:
            logger.error("Failed to cache %r: %s", key, exc)
            return None
        return entry

    async def clear(self) -> int:
        """Delete every cached entry. Returns the number removed."""
        try:
            removed = self._store.delete_prefix(CACHE_PREFIX)
        except StorageError as exc:
            logger.error("Failed to clear response cache: %s", exc)
            return 0
        logger.info("Cleared %d cached response(s)", removed)
        return removed
