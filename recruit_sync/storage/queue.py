"""Durable FIFO of mutating actions waiting for connectivity."""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable
from datetime import datetime, timezone

from recruit_sync.storage.kv import KeyValueStore, StorageError
from recruit_sync.storage.models import QUEUE_KEY, QueueConfig, QueuedAction, to_epoch_ms

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_SUFFIX_LENGTH = 9


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueueWriteError(Exception):
    """Raised internally when the queue cannot be persisted.

    Never escapes PersistentQueue: queuing is best-effort and must not block
    the caller's optimistic path.
    """


class PersistentQueue:
    """Ordered list of QueuedAction persisted under a single storage key.

    Every operation reads the full list, edits it in memory and rewrites it
    with one write, so a crash between ``list()`` and ``remove()`` can neither
    duplicate nor lose an entry.  Insertion order is the replay order.

    Only QueueProcessor should call ``remove`` and ``increment_retry``; any
    caller may ``append``.

    Usage::

        queue = PersistentQueue(store)
        action_id = await queue.append(config)
        for action in await queue.list():
            ...
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = _utcnow,
        key: str = QUEUE_KEY,
    ) -> None:
        self._store = store
        self._clock = clock
        self._key = key

    async def append(self, config: QueueConfig) -> str | None:
        """Add an action to the tail of the queue and return its new id.

        Returns None (after logging) if the queue could not be written.
        """
        now = self._clock()
        action = QueuedAction.from_config(self._new_id(now), config, queued_at=now)
        actions = self._load()
        actions.append(action)
        try:
            self._save(actions)
        except QueueWriteError as exc:
            logger.error("Failed to queue offline %s action: %s", config.kind.value, exc)
            return None
        logger.info(
            "Queued %s %s %s (id=%s, %d pending)",
            action.kind.value,
            action.method.value,
            action.endpoint,
            action.id,
            len(actions),
        )
        return action.id

    async def list(self) -> list[QueuedAction]:
        """Return all queued actions, oldest first."""
        return self._load()

    async def remove(self, action_id: str) -> None:
        """Remove the action with this id; a no-op if it is not queued."""
        actions = self._load()
        remaining = [a for a in actions if a.id != action_id]
        if len(remaining) == len(actions):
            return
        self._try_save(remaining, "remove")

    async def increment_retry(self, action_id: str) -> None:
        """Bump the retry count of one action in place."""
        actions = self._load()
        updated = [a.with_retry() if a.id == action_id else a for a in actions]
        self._try_save(updated, "increment retry count")

    async def clear(self) -> None:
        """Drop every queued action."""
        try:
            self._store.delete(self._key)
        except StorageError as exc:
            logger.error("Failed to clear offline queue: %s", exc)

    async def count(self) -> int:
        return len(self._load())

    # ── Private ─────────────────────────────────────────────────────────────────

    def _load(self) -> list[QueuedAction]:
        raw = self._store.get(self._key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Offline queue is not a list (%s); treating as empty", type(raw).__name__)
            return []
        actions: list[QueuedAction] = []
        for entry in raw:
            try:
                actions.append(QueuedAction.from_dict(entry))
            except (KeyError, ValueError, TypeError, OverflowError, OSError) as exc:
                logger.warning("Skipping malformed queued action %.200r: %s", entry, exc)
        return actions

    def _save(self, actions: list[QueuedAction]) -> None:
        try:
            self._store.set(self._key, [a.to_dict() for a in actions])
        except StorageError as exc:
            raise QueueWriteError(str(exc)) from exc

    def _try_save(self, actions: list[QueuedAction], operation: str) -> None:
        try:
            self._save(actions)
        except QueueWriteError as exc:
            logger.error("Failed to %s in offline queue: %s", operation, exc)

    @staticmethod
    def _new_id(now: datetime) -> str:
        suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
        return f"{to_epoch_ms(now)}-{suffix}"
