"""SQLite schema and typed records for the persisted queue and response cache."""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ── DDL ────────────────────────────────────────────────────────────────────────

_CREATE_KV = """
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
)
"""

#: All DDL statements in creation order.
ALL_TABLES: list[str] = [
    _CREATE_KV,
]

#: Storage key holding the whole offline queue as one JSON array.
QUEUE_KEY = "offline_queue"

#: Prefix for cached API responses: ``cache_<key>``.
CACHE_PREFIX = "cache_"

#: A queued action is evicted once its retry count reaches this value.
MAX_RETRIES = 3


class ActionKind(str, Enum):
    """What a queued action does, used for display and metrics only."""

    EMAIL = "email"
    DM = "dm"
    SAVE = "save"
    UNSAVE = "unsave"
    UPDATE = "update"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


# ── Time helpers ───────────────────────────────────────────────────────────────


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


# ── Records ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class QueueConfig:
    """Everything needed to build a QueuedAction except identity and retry state."""

    kind: ActionKind
    endpoint: str
    method: HttpMethod
    body: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class QueuedAction:
    """A mutating request deferred because no connectivity was available.

    Persisted as camelCase JSON (``queuedAt`` / ``retryCount`` in epoch ms)
    so the on-disk shape matches what the mobile client wrote.
    """

    id: str
    kind: ActionKind
    endpoint: str
    method: HttpMethod
    queued_at: datetime
    retry_count: int = 0
    body: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_config(cls, action_id: str, config: QueueConfig, queued_at: datetime) -> "QueuedAction":
        return cls(
            id=action_id,
            kind=config.kind,
            endpoint=config.endpoint,
            method=config.method,
            queued_at=queued_at,
            body=config.body,
            metadata=config.metadata,
        )

    def with_retry(self) -> "QueuedAction":
        """Return a copy with retry_count incremented by one."""
        return replace(self, retry_count=self.retry_count + 1)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.kind.value,
            "endpoint": self.endpoint,
            "method": self.method.value,
            "queuedAt": to_epoch_ms(self.queued_at),
            "retryCount": self.retry_count,
        }
        if self.body is not None:
            data["body"] = self.body
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueuedAction":
        """Parse one stored entry. Raises KeyError/ValueError on malformed input."""
        return cls(
            id=str(data["id"]),
            kind=ActionKind(data["type"]),
            endpoint=str(data["endpoint"]),
            method=HttpMethod(str(data["method"]).upper()),
            queued_at=from_epoch_ms(data["queuedAt"]),
            retry_count=int(data.get("retryCount", 0)),
            body=data.get("body"),
            metadata=data.get("metadata"),
        )


@dataclass(frozen=True)
class CacheEntry:
    """Last-known-good response for a cache key."""

    key: str
    data: Any
    cached_at: datetime
