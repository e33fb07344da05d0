"""Shared pytest fixtures."""

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from recruit_sync.network.monitor import NetworkMonitor, NetworkState
from recruit_sync.storage.cache import CacheStore
from recruit_sync.storage.kv import KeyValueStore
from recruit_sync.storage.queue import PersistentQueue
from recruit_sync.sync.context import SyncContext
from recruit_sync.sync.processor import ActionExecutor

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock: call it for the current time, ``advance()`` to move it."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class StaticProbe:
    """ConnectivityProbe that reports whatever ``state`` is set to."""

    def __init__(self, connected: bool = True) -> None:
        self.state = NetworkState(is_connected=connected)
        self.calls = 0

    async def check(self) -> NetworkState:
        self.calls += 1
        return self.state


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv_store(tmp_path: Path) -> Iterator[KeyValueStore]:
    store = KeyValueStore(db_path=tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture
def make_context(kv_store: KeyValueStore, clock: FakeClock) -> Callable[..., SyncContext]:
    """Factory for a SyncContext over real SQLite storage and a fake probe/clock.

    The context is not initialised; tests that need the listener call ``init()``.
    """

    def _make(online: bool = True, executor: ActionExecutor | None = None) -> SyncContext:
        monitor = NetworkMonitor(StaticProbe(online), initial_state=NetworkState(is_connected=online))
        return SyncContext(
            monitor=monitor,
            queue=PersistentQueue(kv_store, clock=clock),
            cache=CacheStore(kv_store, clock=clock),
            executor=executor,
            clock=clock,
        )

    return _make
