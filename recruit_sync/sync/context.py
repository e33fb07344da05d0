"""SyncContext — the explicit, constructed home of the layer's shared state.

Holds the network monitor, offline queue, response cache and queue processor
that the query/mutation helpers need, with a defined ``init`` / ``teardown``
lifecycle instead of module-level singletons.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from recruit_sync.api.client import ApiClient
from recruit_sync.config import SyncSettings
from recruit_sync.network.monitor import HttpConnectivityProbe, NetworkMonitor, NetworkState
from recruit_sync.storage.cache import CacheStore
from recruit_sync.storage.kv import KeyValueStore
from recruit_sync.storage.queue import PersistentQueue
from recruit_sync.sync.executor import HttpActionExecutor
from recruit_sync.sync.processor import ActionExecutor, ProcessResult, QueueProcessor

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncContext:
    """Shared state for SyncedQuery, SyncedMutation and the queue drain.

    After ``init()`` the context listens for offline → online transitions and
    drains the queue through ``executor`` on each one (at most one drain at a
    time).  ``teardown()`` detaches the listener and stops the monitor.

    Usage::

        context = SyncContext(monitor, queue, cache, executor=executor)
        await context.init()
        ...
        await context.teardown()
    """

    def __init__(
        self,
        monitor: NetworkMonitor,
        queue: PersistentQueue,
        cache: CacheStore,
        executor: ActionExecutor | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.monitor = monitor
        self.queue = queue
        self.cache = cache
        self.processor = QueueProcessor(queue)
        self.clock = clock
        self._executor = executor
        self._was_connected = monitor.current().is_connected
        self._unsubscribe: Callable[[], None] | None = None
        self._drain_task: asyncio.Task[ProcessResult | None] | None = None

    @property
    def is_online(self) -> bool:
        return self.monitor.current().is_connected

    def now(self) -> datetime:
        return self.clock()

    # ── Lifecycle ──────────────────────────────────────────────────────────────

    async def init(self) -> None:
        """Probe connectivity once, start listening, and drain if already online."""
        state = await self.monitor.start()
        self._was_connected = state.is_connected
        self._unsubscribe = self.monitor.subscribe(self._on_network_change)
        if state.is_connected and await self.queue.count() > 0:
            self.schedule_drain()

    async def teardown(self) -> None:
        """Detach from the monitor and wait for any in-flight drain to finish."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.monitor.stop()
        if self._drain_task is not None and not self._drain_task.done():
            await self._drain_task
        self._drain_task = None

    # ── Queue drain ────────────────────────────────────────────────────────────

    def schedule_drain(self) -> asyncio.Task[ProcessResult | None] | None:
        """Start a background drain unless one is already running.

        Returns the running task, or None when no executor is configured.
        """
        if self._executor is None:
            return None
        if self._drain_task is not None and not self._drain_task.done():
            return self._drain_task
        self._drain_task = asyncio.get_running_loop().create_task(self.drain())
        return self._drain_task

    async def drain(self) -> ProcessResult | None:
        """Run one queue pass now. Never raises; failures are logged."""
        if self._executor is None:
            return None
        try:
            return await self.processor.process(self._executor)
        except Exception as exc:  # noqa: BLE001
            logger.error("Queue drain failed: %s", exc, exc_info=True)
            return None

    def _on_network_change(self, state: NetworkState) -> None:
        came_online = state.is_connected and not self._was_connected
        self._was_connected = state.is_connected
        if came_online:
            logger.info("Back online — draining offline queue")
            self.schedule_drain()


@asynccontextmanager
async def sync_context(
    settings: SyncSettings,
    api: ApiClient | None = None,
) -> AsyncIterator[tuple[SyncContext, ApiClient]]:
    """Build, initialise and tear down a SyncContext plus its ApiClient and storage.

    Usage::

        async with sync_context(SyncSettings.from_env()) as (context, api):
            ...
    """
    store = KeyValueStore(db_path=settings.db_path)
    owns_api = api is None
    if api is None:
        api = ApiClient(
            settings.api_url,
            token=settings.api_token or None,
            timeout=settings.request_timeout_seconds,
        )
    monitor = NetworkMonitor(
        HttpConnectivityProbe(settings.resolved_probe_url),
        poll_interval=settings.connectivity_poll_seconds,
    )
    context = SyncContext(
        monitor=monitor,
        queue=PersistentQueue(store),
        cache=CacheStore(store),
        executor=HttpActionExecutor(api),
    )
    try:
        await context.init()
        yield context, api
    finally:
        await context.teardown()
        if owns_api:
            await api.close()
        store.close()
