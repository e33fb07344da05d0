"""Tests for SyncContext — reconnect-triggered queue drain and lifecycle."""

import asyncio
from unittest.mock import AsyncMock

from recruit_sync.network.monitor import NetworkState, Transport
from recruit_sync.storage.models import ActionKind, HttpMethod, QueueConfig

ONLINE = NetworkState(is_connected=True)
OFFLINE = NetworkState(is_connected=False)


def make_config() -> QueueConfig:
    return QueueConfig(kind=ActionKind.UNSAVE, endpoint="/api/saved-coaches/s1", method=HttpMethod.DELETE)


async def settle() -> None:
    """Let background drain tasks run to completion."""
    for _ in range(5):
        await asyncio.sleep(0)


class TestReconnectDrain:
    async def test_offline_to_online_drains_queue(self, make_context) -> None:
        executor = AsyncMock(return_value=True)
        context = make_context(online=False, executor=executor)
        await context.init()
        await context.queue.append(make_config())

        context.monitor.set_state(ONLINE)
        await settle()

        executor.assert_awaited_once()
        assert await context.queue.count() == 0
        await context.teardown()

    async def test_online_to_online_does_not_drain(self, make_context) -> None:
        executor = AsyncMock(return_value=True)
        context = make_context(online=True, executor=executor)
        await context.init()
        await context.queue.append(make_config())

        context.monitor.set_state(NetworkState(is_connected=True, transport=Transport.WIFI))
        await settle()

        executor.assert_not_awaited()
        await context.teardown()

    async def test_going_offline_does_not_drain(self, make_context) -> None:
        executor = AsyncMock(return_value=True)
        context = make_context(online=True, executor=executor)
        await context.init()
        await context.queue.append(make_config())

        context.monitor.set_state(OFFLINE)
        await settle()

        executor.assert_not_awaited()
        await context.teardown()

    async def test_init_drains_pending_queue_when_online(self, make_context) -> None:
        executor = AsyncMock(return_value=True)
        context = make_context(online=True, executor=executor)
        await context.queue.append(make_config())

        await context.init()
        await settle()

        executor.assert_awaited_once()
        await context.teardown()

    async def test_teardown_detaches_listener(self, make_context) -> None:
        executor = AsyncMock(return_value=True)
        context = make_context(online=False, executor=executor)
        await context.init()
        await context.teardown()
        await context.queue.append(make_config())

        context.monitor.set_state(ONLINE)
        await settle()

        executor.assert_not_awaited()
        assert context.monitor.subscriber_count == 0


class TestDrain:
    async def test_drain_without_executor_returns_none(self, make_context) -> None:
        context = make_context(online=True)
        assert await context.drain() is None
        assert context.schedule_drain() is None

    async def test_schedule_drain_reuses_running_task(self, make_context) -> None:
        release = asyncio.Event()

        async def slow(action) -> bool:
            await release.wait()
            return True

        context = make_context(online=True, executor=AsyncMock(side_effect=slow))
        await context.queue.append(make_config())

        first = context.schedule_drain()
        second = context.schedule_drain()
        release.set()

        assert first is second
        assert (await first).success == 1
