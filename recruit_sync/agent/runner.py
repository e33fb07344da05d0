"""Long-running sync agent — keeps connectivity, the offline queue and the
outreach cache current until interrupted."""

import asyncio
import logging
import signal
from datetime import timedelta

from dotenv import load_dotenv

from recruit_sync.config import SyncSettings
from recruit_sync.outreach.aggregator import OutreachAggregator, OutreachUnavailableError
from recruit_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)


class SyncAgent:
    """Polls connectivity for a SyncContext until stopped.

    The context already drains the queue on every offline → online
    transition; the agent only keeps the monitor polling and warms the
    outreach cache once on startup.

    Usage::

        async with sync_context(settings) as (context, api):
            agent = SyncAgent(context, OutreachAggregator(api, context))
            await agent.run()
    """

    def __init__(self, context: SyncContext, aggregator: OutreachAggregator | None = None) -> None:
        self._context = context
        self._aggregator = aggregator

    def stop(self) -> None:
        """Signal the agent to finish the current probe and shut down cleanly."""
        logger.info("Shutdown requested — finishing current probe then stopping")
        self._context.monitor.stop()

    async def run(self) -> None:
        """Run until stop() is called."""
        state = self._context.monitor.current()
        logger.info(
            "Sync agent running (%s, %d queued action(s))",
            "online" if state.is_connected else "offline",
            await self._context.queue.count(),
        )
        if self._aggregator is not None:
            await self._warm_outreach_cache()
        await self._context.monitor.run()
        logger.info("Sync agent stopped")

    async def _warm_outreach_cache(self) -> None:
        try:
            view = await self._aggregator.refresh()  # type: ignore[union-attr]
        except OutreachUnavailableError as exc:
            logger.warning("Initial outreach refresh failed: %s", exc)
            return
        logger.info("Outreach cache warmed: %d engaged, %d hot", view.engaged_count, view.hot_count)


# ── Entry point ────────────────────────────────────────────────────────────────


def main() -> None:
    """Start the sync agent as a standalone process (`python -m recruit_sync.agent.runner`)."""
    load_dotenv()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    try:
        asyncio.run(run_agent(SyncSettings.from_env()))
    except KeyboardInterrupt:
        # Ctrl+C on Windows (no add_signal_handler) arrives here
        logger.info("Interrupted — goodbye")


async def run_agent(settings: SyncSettings) -> None:
    """Async entry point: wire up the context, scheduler and signal handlers."""
    from recruit_sync.agent.scheduler import create_refresh_scheduler
    from recruit_sync.sync.context import sync_context

    async with sync_context(settings) as (context, api):
        aggregator = OutreachAggregator(
            api,
            context,
            stale_time=timedelta(seconds=settings.cache_stale_seconds),
        )
        scheduler = create_refresh_scheduler(aggregator, settings.outreach_refresh_minutes)
        scheduler.start()

        agent = SyncAgent(context, aggregator)
        loop = asyncio.get_running_loop()
        try:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, agent.stop)
        except (NotImplementedError, AttributeError):
            pass

        try:
            await agent.run()
        finally:
            scheduler.shutdown(wait=False)


if __name__ == "__main__":
    main()
