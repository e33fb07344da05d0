"""APScheduler setup for the periodic outreach refresh."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from recruit_sync.outreach.aggregator import OutreachAggregator

logger = logging.getLogger(__name__)


def create_refresh_scheduler(
    aggregator: OutreachAggregator,
    interval_minutes: float,
) -> AsyncIOScheduler:
    """Return a configured AsyncIOScheduler that re-runs the outreach aggregation.

    Each run refreshes the cached source responses, so the CLI has recent data
    to fall back on when the connection drops.  The caller is responsible for
    calling scheduler.start() and scheduler.shutdown().
    """
    from recruit_sync.outreach.aggregator import OutreachUnavailableError

    async def refresh_outreach() -> None:
        try:
            view = await aggregator.refresh()
        except OutreachUnavailableError as exc:
            logger.warning("Scheduled outreach refresh skipped: %s", exc)
            return
        logger.info(
            "Scheduled outreach refresh: %d engaged (%d hot)%s",
            view.engaged_count,
            view.hot_count,
            " [stale]" if view.is_stale else "",
        )

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        refresh_outreach,
        "interval",
        minutes=interval_minutes,
        id="outreach_refresh",
        max_instances=1,
        coalesce=True,
    )
    logger.info("Outreach refresh scheduled every %g minute(s)", interval_minutes)
    return scheduler
