"""CLI entry point for the recruiting sync layer."""

import logging

import click
from dotenv import load_dotenv

from recruit_sync.config import SyncSettings

logger = logging.getLogger(__name__)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Offline-first recruiting outreach — outreach view, offline queue, insight chat."""
    load_dotenv()
    logging.basicConfig(
        level=logging.WARNING,  # keep CLI output clean; errors still surface
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    ctx.obj = SyncSettings.from_env()


# Import and register commands after cli is defined to avoid circular imports.
from recruit_sync.cli.commands import insight, network, outreach, queue, run, signout  # noqa: E402

cli.add_command(outreach)
cli.add_command(queue)
cli.add_command(insight)
cli.add_command(signout)
cli.add_command(network)
cli.add_command(run)
